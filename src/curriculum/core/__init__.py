"""Core business logic module.

Ingestion:
- document_ingestor: Document import orchestrator
- page_extractor: Page text extraction with OCR fallback
- language_detector: Arabic/English detection
- structure_analyzer: Chapter detection (content service, TOC patterns, fallback)
- deep_indexer: Background full-text indexing

Scheduling:
- schedule_generator: Teaching-day generation
- lesson_distributor: Chapter-to-day distribution
- progress_sync: Lesson pointer and active lesson selection

Export:
- calendar_export: iCalendar rendering
- backup: Full backup and restore
"""

__all__ = [
    "document_ingestor",
    "page_extractor",
    "language_detector",
    "structure_analyzer",
    "deep_indexer",
    "schedule_generator",
    "lesson_distributor",
    "progress_sync",
    "calendar_export",
    "backup",
]
