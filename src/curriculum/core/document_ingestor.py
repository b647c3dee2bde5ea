"""Document ingestion orchestrator.

Responsibilities:
- Validate the upload (PDF or scanned image)
- Calculate SHA256 and keep a copy of the source under data/documents/
- Extract the initial sample (first 15 pages, OCR where needed)
- Detect the content language once, on that sample
- Recover the outline through the structural analysis chain
- Persist the Document and hand the remaining pages to the deep indexer

Ingestion always produces a schedulable document: analysis failures degrade
to pattern parsing and finally to the synthetic "General Content" chapter.
"""

from __future__ import annotations

import hashlib
import shutil
from dataclasses import dataclass
from pathlib import Path

import structlog

from curriculum.config.app_config import AppConfig, load_app_config
from curriculum.core.deep_indexer import (
    DeepIndexer,
    IndexerRegistry,
    ProgressCallback,
    registry,
)
from curriculum.core.language_detector import Language, detect_language, normalize_language
from curriculum.core.page_extractor import SUPPORTED_SUFFIXES, extract_sample
from curriculum.core.structure_analyzer import (
    AnalysisReport,
    AnalysisRequest,
    Outline,
    analyze_structure,
    default_strategies,
)
from curriculum.db.documents_repository import (
    get_document,
    get_document_by_sha256,
    insert_document,
    update_outline,
)
from curriculum.llm.client import LLMClient

logger = structlog.get_logger(__name__)


@dataclass
class IngestionResult:
    """Result of a document ingestion."""

    document_id: int
    title: str
    detected_language: Language
    outline: Outline
    report: AnalysisReport
    total_pages: int
    pages_sampled: int
    source_path: Path
    indexer: DeepIndexer | None = None


class DocumentIngestionError(Exception):
    """Base exception for ingestion errors."""

    pass


class SourceFileNotFoundError(DocumentIngestionError):
    """Raised when the uploaded file doesn't exist."""

    pass


class DuplicateDocumentError(DocumentIngestionError):
    """Raised when the same file was already ingested (use force to ingest again)."""

    def __init__(self, sha256: str, existing_document_id: int):
        self.sha256 = sha256
        self.existing_document_id = existing_document_id
        super().__init__(
            f"File already ingested as document {existing_document_id}. "
            "Use force to ingest it again."
        )


class UnsupportedFormatError(DocumentIngestionError):
    """Raised when the file is neither a PDF nor a supported image."""

    def __init__(self, file_path: Path):
        self.file_path = file_path
        super().__init__(
            f"Unsupported format: {file_path.suffix or file_path.name} "
            f"(expected one of {', '.join(SUPPORTED_SUFFIXES)})"
        )


def ingest_document(
    file_path: Path,
    title: str | None = None,
    subject: str = "",
    grade: str | None = None,
    language: str = "en",
    client: LLMClient | None = None,
    app_config: AppConfig | None = None,
    data_dir: Path | None = None,
    start_deep_index: bool = True,
    indexer_registry: IndexerRegistry | None = None,
    force: bool = False,
) -> IngestionResult:
    """Ingest a textbook and return its persisted outline.

    Args:
        file_path: PDF or image file
        title: Document title (defaults to the file name without suffix)
        subject: Subject hint passed to structural analysis
        grade: Grade level; the analysis may infer one when omitted
        language: Requested language, used for OCR of the initial sample
        client: Content-generation client; without one analysis starts at
            the pattern tier
        app_config: Configuration (loaded if None)
        data_dir: Override of the configured data directory
        start_deep_index: Start background indexing of the remaining pages
        indexer_registry: Registry that owns the background task
        force: Ingest again even if the same file is already stored

    Returns:
        IngestionResult with document_id and outline

    Raises:
        SourceFileNotFoundError: If the file doesn't exist
        UnsupportedFormatError: If the format is not supported
        DuplicateDocumentError: If the file was already ingested and force=False
        PageExtractionError: If the document cannot be opened
    """
    config = app_config or load_app_config()
    settings = config.ingestion
    base_dir = data_dir or config.data_dir

    file_path = Path(file_path).resolve()
    if not file_path.exists():
        raise SourceFileNotFoundError(f"File not found: {file_path}")
    if file_path.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise UnsupportedFormatError(file_path)

    requested_language = normalize_language(language)
    logger.info("ingest.start", file=file_path.name, language=requested_language)

    sha256 = _calculate_sha256(file_path)
    existing = get_document_by_sha256(sha256)
    if existing is not None:
        if not force:
            raise DuplicateDocumentError(sha256, existing.document_id)
        logger.info("ingest.duplicate_forced", existing_document_id=existing.document_id)

    # Read the upload in place so an unreadable file leaves nothing behind
    sample = extract_sample(
        file_path,
        requested_language,
        max_pages=settings.sample_pages,
        min_text_items=settings.sample_min_text_items,
        ocr_scale=settings.ocr_scale,
    )
    source_path = _store_source(file_path, sha256, base_dir)
    detected_language = detect_language(sample.text)

    outline, report = _analyze(
        sample.text, subject, detected_language, client, config
    )

    document_title = title or file_path.stem
    document_id = insert_document(
        title=document_title,
        subject=subject,
        grade=grade or outline.grade,
        source_path=str(source_path),
        sha256=sha256,
        full_text=sample.text,
        outline_summary=outline.summary,
        chapters=[c.to_dict() for c in outline.chapters],
        outline_method=outline.method,
        detected_language=detected_language,
        total_pages=sample.total_pages,
        indexed_pages=sample.pages_read,
    )

    logger.info(
        "ingest.persisted",
        document_id=document_id,
        method=outline.method,
        chapters=len(outline.chapters),
        detected_language=detected_language,
        total_pages=sample.total_pages,
    )

    indexer = None
    if start_deep_index and sample.pages_read < sample.total_pages:
        indexer = _build_indexer(
            document_id, source_path, sample.pages_read + 1, detected_language, config
        )
        indexer = (indexer_registry or registry).start(indexer)

    return IngestionResult(
        document_id=document_id,
        title=document_title,
        detected_language=detected_language,
        outline=outline,
        report=report,
        total_pages=sample.total_pages,
        pages_sampled=sample.pages_read,
        source_path=source_path,
        indexer=indexer,
    )


def reanalyze_document(
    document_id: int,
    client: LLMClient | None = None,
    app_config: AppConfig | None = None,
) -> tuple[Outline, AnalysisReport]:
    """Re-run structural analysis on a stored document (explicit re-ingestion).

    The sample is re-extracted from the stored source with the document's
    detected language; full text and language are left untouched.

    Raises:
        DocumentIngestionError: If the document doesn't exist
    """
    config = app_config or load_app_config()
    settings = config.ingestion

    document = get_document(document_id)
    if document is None:
        raise DocumentIngestionError(f"Document not found: {document_id}")

    sample = extract_sample(
        Path(document.source_path),
        document.detected_language,
        max_pages=settings.sample_pages,
        min_text_items=settings.sample_min_text_items,
        ocr_scale=settings.ocr_scale,
    )
    outline, report = _analyze(
        sample.text, document.subject, document.detected_language, client, config
    )

    update_outline(
        document_id,
        chapters=[c.to_dict() for c in outline.chapters],
        outline_summary=outline.summary,
        grade=outline.grade,
        outline_method=outline.method,
    )

    logger.info(
        "ingest.reanalyzed",
        document_id=document_id,
        method=outline.method,
        chapters=len(outline.chapters),
    )
    return outline, report


def resume_indexing(
    document_id: int,
    app_config: AppConfig | None = None,
    indexer_registry: IndexerRegistry | None = None,
    background: bool = True,
    on_progress: ProgressCallback | None = None,
) -> DeepIndexer | None:
    """Continue deep indexing after the last indexed page.

    Args:
        document_id: Document to index
        app_config: Configuration (loaded if None)
        indexer_registry: Registry that owns the background task
        background: Start on a thread (True) or run to completion here
        on_progress: Called with 0-100 after each chunk

    Returns:
        The indexer, or None if every page is already indexed

    Raises:
        DocumentIngestionError: If the document doesn't exist
    """
    config = app_config or load_app_config()

    document = get_document(document_id)
    if document is None:
        raise DocumentIngestionError(f"Document not found: {document_id}")

    if document.indexed_pages >= document.total_pages:
        logger.info("ingest.index_complete", document_id=document_id)
        return None

    indexer = _build_indexer(
        document_id,
        Path(document.source_path),
        document.indexed_pages + 1,
        document.detected_language,
        config,
        on_progress=on_progress,
    )
    if background:
        return (indexer_registry or registry).start(indexer)

    indexer.run()
    return indexer


def _build_indexer(
    document_id: int,
    source_path: Path,
    start_page: int,
    language: str,
    config: AppConfig,
    on_progress: ProgressCallback | None = None,
) -> DeepIndexer:
    settings = config.ingestion
    return DeepIndexer(
        document_id=document_id,
        source_path=source_path,
        start_page=start_page,
        language=language,
        on_progress=on_progress,
        chunk_size=settings.deep_index_chunk_size,
        yield_seconds=settings.deep_index_yield_seconds,
        min_text_items=settings.deep_index_min_text_items,
        ocr_scale=settings.ocr_scale,
    )


def _analyze(
    text: str,
    subject: str,
    language: Language,
    client: LLMClient | None,
    config: AppConfig,
) -> tuple[Outline, AnalysisReport]:
    strategies = default_strategies(
        client,
        char_budget=config.ingestion.sample_char_budget,
        max_retries=config.llm.max_retries,
        retry_backoff_seconds=config.llm.retry_backoff_seconds,
    )
    request = AnalysisRequest(text=text, subject=subject, language=language)
    return analyze_structure(request, strategies)


def _calculate_sha256(file_path: Path) -> str:
    """Calculate SHA256 hash of file."""
    sha256_hash = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            sha256_hash.update(chunk)
    return sha256_hash.hexdigest()


def _store_source(file_path: Path, sha256: str, base_dir: Path) -> Path:
    """Copy the upload to data/documents/{sha256[:16]}/ (idempotent)."""
    target_dir = base_dir / "documents" / sha256[:16]
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / f"source{file_path.suffix.lower()}"

    if not target.exists():
        shutil.copy2(file_path, target)
        logger.debug("ingest.source_stored", path=str(target))

    return target.resolve()
