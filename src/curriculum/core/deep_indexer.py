"""Background deep indexing of documents.

After ingestion has analyzed the first pages, the deep indexer walks the
remaining pages and appends their text to the document's full text.

- Pages are processed in chunks of 5; after each chunk the persisted full
  text is re-read, extended and written back, progress is reported and the
  task yields briefly before continuing
- Per-page extraction failures are logged and skipped (see page_extractor)
- Progress is persisted as indexed_pages, the outcome as indexing_status
  (running -> completed | cancelled | failed)
- A task runs on its own daemon thread and can be cancelled; the registry
  keeps at most one live task per document
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import structlog

from curriculum.core.page_extractor import (
    DEEP_INDEX_MIN_TEXT_ITEMS,
    DEFAULT_OCR_SCALE,
    extract_page_text,
    open_document,
)
from curriculum.db.documents_repository import (
    append_full_text,
    get_document,
    update_indexing_status,
)

logger = structlog.get_logger(__name__)

CHUNK_SIZE = 5
YIELD_SECONDS = 0.1

ProgressCallback = Callable[[int], None]


@dataclass
class IndexingReport:
    """Outcome of a deep indexing run."""

    document_id: int
    status: str
    pages_processed: int
    total_pages: int
    chars_appended: int


class DeepIndexer:
    """Walks the remaining pages of one document.

    Call run() to index synchronously, or start() to run on a background
    thread. cancel() stops the walk at the next page boundary; the text of
    the pages already read is still flushed.
    """

    def __init__(
        self,
        document_id: int,
        source_path: Path,
        start_page: int,
        language: str,
        on_progress: ProgressCallback | None = None,
        chunk_size: int = CHUNK_SIZE,
        yield_seconds: float = YIELD_SECONDS,
        min_text_items: int = DEEP_INDEX_MIN_TEXT_ITEMS,
        ocr_scale: float = DEFAULT_OCR_SCALE,
        cancel_event: threading.Event | None = None,
    ):
        """Initialize indexer.

        Args:
            document_id: Document whose full text is extended
            source_path: Stored source binary
            start_page: First page to index (1-based)
            language: Detected document language (selects the OCR model)
            on_progress: Called with 0-100 after each chunk
            chunk_size: Pages per persisted chunk
            yield_seconds: Pause between chunks
            min_text_items: Scanned-page threshold
            ocr_scale: OCR upscale factor
            cancel_event: Shared cancellation token (created if None)
        """
        self.document_id = document_id
        self.source_path = Path(source_path)
        self.start_page = max(1, start_page)
        self.language = language
        self.on_progress = on_progress
        self.chunk_size = max(1, chunk_size)
        self.yield_seconds = yield_seconds
        self.min_text_items = min_text_items
        self.ocr_scale = ocr_scale
        self.cancel_event = cancel_event or threading.Event()
        self.report: IndexingReport | None = None
        self._thread: threading.Thread | None = None

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        """Request the walk to stop."""
        self.cancel_event.set()
        logger.info("deep_indexer.cancel_requested", document_id=self.document_id)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> DeepIndexer:
        """Run the walk on a daemon thread and return immediately."""
        self._thread = threading.Thread(
            target=self._run_guarded,
            name=f"deep-indexer-{self.document_id}",
            daemon=True,
        )
        self._thread.start()
        return self

    def join(self, timeout: float | None = None) -> IndexingReport | None:
        """Wait for a started walk to finish."""
        if self._thread is not None:
            self._thread.join(timeout)
        return self.report

    def run(self) -> IndexingReport:
        """Index the remaining pages synchronously.

        Raises:
            PageExtractionError: If the source cannot be opened (status is
                set to failed first)
        """
        update_indexing_status(self.document_id, "running")
        logger.info(
            "deep_indexer.start",
            document_id=self.document_id,
            start_page=self.start_page,
            language=self.language,
        )

        try:
            doc = open_document(self.source_path)
        except Exception:
            update_indexing_status(self.document_id, "failed")
            raise

        pages_processed = 0
        chars_appended = 0
        last_page = self.start_page - 1

        try:
            total_pages = len(doc)
            buffer: list[str] = []

            for page_number in range(self.start_page, total_pages + 1):
                if self.cancelled:
                    break

                page_text = extract_page_text(
                    doc,
                    page_number - 1,
                    self.language,
                    min_text_items=self.min_text_items,
                    ocr_scale=self.ocr_scale,
                )
                buffer.append(page_text.rstrip("\n") + "\n")
                pages_processed += 1
                last_page = page_number

                if page_number % self.chunk_size == 0 or page_number == total_pages:
                    chars_appended += self._flush(buffer, last_page, total_pages)
                    buffer = []
                    # Cooperative pause; returns early on cancel
                    self.cancel_event.wait(self.yield_seconds)

            if buffer:
                chars_appended += self._flush(buffer, last_page, total_pages)
        finally:
            doc.close()

        status = "cancelled" if self.cancelled and last_page < total_pages else "completed"
        update_indexing_status(self.document_id, status)

        self.report = IndexingReport(
            document_id=self.document_id,
            status=status,
            pages_processed=pages_processed,
            total_pages=total_pages,
            chars_appended=chars_appended,
        )

        logger.info(
            "deep_indexer.finished",
            document_id=self.document_id,
            status=status,
            pages_processed=pages_processed,
            total_pages=total_pages,
            chars_appended=chars_appended,
        )
        return self.report

    def _flush(self, buffer: list[str], last_page: int, total_pages: int) -> int:
        text = "".join(buffer)
        if not append_full_text(self.document_id, text, indexed_pages=last_page):
            logger.warning("deep_indexer.document_missing", document_id=self.document_id)
            self.cancel_event.set()
            return 0

        progress = round(last_page / total_pages * 100) if total_pages else 100
        logger.debug(
            "deep_indexer.chunk_flushed",
            document_id=self.document_id,
            page=last_page,
            progress=progress,
        )
        if self.on_progress is not None:
            self.on_progress(progress)
        return len(text)

    def _run_guarded(self) -> None:
        # Thread entry point: nothing above this frame would see the error
        try:
            self.run()
        except Exception as e:
            logger.error(
                "deep_indexer.failed",
                document_id=self.document_id,
                error=str(e),
            )
            if get_document(self.document_id) is not None:
                update_indexing_status(self.document_id, "failed")


class IndexerRegistry:
    """Live deep indexing tasks, at most one per document."""

    def __init__(self):
        self._tasks: dict[int, DeepIndexer] = {}
        self._lock = threading.Lock()

    def start(self, indexer: DeepIndexer) -> DeepIndexer:
        """Start a task unless one is already running for the document.

        Finished tasks of other documents are dropped from the registry.
        """
        with self._lock:
            current = self._tasks.get(indexer.document_id)
            if current is not None and current.is_alive():
                logger.info(
                    "deep_indexer.already_running",
                    document_id=indexer.document_id,
                )
                return current
            self._prune()
            self._tasks[indexer.document_id] = indexer
            # Started under the lock so a concurrent prune never sees it unstarted
            return indexer.start()

    def _prune(self) -> None:
        finished = [doc_id for doc_id, task in self._tasks.items() if not task.is_alive()]
        for doc_id in finished:
            del self._tasks[doc_id]

    def get(self, document_id: int) -> DeepIndexer | None:
        with self._lock:
            return self._tasks.get(document_id)

    def is_running(self, document_id: int) -> bool:
        task = self.get(document_id)
        return task is not None and task.is_alive()

    def cancel(self, document_id: int) -> bool:
        """Cancel the running task of a document; False if none is running."""
        task = self.get(document_id)
        if task is None or not task.is_alive():
            return False
        task.cancel()
        return True

    def cancel_all(self) -> None:
        with self._lock:
            tasks = list(self._tasks.values())
        for task in tasks:
            if task.is_alive():
                task.cancel()


# Process-wide registry used by the CLI and web API
registry = IndexerRegistry()


def index_progress(document_id: int) -> dict | None:
    """Indexing state of a document as stored, plus whether a task is live."""
    document = get_document(document_id)
    if document is None:
        return None

    total = document.total_pages
    return {
        "document_id": document_id,
        "status": document.indexing_status,
        "indexed_pages": document.indexed_pages,
        "total_pages": total,
        "progress": round(document.indexed_pages / total * 100) if total else 100,
        "running": registry.is_running(document_id),
    }
