"""Document endpoints: upload, outline and deep indexing."""

import shutil
import tempfile
from pathlib import Path

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from curriculum.config.app_config import load_app_config
from curriculum.core.deep_indexer import index_progress, registry
from curriculum.core.document_ingestor import (
    DocumentIngestionError,
    DuplicateDocumentError,
    ingest_document,
    reanalyze_document,
    resume_indexing,
)
from curriculum.core.page_extractor import PageExtractionError
from curriculum.db.documents_repository import (
    DocumentRecord,
    delete_document,
    get_document,
    list_documents,
)
from curriculum.llm.client import LLMClient
from curriculum.web.schemas import (
    AnalysisAttempt,
    ChapterResponse,
    DocumentDetail,
    DocumentListResponse,
    DocumentSummary,
    IndexStatusResponse,
    IngestionResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/documents", tags=["documents"])


def get_llm_client() -> LLMClient | None:
    """Content-generation client used for structural analysis."""
    return LLMClient()


def get_data_dir() -> Path:
    """Directory where uploaded sources are kept."""
    return load_app_config().data_dir


def _to_detail(document: DocumentRecord) -> DocumentDetail:
    return DocumentDetail(
        document_id=document.document_id,
        title=document.title,
        subject=document.subject,
        grade=document.grade,
        detected_language=document.detected_language,
        outline_summary=document.outline_summary,
        outline_method=document.outline_method,
        chapters=[
            ChapterResponse(title=c.get("title", ""), context=c.get("context", ""))
            for c in document.chapters
        ],
        current_lesson_pointer=document.current_lesson_pointer,
        total_pages=document.total_pages,
        indexed_pages=document.indexed_pages,
        indexing_status=document.indexing_status,
        created_at=document.created_at,
        updated_at=document.updated_at,
    )


def _get_document_or_404(document_id: int) -> DocumentRecord:
    document = get_document(document_id)
    if document is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Document '{document_id}' not found",
        )
    return document


@router.get("", response_model=DocumentListResponse)
async def list_all_documents() -> DocumentListResponse:
    """List all ingested documents."""
    documents = [
        DocumentSummary(
            document_id=d.document_id,
            title=d.title,
            subject=d.subject,
            grade=d.grade,
            detected_language=d.detected_language,
            total_chapters=len(d.chapters),
            current_lesson_pointer=d.current_lesson_pointer,
            indexing_status=d.indexing_status,
        )
        for d in list_documents()
    ]
    return DocumentListResponse(documents=documents, count=len(documents))


@router.post("", response_model=IngestionResponse, status_code=status.HTTP_201_CREATED)
def upload_document(
    file: UploadFile = File(...),
    title: str | None = Form(None),
    subject: str = Form(""),
    grade: str | None = Form(None),
    language: str = Form("en"),
    use_ai: bool = Form(True),
    force: bool = Form(False),
    client: LLMClient | None = Depends(get_llm_client),
    data_dir: Path = Depends(get_data_dir),
) -> IngestionResponse:
    """Upload a PDF or image, recover its outline and start deep indexing."""
    filename = Path(file.filename or "upload").name

    with tempfile.TemporaryDirectory() as tmp:
        upload_path = Path(tmp) / filename
        with open(upload_path, "wb") as out:
            shutil.copyfileobj(file.file, out)

        try:
            result = ingest_document(
                file_path=upload_path,
                title=title,
                subject=subject,
                grade=grade,
                language=language,
                client=client if use_ai else None,
                data_dir=data_dir,
                force=force,
            )
        except DuplicateDocumentError as e:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=str(e),
            )
        except (DocumentIngestionError, PageExtractionError) as e:
            logger.warning("api.ingest_rejected", filename=filename, error=str(e))
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(e),
            )

    document = get_document(result.document_id)
    return IngestionResponse(
        document=_to_detail(document),
        method_used=result.report.method_used,
        attempts=[AnalysisAttempt(**a) for a in result.report.attempts],
        pages_sampled=result.pages_sampled,
        indexing_started=result.indexer is not None,
    )


@router.get("/{document_id}", response_model=DocumentDetail)
async def get_document_detail(document_id: int) -> DocumentDetail:
    """Get a document with its outline."""
    return _to_detail(_get_document_or_404(document_id))


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_document(document_id: int) -> None:
    """Delete a document and its lessons (stops its indexing task)."""
    _get_document_or_404(document_id)
    registry.cancel(document_id)
    delete_document(document_id)
    logger.info("api.document_deleted", document_id=document_id)


@router.post("/{document_id}/reanalyze", response_model=DocumentDetail)
def reanalyze(
    document_id: int,
    use_ai: bool = True,
    client: LLMClient | None = Depends(get_llm_client),
) -> DocumentDetail:
    """Re-run structural analysis on the stored source."""
    _get_document_or_404(document_id)

    try:
        reanalyze_document(document_id, client=client if use_ai else None)
    except (DocumentIngestionError, PageExtractionError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    return _to_detail(get_document(document_id))


@router.get("/{document_id}/index", response_model=IndexStatusResponse)
async def get_index_status(document_id: int) -> IndexStatusResponse:
    """Deep indexing progress."""
    progress = index_progress(document_id)
    if progress is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Document '{document_id}' not found",
        )
    return IndexStatusResponse(**progress)


@router.post(
    "/{document_id}/index",
    response_model=IndexStatusResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def start_indexing(document_id: int) -> IndexStatusResponse:
    """Resume deep indexing in the background."""
    _get_document_or_404(document_id)
    resume_indexing(document_id)
    return IndexStatusResponse(**index_progress(document_id))


@router.delete("/{document_id}/index", response_model=IndexStatusResponse)
async def cancel_indexing(document_id: int) -> IndexStatusResponse:
    """Cancel the running indexing task, if any."""
    _get_document_or_404(document_id)
    registry.cancel(document_id)
    return IndexStatusResponse(**index_progress(document_id))
