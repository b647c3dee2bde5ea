"""Backup and restore endpoints."""

from typing import Any

import structlog
from fastapi import APIRouter, Body, HTTPException, status

from curriculum.core.backup import (
    BackupFormatError,
    export_backup,
    restore_backup,
    validate_backup,
)
from curriculum.core.deep_indexer import registry
from curriculum.web.schemas import RestoreResponse

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/backup", tags=["backup"])


@router.get("")
def download_backup() -> dict[str, Any]:
    """Snapshot of all documents and lessons."""
    return export_backup()


@router.post("/restore", response_model=RestoreResponse)
def upload_backup(data: Any = Body(...)) -> RestoreResponse:
    """Replace all documents and lessons with a snapshot.

    The snapshot is validated first; an invalid file changes nothing.
    """
    try:
        validate_backup(data)
        # Running tasks would write into documents that are about to be replaced
        registry.cancel_all()
        counts = restore_backup(data)
    except BackupFormatError as e:
        logger.warning("api.restore_rejected", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    return RestoreResponse(**counts)
