"""FastAPI application factory.

Main entry point for the Curriculum Pipeline Web API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from curriculum.config.app_config import load_app_config
from curriculum.core.deep_indexer import registry
from curriculum.db.database import init_db
from curriculum.db.documents_repository import list_documents
from curriculum.web.routes import (
    backup_router,
    documents_router,
    health_router,
    lessons_router,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    # Startup
    config = load_app_config()
    init_db(config.db_path)
    documents = list_documents()
    logger.info(
        "api_startup",
        documents_found=len(documents),
        db_path=str(config.db_path.absolute()),
        pending_indexing=[
            d.document_id for d in documents if d.indexing_status in ("pending", "running")
        ],
    )
    yield
    # Shutdown: stop background indexing at the next page boundary
    registry.cancel_all()
    logger.info("api_shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="Curriculum Pipeline API",
        description="Textbook ingestion and adaptive lesson scheduling",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(documents_router)
    app.include_router(lessons_router)
    app.include_router(backup_router)

    return app


# Default app instance for uvicorn
app = create_app()
