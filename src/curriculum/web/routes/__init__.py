"""Route handlers for the Web API."""

from curriculum.web.routes.health import router as health_router
from curriculum.web.routes.documents import router as documents_router
from curriculum.web.routes.lessons import router as lessons_router
from curriculum.web.routes.backup import router as backup_router

__all__ = [
    "health_router",
    "documents_router",
    "lessons_router",
    "backup_router",
]
