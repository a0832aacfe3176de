"""Route handlers for the Web API."""

from practice.web.routes.ai import router as ai_router
from practice.web.routes.auth import router as auth_router
from practice.web.routes.companies import router as companies_router
from practice.web.routes.contests import router as contests_router
from practice.web.routes.health import router as health_router
from practice.web.routes.potd import router as potd_router
from practice.web.routes.problems import router as problems_router
from practice.web.routes.study import router as study_router
from practice.web.routes.todos import router as todos_router

__all__ = [
    "ai_router",
    "auth_router",
    "companies_router",
    "contests_router",
    "health_router",
    "potd_router",
    "problems_router",
    "study_router",
    "todos_router",
]
