"""FastAPI application factory.

Main entry point for the practice tracker Web API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from practice import __version__
from practice.config.logging_config import configure_logging
from practice.db.database import current_db_path, init_db
from practice.security.csrf import CSRFTokenStore
from practice.security.rate_limiter import LoginAttemptTracker, RateLimiter
from practice.web.middleware import register_middleware
from practice.web.responses import register_exception_handlers
from practice.web.routes import (
    ai_router,
    auth_router,
    companies_router,
    contests_router,
    health_router,
    potd_router,
    problems_router,
    study_router,
    todos_router,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    configure_logging()
    init_db()
    logger.info("api_startup", database=str(current_db_path().absolute()))
    yield
    logger.info("api_shutdown", rate_limit_keys=len(app.state.rate_limiter))


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Each app gets its own rate limiter, login tracker and CSRF token store.
    """
    app = FastAPI(
        title="Practice Tracker API",
        description="Coding practice tracker with spaced-repetition reviews",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.rate_limiter = RateLimiter()
    app.state.login_tracker = LoginAttemptTracker()
    app.state.csrf_store = CSRFTokenStore()

    register_exception_handlers(app)
    register_middleware(app)

    # CORS middleware for web clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(problems_router)
    app.include_router(contests_router)
    app.include_router(todos_router)
    app.include_router(study_router)
    app.include_router(ai_router)
    app.include_router(potd_router)
    app.include_router(companies_router)

    return app


# Default app instance for uvicorn
app = create_app()
