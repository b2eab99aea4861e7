"""Agora API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map AgoraError -> structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Repository, handler context and dispatcher built once in the lifespan
      and kept on app.state

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - build_handler_context() is shared by the lifespan and by tooling that
      wants the core without HTTP
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agora.api.error_handlers import register_error_handlers
from agora.api.routes import health, requests
from agora.config import Settings, get_settings
from agora.infrastructure.database import DatabaseSessionManager
from agora.infrastructure.memory_repository import InMemoryRepository
from agora.infrastructure.notification_sink import LoggingNotificationSink
from agora.infrastructure.observability import setup_logging
from agora.infrastructure.sql_repository import SqlRepository
from agora.services.handler_context import HandlerContext
from agora.services.request_dispatch import build_dispatch

logger = logging.getLogger(__name__)


def build_handler_context(
    settings: Settings, db_manager: DatabaseSessionManager | None = None,
) -> HandlerContext:
    repository = SqlRepository(db_manager) if db_manager else InMemoryRepository()
    return HandlerContext(
        repository=repository,
        notifications=LoggingNotificationSink(),
        policy=settings.core_policy(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    db_manager = None
    if settings.repository_backend == "sql":
        db_manager = DatabaseSessionManager(
            settings.database_url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
        )
    app.state.db_manager = db_manager
    app.state.dispatch = build_dispatch(build_handler_context(settings, db_manager))
    logger.info(f"Agora API started ({settings.repository_backend} repository)")
    yield
    logger.info("Agora API shutting down")
    if db_manager is not None:
        await db_manager.dispose()


app = FastAPI(title="Agora API", version="1.0.0", lifespan=lifespan)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes: explicit registration
app.include_router(health.router)
app.include_router(requests.router)

register_error_handlers(app)
