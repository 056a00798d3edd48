"""FastAPI application entry point for the content moderator."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from content_moderator import __version__
from content_moderator.api.middleware.logging_middleware import LoggingMiddleware
from content_moderator.api.routes.health import router as health_router
from content_moderator.api.routes.moderation import router as moderation_router
from content_moderator.bootstrap.database import close_database_engine
from content_moderator.bootstrap.logging import configure_logging_from_environment


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Configure logging on startup and release the database on shutdown."""
    configure_logging_from_environment()
    yield
    await close_database_engine()


app = FastAPI(
    title="Content Moderator API",
    description="Manual triggers for the content moderation pipeline",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(LoggingMiddleware)
app.include_router(health_router)
app.include_router(moderation_router)
