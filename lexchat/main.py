"""
LexChat - Main Application Entry Point

Streaming legal-assistant chat core behind a FastAPI surface.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lexchat.core.config import get_settings
from lexchat.core.logger import setup_logger

logger = setup_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    settings = get_settings()
    logger.info(f"Starting LexChat in {settings.ENVIRONMENT} mode...")

    yield

    # Shutdown: conversations cross the persistence boundary here
    logger.info("Shutting down LexChat...")
    from lexchat.api.deps import get_chat_backend, get_view_registry

    if get_view_registry.cache_info().currsize:
        await get_view_registry().shutdown()
    if get_chat_backend.cache_info().currsize:
        backend = get_chat_backend()
        aclose = getattr(backend, "aclose", None)
        if aclose is not None:
            await aclose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="LexChat",
        description="Streaming chat core for the AI legal assistant",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from lexchat.api import chat

    app.include_router(chat.router, prefix="/api/chat", tags=["chat"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "environment": settings.ENVIRONMENT,
            "version": "0.1.0"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "lexchat.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
