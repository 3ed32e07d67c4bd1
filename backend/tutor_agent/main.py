"""
Tutor Agent - FastAPI Application Entry Point.

Feature-based modular architecture:
  Each feature in tutor_agent/features/ has its own router, service and schemas.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tutor_agent.config import get_settings
from tutor_agent.core.dependencies import get_ingestion_worker
from tutor_agent.core.exceptions import register_exception_handlers

# ── Feature Routers ──────────────────────────────────────
from tutor_agent.features.chat.router import router as chat_router
from tutor_agent.features.knowledge.router import router as knowledge_router

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup & shutdown."""
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    logger.info(f"🚀 {settings.APP_NAME} v{settings.APP_VERSION} starting...")
    logger.info(f"🤖 LLM Provider: {settings.LLM_PROVIDER} ({settings.LLM_MODEL})")
    logger.info(f"🧮 Embeddings: {settings.EMBEDDING_PROVIDER} ({settings.EMBEDDING_MODEL})")
    yield
    # Only shut the worker down if an upload ever created it
    if get_ingestion_worker.cache_info().currsize:
        logger.info("⏳ Waiting for in-flight ingestion jobs...")
        get_ingestion_worker().shutdown(wait=True)
    logger.info("👋 Shutting down...")


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Subject tutor agents answering from their teachers' documents",
        lifespan=lifespan,
    )

    # ── CORS ─────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # ── Register Feature Routers ─────────────────────────
    app.include_router(knowledge_router, prefix="/api/documents", tags=["Documents"])
    app.include_router(chat_router, prefix="/api/chats", tags=["Chats"])

    # ── Health Check ─────────────────────────────────────
    @app.get("/health", tags=["System"])
    async def health_check():
        return {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
        }

    return app


app = create_app()
