"""
FastAPI dependency injection functions.

Clients and services are process-wide singletons (lru_cache), so the
accept path, the ingestion worker and the status path all share one
JobRegistry.
"""

from functools import lru_cache

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from tutor_agent.background.document_tasks import DocumentIngestionPipeline
from tutor_agent.background.ingestion_worker import IngestionWorker
from tutor_agent.config import get_settings
from tutor_agent.core.database import get_supabase_client
from tutor_agent.core.llm_provider import create_embeddings, create_llm
from tutor_agent.core.metadata_store import MetadataStore
from tutor_agent.core.security import decode_access_token
from tutor_agent.features.chat.generation import ChatGenerator
from tutor_agent.features.chat.memory import ConversationMemory
from tutor_agent.features.chat.service import ChatService, QueryPipeline
from tutor_agent.features.knowledge.embedding import EmbeddingProvider
from tutor_agent.features.knowledge.jobs import (
    DocumentStatusSource,
    JobRegistry,
    RegistryStatusSource,
    StatusResolver,
)
from tutor_agent.features.knowledge.retriever import Retriever
from tutor_agent.features.knowledge.service import DocumentService
from tutor_agent.features.knowledge.storage import FileStorage
from tutor_agent.features.knowledge.vector_store import SupabaseVectorStore, VectorStore

# Bearer token scheme for Swagger UI
bearer_scheme = HTTPBearer()


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> str:
    """Dependency: extract and validate user_id from JWT token.

    Returns:
        str: The user's id.

    Raises:
        HTTPException 401: If token is invalid or expired.
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token does not identify a user",
        )

    return user_id


# ── Shared components ────────────────────────────────────

@lru_cache
def get_metadata_store() -> MetadataStore:
    return MetadataStore(get_supabase_client())


@lru_cache
def get_vector_store() -> VectorStore:
    return SupabaseVectorStore(get_supabase_client())


@lru_cache
def get_file_storage() -> FileStorage:
    return FileStorage(get_supabase_client(), get_settings().STORAGE_BUCKET)


@lru_cache
def get_embedding_provider() -> EmbeddingProvider:
    settings = get_settings()
    return EmbeddingProvider(
        create_embeddings(),
        dimensions=settings.EMBEDDING_DIMENSIONS,
        max_attempts=settings.EMBEDDING_MAX_ATTEMPTS,
        wait_min=settings.EMBEDDING_RETRY_MIN_SECONDS,
        wait_max=settings.EMBEDDING_RETRY_MAX_SECONDS,
    )


@lru_cache
def get_job_registry() -> JobRegistry:
    settings = get_settings()
    return JobRegistry(
        completed_ttl=settings.JOB_RETENTION_COMPLETED_SECONDS,
        failed_ttl=settings.JOB_RETENTION_FAILED_SECONDS,
        maxsize=settings.JOB_REGISTRY_MAX_SIZE,
    )


@lru_cache
def get_ingestion_worker() -> IngestionWorker:
    settings = get_settings()
    pipeline = DocumentIngestionPipeline(
        store=get_metadata_store(),
        vector_store=get_vector_store(),
        embedder=get_embedding_provider(),
        storage=get_file_storage(),
        chunk_size=settings.CHUNK_SIZE,
        chunk_overlap=settings.CHUNK_OVERLAP,
    )
    return IngestionWorker(pipeline, get_job_registry(), max_workers=settings.INGESTION_MAX_WORKERS)


# ── Services ─────────────────────────────────────────────

@lru_cache
def get_document_service() -> DocumentService:
    settings = get_settings()
    store = get_metadata_store()
    registry = get_job_registry()
    resolver = StatusResolver([RegistryStatusSource(registry), DocumentStatusSource(store)])
    return DocumentService(
        store=store,
        vector_store=get_vector_store(),
        storage=get_file_storage(),
        registry=registry,
        worker=get_ingestion_worker(),
        resolver=resolver,
        max_upload_bytes=settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024,
    )


@lru_cache
def get_chat_service() -> ChatService:
    settings = get_settings()
    store = get_metadata_store()
    pipeline = QueryPipeline(
        store=store,
        retriever=Retriever(
            get_embedding_provider(),
            get_vector_store(),
            default_top_k=settings.RETRIEVAL_TOP_K,
            store=store,
        ),
        generator=ChatGenerator(create_llm()),
        memory=ConversationMemory(store, window_size=settings.CHAT_HISTORY_LIMIT),
        top_k=settings.RETRIEVAL_TOP_K,
    )
    return ChatService(store, pipeline)
