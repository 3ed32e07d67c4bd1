"""
Provider-agnostic model factories.

The chat model and the embedding model are picked from env vars:
  LLM_PROVIDER=gemini | openai | groq          (answers)
  EMBEDDING_PROVIDER=gemini | openai           (ingestion + retrieval)

SDK-level retries are switched off: EmbeddingProvider owns the retry policy
for embeddings, and generation failures go straight back to the caller.
"""

from langchain_core.embeddings import Embeddings
from langchain_core.language_models import BaseChatModel

from tutor_agent.config import Settings, get_settings


def _gemini_chat(settings: Settings) -> BaseChatModel:
    from langchain_google_genai import ChatGoogleGenerativeAI

    return ChatGoogleGenerativeAI(
        model=settings.LLM_MODEL,
        google_api_key=settings.LLM_API_KEY,
        temperature=settings.LLM_TEMPERATURE,
        max_output_tokens=settings.LLM_MAX_TOKENS,
        timeout=settings.LLM_TIMEOUT_SECONDS,
        max_retries=0,
    )


def _openai_chat(settings: Settings) -> BaseChatModel:
    from langchain_openai import ChatOpenAI

    return ChatOpenAI(
        model=settings.LLM_MODEL,
        api_key=settings.LLM_API_KEY,
        temperature=settings.LLM_TEMPERATURE,
        max_tokens=settings.LLM_MAX_TOKENS,
        timeout=settings.LLM_TIMEOUT_SECONDS,
        max_retries=0,
    )


def _groq_chat(settings: Settings) -> BaseChatModel:
    from langchain_groq import ChatGroq

    return ChatGroq(
        model=settings.LLM_MODEL,
        api_key=settings.LLM_API_KEY,
        temperature=settings.LLM_TEMPERATURE,
        max_tokens=settings.LLM_MAX_TOKENS,
        timeout=settings.LLM_TIMEOUT_SECONDS,
        max_retries=0,
    )


def _gemini_embeddings(settings: Settings) -> Embeddings:
    from langchain_google_genai import GoogleGenerativeAIEmbeddings

    # No fixed task_type: embed_query and embed_documents pick the query/document one
    return GoogleGenerativeAIEmbeddings(
        model=f"models/{settings.EMBEDDING_MODEL}",
        google_api_key=settings.LLM_API_KEY,
    )


def _openai_embeddings(settings: Settings) -> Embeddings:
    from langchain_openai import OpenAIEmbeddings

    return OpenAIEmbeddings(
        model=settings.EMBEDDING_MODEL,
        api_key=settings.LLM_API_KEY,
        dimensions=settings.EMBEDDING_DIMENSIONS,
        max_retries=0,
    )


CHAT_PROVIDERS = {
    "gemini": _gemini_chat,
    "openai": _openai_chat,
    "groq": _groq_chat,
}

EMBEDDING_PROVIDERS = {
    "gemini": _gemini_embeddings,
    "openai": _openai_embeddings,
}


def create_llm() -> BaseChatModel:
    """Chat model used to answer questions.

    Raises:
        ValueError: If LLM_PROVIDER is not supported.
    """
    settings = get_settings()
    factory = CHAT_PROVIDERS.get(settings.LLM_PROVIDER)
    if factory is None:
        raise ValueError(
            f"Unknown LLM provider: '{settings.LLM_PROVIDER}'. "
            f"Supported: {', '.join(CHAT_PROVIDERS)}"
        )
    return factory(settings)


def create_embeddings() -> Embeddings:
    """Embedding model shared by ingestion and retrieval.

    Raises:
        ValueError: If EMBEDDING_PROVIDER is not supported.
    """
    settings = get_settings()
    factory = EMBEDDING_PROVIDERS.get(settings.EMBEDDING_PROVIDER)
    if factory is None:
        raise ValueError(
            f"Unknown embedding provider: '{settings.EMBEDDING_PROVIDER}'. "
            f"Supported: {', '.join(EMBEDDING_PROVIDERS)}"
        )
    return factory(settings)
