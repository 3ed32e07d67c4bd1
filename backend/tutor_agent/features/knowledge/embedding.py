"""
Knowledge feature: Embedding provider.
Wraps the LangChain embedding model with per-call retry and error
classification, for use by ingestion and retrieval.
"""

import logging

import httpx
from langchain_core.embeddings import Embeddings
from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from tutor_agent.core.exceptions import ProviderError

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = {408, 409, 429, 500, 502, 503, 504}
TRANSIENT_NAME_HINTS = ("ratelimit", "timeout", "unavailable", "resourceexhausted", "connection")


def is_transient_error(error: BaseException) -> bool:
    """Best-effort guess whether a provider exception is worth retrying."""
    if isinstance(error, ProviderError):
        return error.transient
    if isinstance(error, (httpx.TimeoutException, httpx.NetworkError, TimeoutError, ConnectionError)):
        return True

    status_code = getattr(error, "status_code", None)
    if status_code is None:
        response = getattr(error, "response", None)
        status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        return status_code in TRANSIENT_STATUS_CODES

    name = type(error).__name__.lower()
    return any(hint in name for hint in TRANSIENT_NAME_HINTS)


class EmbeddingProvider:
    """text -> fixed-dimension vector.

    Transient provider failures are retried with exponential backoff;
    permanent ones (invalid input, auth) raise immediately.
    """

    def __init__(
        self,
        model: Embeddings,
        dimensions: int,
        max_attempts: int = 3,
        wait_min: float = 1.0,
        wait_max: float = 20.0,
    ):
        self.model = model
        self.dimensions = dimensions
        self._retrying = Retrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=wait_min, min=wait_min, max=wait_max),
            retry=retry_if_exception(is_transient_error),
            reraise=True,
        )

    def embed(self, text: str) -> list[float]:
        """Embed one document chunk (document-side task type).

        Raises:
            ProviderError: ``transient=False`` for empty input or permanent
                provider errors; ``transient=True`` once retries run out.
        """
        return self._embed(text, as_query=False)

    def embed_query(self, text: str) -> list[float]:
        """Embed a search question (query-side task type)."""
        return self._embed(text, as_query=True)

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed texts one by one, preserving order."""
        return [self.embed(text) for text in texts]

    def _embed(self, text: str, as_query: bool) -> list[float]:
        if not text or not text.strip():
            raise ProviderError("embedding", "Cannot embed empty text", transient=False)

        for attempt in self._retrying.copy():
            with attempt:
                vector = self._call_model(text, as_query)
        return vector

    def _call_model(self, text: str, as_query: bool) -> list[float]:
        # Providers such as Gemini encode queries and documents differently
        try:
            if as_query:
                vector = self.model.embed_query(text)
            else:
                vector = self.model.embed_documents([text])[0]
        except Exception as e:
            transient = is_transient_error(e)
            logger.warning(
                f"Embedding call failed ({'transient' if transient else 'permanent'}): "
                f"{type(e).__name__}: {e}"
            )
            raise ProviderError("embedding", str(e), transient=transient) from e

        # Truncate to the desired dimensionality
        return list(vector[:self.dimensions])
