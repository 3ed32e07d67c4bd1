"""
Knowledge feature: Vector store contract and its pgvector implementation.

The similarity metric and ranking belong to the store; callers only rely
on results arriving in descending relevance, bounded by ``top_k``, and
restricted by an equality filter over metadata fields.
"""

import logging
from abc import ABC, abstractmethod

from supabase import Client

from tutor_agent.core.exceptions import ProviderError, ValidationError
from tutor_agent.features.knowledge.embedding import is_transient_error
from tutor_agent.features.knowledge.schemas import VectorMatch

logger = logging.getLogger(__name__)

# Metadata fields stored as columns next to the embedding
METADATA_FIELDS = ("document_id", "agent_id", "content", "title", "chunk_index")


def chunk_vector_id(vector_id: str, chunk_index: int) -> str:
    """Record id of one chunk: ``{vector_id}_chunk_{index}``."""
    return f"{vector_id}_chunk_{chunk_index}"


class VectorStore(ABC):
    """Upsert/query/delete vectors with metadata filters."""

    @abstractmethod
    def upsert(self, id: str, vector: list[float], metadata: dict) -> None:
        """Insert or replace one vector record."""

    @abstractmethod
    def query(self, vector: list[float], top_k: int, filter: dict) -> list[VectorMatch]:
        """Return at most ``top_k`` matches satisfying ``filter``, best first."""

    @abstractmethod
    def delete(self, id: str) -> None:
        """Delete one vector record by id."""

    @abstractmethod
    def delete_where(self, filter: dict) -> None:
        """Delete every record whose metadata matches all ``filter`` pairs."""


class SupabaseVectorStore(VectorStore):
    """pgvector-backed store.

    Records live in ``document_vectors``; similarity search goes through
    the ``match_document_vectors`` RPC (cosine similarity, jsonb filter).
    """

    def __init__(self, db: Client, table: str = "document_vectors", match_function: str = "match_document_vectors"):
        self.db = db
        self.table = table
        self.match_function = match_function

    def upsert(self, id: str, vector: list[float], metadata: dict) -> None:
        row = {"id": id, "embedding": vector}
        row.update({key: metadata.get(key) for key in METADATA_FIELDS})
        try:
            self.db.table(self.table).upsert(row).execute()
        except Exception as e:
            raise self._wrap("upsert", e) from e
        logger.debug(f"Upserted vector {id} ({len(vector)} dims)")

    def query(self, vector: list[float], top_k: int, filter: dict) -> list[VectorMatch]:
        try:
            result = self.db.rpc(
                self.match_function,
                {
                    "query_embedding": vector,
                    "match_count": top_k,
                    "filter": filter,
                },
            ).execute()
        except Exception as e:
            raise self._wrap("query", e) from e

        matches = [
            VectorMatch(
                id=row["id"],
                score=row.get("similarity", 0.0),
                metadata={key: row.get(key) for key in METADATA_FIELDS},
            )
            for row in result.data or []
        ]
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:top_k]

    def delete(self, id: str) -> None:
        try:
            self.db.table(self.table).delete().eq("id", id).execute()
        except Exception as e:
            raise self._wrap("delete", e) from e

    def delete_where(self, filter: dict) -> None:
        if not filter:
            raise ValidationError("delete_where requires a non-empty filter")
        query = self.db.table(self.table).delete()
        for key, value in filter.items():
            query = query.eq(key, value)
        try:
            query.execute()
        except Exception as e:
            raise self._wrap("delete", e) from e

    def _wrap(self, operation: str, error: Exception) -> ProviderError:
        logger.error(f"Vector store {operation} failed: {error}")
        return ProviderError("vector_store", str(error), transient=is_transient_error(error))
