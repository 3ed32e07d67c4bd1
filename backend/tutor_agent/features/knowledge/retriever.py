"""
Knowledge feature: scoped similarity search over an agent's documents.
"""

import logging

from tutor_agent.core.exceptions import ValidationError
from tutor_agent.core.metadata_store import MetadataStore
from tutor_agent.features.knowledge.embedding import EmbeddingProvider
from tutor_agent.features.knowledge.vector_store import VectorStore

logger = logging.getLogger(__name__)


class Retriever:
    """Embeds a question and returns the most similar passages of one agent.

    With a metadata store, passages from documents whose ingestion has not
    completed (still running, or failed part-way) are skipped.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        vector_store: VectorStore,
        default_top_k: int = 5,
        store: MetadataStore | None = None,
    ):
        self.embedder = embedder
        self.vector_store = vector_store
        self.default_top_k = default_top_k
        self.store = store

    def retrieve(self, query: str, agent_id: str, top_k: int | None = None) -> list[str]:
        """Semantic search across the chunks of an agent's documents.

        Args:
            query: Natural language question.
            agent_id: Agent scope; only its vectors are ever returned.
            top_k: Number of passages to return (defaults to the configured value).

        Returns:
            Passage texts in ranking order.
        """
        top_k = self.default_top_k if top_k is None else top_k
        if top_k < 1:
            raise ValidationError("top_k must be at least 1", detail=f"top_k={top_k}")
        if not agent_id:
            raise ValidationError("Agent ID is required for retrieval")

        query_vector = self.embedder.embed_query(query)
        matches = self.vector_store.query(query_vector, top_k, {"agent_id": agent_id})

        scoped = []
        for match in matches[:top_k]:
            if match.metadata.get("agent_id") != agent_id:
                logger.warning(
                    f"Dropping vector {match.id} from agent {match.metadata.get('agent_id')} "
                    f"returned for agent {agent_id}"
                )
                continue
            scoped.append(match)

        if self.store is not None and scoped:
            document_ids = {m.metadata.get("document_id") for m in scoped}
            ingested = self.store.completed_document_ids(sorted(d for d in document_ids if d))
            skipped = [m.id for m in scoped if m.metadata.get("document_id") not in ingested]
            if skipped:
                logger.debug(f"Skipping {len(skipped)} vectors of documents not fully ingested")
            scoped = [m for m in scoped if m.metadata.get("document_id") in ingested]

        logger.debug(
            f"Retrieved {len(scoped)} passages for agent {agent_id} "
            f"(top score: {matches[0].score if matches else None})"
        )
        return [m.metadata.get("content") or "" for m in scoped]
