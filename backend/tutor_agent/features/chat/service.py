"""
Chat feature: Query pipeline (retrieve -> assemble -> generate -> persist)
and chat management.
"""

import logging

from tutor_agent.core.exceptions import (
    AgentNotFoundError,
    AuthorizationError,
    ChatNotFoundError,
    ValidationError,
)
from tutor_agent.core.metadata_store import MetadataStore
from tutor_agent.features.chat.generation import ChatGenerator
from tutor_agent.features.chat.memory import ConversationMemory
from tutor_agent.features.chat.prompts import build_messages
from tutor_agent.features.chat.schemas import Chat, ChatDetail, ChatExchange
from tutor_agent.features.knowledge.retriever import Retriever

logger = logging.getLogger(__name__)


class QueryPipeline:
    """Answers a student's question from an agent's documents."""

    def __init__(
        self,
        store: MetadataStore,
        retriever: Retriever,
        generator: ChatGenerator,
        memory: ConversationMemory,
        top_k: int = 5,
    ):
        self.store = store
        self.retriever = retriever
        self.generator = generator
        self.memory = memory
        self.top_k = top_k

    def respond(self, agent_id: str, chat_id: str, query: str, user_id: str | None = None) -> ChatExchange:
        """Run one question through the pipeline and persist both turns.

        Nothing is persisted unless generation succeeds.

        Raises:
            AgentNotFoundError: Unknown agent.
            ProviderError: Embedding or vector store failure during retrieval.
            GenerationFailedError: The chat model failed.
        """
        agent = self.store.get_agent(agent_id)
        if agent is None:
            logger.error(f"Query failed: agent {agent_id} not found (chat {chat_id})")
            raise AgentNotFoundError(agent_id)

        passages = self.retriever.retrieve(query, agent_id, self.top_k)
        history = self.memory.load_history(chat_id)
        messages = build_messages(agent, passages, history, query)

        logger.debug(
            f"Generating answer for chat {chat_id}: {len(passages)} passages, "
            f"{len(history)} history turns, {len(messages)} messages"
        )
        answer = self.generator.generate(messages)

        exchange = self.memory.save_exchange(chat_id, query, answer, user_id=user_id)
        logger.info(f"Query answered for chat {chat_id} (agent {agent_id}, {len(answer)} chars)")
        return exchange

    def answer(self, agent_id: str, chat_id: str, query: str) -> str:
        """Same as `respond`, returning only the assistant's text."""
        return self.respond(agent_id, chat_id, query).answer


class ChatService:
    """CRUD for chats plus sending messages through the query pipeline."""

    def __init__(self, store: MetadataStore, pipeline: QueryPipeline):
        self.store = store
        self.pipeline = pipeline

    def _get_owned_chat(self, user_id: str, chat_id: str) -> Chat:
        chat = self.store.get_chat(chat_id)
        if chat is None:
            raise ChatNotFoundError(chat_id)
        if chat.user_id != user_id:
            logger.warning(f"User {user_id} tried to access chat {chat_id} owned by {chat.user_id}")
            raise AuthorizationError("Not authorized to access this chat")
        return chat

    def create_chat(self, user_id: str, agent_id: str | None, title: str | None = None) -> Chat:
        if not agent_id:
            raise ValidationError("Agent ID is required")
        if self.store.get_agent(agent_id) is None:
            raise AgentNotFoundError(agent_id)
        chat = self.store.create_chat(user_id, agent_id, title or "New Chat")
        logger.info(f"Chat {chat.id} created for user {user_id} with agent {agent_id}")
        return chat

    def list_chats(self, user_id: str) -> list[Chat]:
        return self.store.list_chats(user_id)

    def get_chat(self, user_id: str, chat_id: str) -> ChatDetail:
        chat = self._get_owned_chat(user_id, chat_id)
        return ChatDetail(chat=chat, messages=self.store.list_messages(chat_id))

    def send_message(self, user_id: str, chat_id: str | None, content: str | None) -> ChatExchange:
        if not chat_id or not content or not content.strip():
            raise ValidationError("Chat ID and content are required")
        chat = self._get_owned_chat(user_id, chat_id)
        return self.pipeline.respond(chat.agent_id, chat_id, content, user_id=user_id)

    def delete_chat(self, user_id: str, chat_id: str) -> None:
        self._get_owned_chat(user_id, chat_id)
        self.store.delete_chat(chat_id)
        logger.info(f"Chat {chat_id} deleted by user {user_id}")
