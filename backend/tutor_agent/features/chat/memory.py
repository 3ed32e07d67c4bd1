"""
Chat feature: Conversation memory.

Short-term only: a sliding window of the most recent turns. Older turns are
dropped, not summarized.
"""

from tutor_agent.core.metadata_store import MetadataStore
from tutor_agent.features.chat.schemas import ChatExchange, ChatMessage, MessageRole


class ConversationMemory:
    """Loads bounded history and persists completed exchanges for a chat."""

    def __init__(self, store: MetadataStore, window_size: int = 15):
        if window_size < 0:
            raise ValueError("window_size cannot be negative")
        self.store = store
        self.window_size = window_size

    def load_history(self, chat_id: str) -> list[ChatMessage]:
        """The last `window_size` turns of a chat, oldest first."""
        if self.window_size == 0:
            return []
        return self.store.list_recent_messages(chat_id, self.window_size)

    def save_exchange(
        self,
        chat_id: str,
        question: str,
        answer: str,
        user_id: str | None = None,
    ) -> ChatExchange:
        """Persist the user turn, then the assistant turn, then bump chat activity."""
        user_message = self.store.add_message(chat_id, MessageRole.USER, question, user_id=user_id)
        assistant_message = self.store.add_message(chat_id, MessageRole.ASSISTANT, answer)
        self.store.touch_chat(chat_id)
        return ChatExchange(user_message=user_message, assistant_message=assistant_message)
