"""
Chat feature: Schemas for chats, messages and request/response models.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Chat(BaseModel):
    id: str
    title: str = "New Chat"
    user_id: str
    agent_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None  # last activity


class ChatMessage(BaseModel):
    id: str
    chat_id: str
    role: MessageRole
    content: str
    user_id: str | None = None
    created_at: datetime | None = None


class ChatExchange(BaseModel):
    """The two turns persisted by one successful query."""
    user_message: ChatMessage
    assistant_message: ChatMessage

    @property
    def answer(self) -> str:
        return self.assistant_message.content


class ChatDetail(BaseModel):
    chat: Chat
    messages: list[ChatMessage] = []


class ChatCreate(BaseModel):
    """Request to open a new chat with an agent."""
    agent_id: str | None = None
    title: str | None = None


class SendMessageRequest(BaseModel):
    chat_id: str | None = None
    content: str | None = None
