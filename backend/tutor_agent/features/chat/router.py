"""
Chat feature: Chat API routes.
"""

from fastapi import APIRouter, Depends, status

from tutor_agent.core.dependencies import get_chat_service, get_current_user_id
from tutor_agent.features.chat.schemas import ChatCreate, SendMessageRequest
from tutor_agent.features.chat.service import ChatService

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_chat(
    data: ChatCreate,
    user_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """Open a new chat with an agent."""
    chat = service.create_chat(user_id, data.agent_id, data.title)
    return {"message": "Chat created successfully", "chat": chat}


@router.get("")
def list_chats(
    user_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """List the current user's chats, most recently active first."""
    return {"chats": service.list_chats(user_id)}


@router.post("/message")
def send_message(
    data: SendMessageRequest,
    user_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """Ask the chat's agent a question.

    Runs synchronously: retrieval, generation and persistence of both turns.
    """
    exchange = service.send_message(user_id, data.chat_id, data.content)
    return {"messages": [exchange.user_message, exchange.assistant_message]}


@router.get("/{chat_id}")
def get_chat(
    chat_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """Load a chat and all of its messages in order."""
    return service.get_chat(user_id, chat_id)


@router.delete("/{chat_id}")
def delete_chat(
    chat_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """Delete a chat and all its messages (via ON DELETE CASCADE)."""
    service.delete_chat(user_id, chat_id)
    return {"message": "Chat deleted successfully"}
