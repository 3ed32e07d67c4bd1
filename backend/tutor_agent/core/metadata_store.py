"""
Metadata store: keyed CRUD over the relational tables (agents, documents,
chats, messages) backed by Supabase/PostgREST.
"""

import logging
from datetime import datetime, timezone

from supabase import Client

from tutor_agent.features.agents.schemas import Agent
from tutor_agent.features.chat.schemas import Chat, ChatMessage, MessageRole
from tutor_agent.features.knowledge.schemas import Document, JobStatus

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class MetadataStore:
    """Simple keyed create/read/update/delete plus scoped list queries."""

    def __init__(self, db: Client):
        self.db = db

    def _get_one(self, table: str, record_id: str) -> dict | None:
        result = self.db.table(table).select("*").eq("id", record_id).limit(1).execute()
        return result.data[0] if result.data else None

    # ── Agents ───────────────────────────────────────────

    def get_agent(self, agent_id: str) -> Agent | None:
        row = self._get_one("agents", agent_id)
        return Agent(**row) if row else None

    # ── Documents ────────────────────────────────────────

    def create_document(
        self,
        title: str,
        agent_id: str,
        content: str,
        vector_id: str,
        file_path: str | None = None,
    ) -> Document:
        insert_data = {
            "title": title,
            "agent_id": agent_id,
            "content": content,
            "vector_id": vector_id,
            "file_path": file_path,
            "processing_status": JobStatus.PROCESSING.value,
        }
        result = self.db.table("documents").insert(insert_data).execute()
        return Document(**result.data[0])

    def get_document(self, document_id: str) -> Document | None:
        row = self._get_one("documents", document_id)
        return Document(**row) if row else None

    def set_document_status(self, document_id: str, status: JobStatus) -> None:
        """Record how ingestion of a document ended."""
        self.db.table("documents").update({"processing_status": status.value}).eq("id", document_id).execute()

    def completed_document_ids(self, document_ids: list[str]) -> set[str]:
        """The subset of `document_ids` whose ingestion completed."""
        if not document_ids:
            return set()
        result = (
            self.db.table("documents")
            .select("id")
            .in_("id", list(document_ids))
            .eq("processing_status", JobStatus.COMPLETED.value)
            .execute()
        )
        return {row["id"] for row in result.data or []}

    def list_documents(self, agent_id: str) -> list[Document]:
        """Fully ingested documents of an agent, oldest first."""
        result = (
            self.db.table("documents")
            .select("*")
            .eq("agent_id", agent_id)
            .eq("processing_status", JobStatus.COMPLETED.value)
            .order("created_at")
            .execute()
        )
        return [Document(**row) for row in result.data or []]

    def delete_document(self, document_id: str) -> None:
        self.db.table("documents").delete().eq("id", document_id).execute()

    # ── Chats ────────────────────────────────────────────

    def create_chat(self, user_id: str, agent_id: str, title: str) -> Chat:
        result = (
            self.db.table("chats")
            .insert({"user_id": user_id, "agent_id": agent_id, "title": title})
            .execute()
        )
        return Chat(**result.data[0])

    def get_chat(self, chat_id: str) -> Chat | None:
        row = self._get_one("chats", chat_id)
        return Chat(**row) if row else None

    def list_chats(self, user_id: str) -> list[Chat]:
        """Chats of a user, most recently active first."""
        result = (
            self.db.table("chats")
            .select("*")
            .eq("user_id", user_id)
            .order("updated_at", desc=True)
            .execute()
        )
        return [Chat(**row) for row in result.data or []]

    def touch_chat(self, chat_id: str) -> None:
        """Bump the chat's last-activity timestamp."""
        self.db.table("chats").update({"updated_at": _now_iso()}).eq("id", chat_id).execute()

    def delete_chat(self, chat_id: str) -> None:
        """Delete a chat. Messages are removed by ON DELETE CASCADE."""
        self.db.table("chats").delete().eq("id", chat_id).execute()

    # ── Messages ─────────────────────────────────────────

    def add_message(
        self,
        chat_id: str,
        role: MessageRole,
        content: str,
        user_id: str | None = None,
    ) -> ChatMessage:
        insert_data = {
            "chat_id": chat_id,
            "role": role.value,
            "content": content,
            "user_id": user_id,
        }
        result = self.db.table("messages").insert(insert_data).execute()
        return ChatMessage(**result.data[0])

    def list_messages(self, chat_id: str) -> list[ChatMessage]:
        """Full conversation, oldest first."""
        result = (
            self.db.table("messages")
            .select("*")
            .eq("chat_id", chat_id)
            .order("created_at")
            .execute()
        )
        return [ChatMessage(**row) for row in result.data or []]

    def list_recent_messages(self, chat_id: str, limit: int) -> list[ChatMessage]:
        """The `limit` most recent messages of a chat, returned oldest first."""
        result = (
            self.db.table("messages")
            .select("*")
            .eq("chat_id", chat_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        rows = list(reversed(result.data or []))
        return [ChatMessage(**row) for row in rows]
