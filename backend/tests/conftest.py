"""
Shared fixtures: in-memory stand-ins for Supabase, the vector index,
file storage and the model providers.
"""

import os
import uuid
from datetime import datetime, timedelta, timezone

os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")

import pytest
from langchain_core.embeddings import Embeddings

from tutor_agent.core.exceptions import ProviderError
from tutor_agent.features.agents.schemas import Agent
from tutor_agent.features.chat.schemas import Chat, ChatMessage, MessageRole
from tutor_agent.features.knowledge.embedding import EmbeddingProvider
from tutor_agent.features.knowledge.schemas import Document, JobStatus, VectorMatch
from tutor_agent.features.knowledge.vector_store import VectorStore

TEACHER_ID = "teacher-1"
STUDENT_ID = "student-1"
AGENT_ID = "agent-physics"
OTHER_AGENT_ID = "agent-history"


class FakeMetadataStore:
    """Mirrors MetadataStore over plain dicts, with strictly increasing timestamps."""

    def __init__(self):
        self.agents: dict[str, Agent] = {}
        self.documents: dict[str, Document] = {}
        self.chats: dict[str, Chat] = {}
        self.messages: list[ChatMessage] = []
        self.touched: list[str] = []
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _now(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def add_agent(self, agent_id: str, teacher_id: str = TEACHER_ID, **fields) -> Agent:
        agent = Agent(
            id=agent_id,
            name=fields.get("name", "Professor Newton"),
            subject=fields.get("subject", "Physics"),
            description=fields.get("description", "A patient physics tutor."),
            teacher_id=teacher_id,
        )
        self.agents[agent_id] = agent
        return agent

    def get_agent(self, agent_id):
        return self.agents.get(agent_id)

    def create_document(self, title, agent_id, content, vector_id, file_path=None):
        document = Document(
            id=str(uuid.uuid4()),
            title=title,
            agent_id=agent_id,
            content=content,
            vector_id=vector_id,
            file_path=file_path,
            processing_status=JobStatus.PROCESSING,
            created_at=self._now(),
        )
        self.documents[document.id] = document
        return document

    def add_ingested_document(self, title, agent_id, content, vector_id, file_path=None):
        document = self.create_document(title, agent_id, content, vector_id, file_path)
        self.set_document_status(document.id, JobStatus.COMPLETED)
        return self.documents[document.id]

    def set_document_status(self, document_id, status):
        document = self.documents.get(document_id)
        if document is not None:
            self.documents[document_id] = document.model_copy(update={"processing_status": status})

    def completed_document_ids(self, document_ids):
        return {d for d in document_ids
                if d in self.documents and self.documents[d].processing_status == JobStatus.COMPLETED}

    def get_document(self, document_id):
        return self.documents.get(document_id)

    def list_documents(self, agent_id):
        return [d for d in self.documents.values()
                if d.agent_id == agent_id and d.processing_status == JobStatus.COMPLETED]

    def delete_document(self, document_id):
        self.documents.pop(document_id, None)

    def create_chat(self, user_id, agent_id, title):
        now = self._now()
        chat = Chat(id=str(uuid.uuid4()), title=title, user_id=user_id, agent_id=agent_id,
                    created_at=now, updated_at=now)
        self.chats[chat.id] = chat
        return chat

    def get_chat(self, chat_id):
        return self.chats.get(chat_id)

    def list_chats(self, user_id):
        chats = [c for c in self.chats.values() if c.user_id == user_id]
        return sorted(chats, key=lambda c: c.updated_at, reverse=True)

    def touch_chat(self, chat_id):
        self.touched.append(chat_id)
        chat = self.chats.get(chat_id)
        if chat is not None:
            self.chats[chat_id] = chat.model_copy(update={"updated_at": self._now()})

    def delete_chat(self, chat_id):
        self.chats.pop(chat_id, None)
        self.messages = [m for m in self.messages if m.chat_id != chat_id]

    def add_message(self, chat_id, role, content, user_id=None):
        message = ChatMessage(id=str(uuid.uuid4()), chat_id=chat_id, role=role,
                              content=content, user_id=user_id, created_at=self._now())
        self.messages.append(message)
        return message

    def list_messages(self, chat_id):
        return [m for m in self.messages if m.chat_id == chat_id]

    def list_recent_messages(self, chat_id, limit):
        return self.list_messages(chat_id)[-limit:]


class InMemoryVectorStore(VectorStore):
    """Dot-product ranking over a dict; records every query filter it receives."""

    def __init__(self):
        self.records: dict[str, tuple[list[float], dict]] = {}
        self.queries: list[dict] = []

    def upsert(self, id, vector, metadata):
        self.records[id] = (list(vector), dict(metadata))

    def query(self, vector, top_k, filter):
        self.queries.append(dict(filter))
        matches = []
        for record_id, (stored, metadata) in self.records.items():
            if all(metadata.get(k) == v for k, v in filter.items()):
                score = sum(a * b for a, b in zip(vector, stored))
                matches.append(VectorMatch(id=record_id, score=score, metadata=metadata))
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:top_k]

    def delete(self, id):
        self.records.pop(id, None)

    def delete_where(self, filter):
        for record_id in [rid for rid, (_, meta) in self.records.items()
                          if all(meta.get(k) == v for k, v in filter.items())]:
            del self.records[record_id]


class FakeFileStorage:
    def __init__(self):
        self.files: dict[str, bytes] = {}
        self.fail_remove = False

    def save(self, path, data, content_type=None):
        self.files[path] = data
        return path

    def read(self, path):
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    def remove(self, path):
        if self.fail_remove:
            raise OSError("storage unavailable")
        self.files.pop(path, None)


class ScriptedEmbeddings(Embeddings):
    """Length-based 4-dim vectors; can fail on chosen calls (1-based)."""

    def __init__(self, fail_on_calls: set[int] | None = None, error: Exception | None = None):
        self.calls = 0
        self.fail_on_calls = fail_on_calls or set()
        self.error = error or RuntimeError("invalid input")

    def embed_query(self, text: str) -> list[float]:
        self.calls += 1
        if self.calls in self.fail_on_calls:
            raise self.error
        return [float(len(text)), 1.0, 0.5, 0.25, 99.0]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self.embed_query(t) for t in texts]


class FakeGenerator:
    def __init__(self, reply: str = "Energy is conserved.", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls: list[list[dict]] = []

    def generate(self, messages):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return self.reply


class ManualClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_embedder(model: Embeddings | None = None, max_attempts: int = 1, dimensions: int = 4) -> EmbeddingProvider:
    return EmbeddingProvider(
        model or ScriptedEmbeddings(),
        dimensions=dimensions,
        max_attempts=max_attempts,
        wait_min=0,
        wait_max=0,
    )


@pytest.fixture
def store() -> FakeMetadataStore:
    store = FakeMetadataStore()
    store.add_agent(AGENT_ID)
    store.add_agent(OTHER_AGENT_ID, name="Ms. Tudor", subject="History")
    return store


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def file_storage() -> FakeFileStorage:
    return FakeFileStorage()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def transient_error() -> ProviderError:
    return ProviderError("embedding", "rate limited", transient=True)
