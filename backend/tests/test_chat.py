"""Unit tests for prompt assembly, generation, memory and the chat services."""

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from conftest import AGENT_ID, OTHER_AGENT_ID, STUDENT_ID, FakeGenerator, make_embedder
from tutor_agent.core.exceptions import (
    AgentNotFoundError,
    AuthorizationError,
    ChatNotFoundError,
    GenerationFailedError,
    ValidationError,
)
from tutor_agent.features.chat.generation import ChatGenerator, extract_text, to_langchain_messages
from tutor_agent.features.chat.memory import ConversationMemory
from tutor_agent.features.chat.prompts import build_messages
from tutor_agent.features.chat.schemas import MessageRole
from tutor_agent.features.chat.service import ChatService, QueryPipeline
from tutor_agent.features.knowledge.retriever import Retriever

PHYSICS_PASSAGES = ["Energy cannot be created or destroyed.", "Work equals force times distance."]


@pytest.fixture
def seeded_vectors(vector_store):
    for i, text in enumerate(PHYSICS_PASSAGES):
        vector_store.upsert(f"phys_chunk_{i}", [10.0 - i, 1.0, 0.5, 0.25],
                            {"agent_id": AGENT_ID, "document_id": "doc-phys", "content": text})
    vector_store.upsert("hist_chunk_0", [100.0, 1.0, 0.5, 0.25],
                        {"agent_id": OTHER_AGENT_ID, "document_id": "doc-hist",
                         "content": "The Magna Carta was sealed in 1215."})
    return vector_store


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def make_pipeline(store, seeded_vectors, generator):
    def factory(window_size=15, gen=None):
        return QueryPipeline(
            store=store,
            retriever=Retriever(make_embedder(), seeded_vectors),
            generator=gen or generator,
            memory=ConversationMemory(store, window_size=window_size),
            top_k=5,
        )
    return factory


@pytest.fixture
def chat(store):
    return store.create_chat(STUDENT_ID, AGENT_ID, "Energy questions")


def _add_turns(store, chat_id, count):
    for i in range(count):
        role = MessageRole.USER if i % 2 == 0 else MessageRole.ASSISTANT
        store.add_message(chat_id, role, f"turn {i}")


class TestPrompts:
    def test_message_order_and_roles(self, store, chat):
        agent = store.get_agent(AGENT_ID)
        _add_turns(store, chat.id, 2)
        messages = build_messages(agent, PHYSICS_PASSAGES, store.list_messages(chat.id), "What is work?")

        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert messages[-1]["content"] == "What is work?"
        system = messages[0]["content"]
        assert "Physics" in system
        assert "Professor Newton" in system
        assert "A patient physics tutor." in system
        assert "\n\n".join(PHYSICS_PASSAGES) in system

    def test_empty_context_still_builds(self, store):
        messages = build_messages(store.get_agent(AGENT_ID), [], [], "Hello?")
        assert len(messages) == 2


class TestGeneration:
    def test_converts_roles(self):
        converted = to_langchain_messages([
            {"role": "system", "content": "s"},
            {"role": "user", "content": "u"},
            {"role": "assistant", "content": "a"},
        ])
        assert [type(m) for m in converted] == [SystemMessage, HumanMessage, AIMessage]

    def test_unknown_role(self):
        with pytest.raises(ValueError):
            to_langchain_messages([{"role": "tool", "content": "x"}])

    def test_generate_returns_model_text(self):
        generator = ChatGenerator(FakeListChatModel(responses=["F = ma"]))
        assert generator.generate([{"role": "user", "content": "Newton's second law?"}]) == "F = ma"

    def test_model_errors_become_generation_failed(self):
        class BrokenModel:
            def invoke(self, messages):
                raise TimeoutError("model timed out")

        with pytest.raises(GenerationFailedError) as exc:
            ChatGenerator(BrokenModel()).generate([{"role": "user", "content": "hi"}])
        assert exc.value.transient is True
        assert "timed out" in exc.value.detail

    def test_extract_text_from_content_blocks(self):
        content = [{"type": "text", "text": "Hello "}, {"type": "image_url", "url": "x"}, "world"]
        assert extract_text(content) == "Hello world"


class TestConversationMemory:
    def test_window_keeps_most_recent_turns_oldest_first(self, store, chat):
        _add_turns(store, chat.id, 20)
        history = ConversationMemory(store, window_size=15).load_history(chat.id)
        assert [m.content for m in history] == [f"turn {i}" for i in range(5, 20)]

    def test_zero_window(self, store, chat):
        _add_turns(store, chat.id, 4)
        assert ConversationMemory(store, window_size=0).load_history(chat.id) == []

    def test_negative_window_rejected(self, store):
        with pytest.raises(ValueError):
            ConversationMemory(store, window_size=-1)


class TestQueryPipeline:
    def test_answer_uses_only_the_agents_passages(self, make_pipeline, generator, seeded_vectors, chat):
        answer = make_pipeline().answer(AGENT_ID, chat.id, "Is energy conserved?")

        assert answer == "Energy is conserved."
        system = generator.calls[0][0]["content"]
        assert PHYSICS_PASSAGES[0] in system
        assert "Magna Carta" not in system
        assert seeded_vectors.queries == [{"agent_id": AGENT_ID}]

    def test_history_window_bounds_generation_input(self, make_pipeline, generator, store, chat):
        _add_turns(store, chat.id, 20)
        make_pipeline().respond(AGENT_ID, chat.id, "Next question")

        messages = generator.calls[0]
        assert len(messages) == 17
        assert messages[1]["content"] == "turn 5"
        assert messages[-2]["content"] == "turn 19"

    def test_success_persists_user_then_assistant(self, make_pipeline, store, chat):
        exchange = make_pipeline().respond(AGENT_ID, chat.id, "What is power?", user_id=STUDENT_ID)

        stored = store.list_messages(chat.id)
        assert [(m.role, m.content) for m in stored] == [
            (MessageRole.USER, "What is power?"),
            (MessageRole.ASSISTANT, "Energy is conserved."),
        ]
        assert stored[0].user_id == STUDENT_ID
        assert exchange.answer == "Energy is conserved."
        assert store.touched == [chat.id]

    def test_generation_failure_persists_nothing(self, make_pipeline, store, chat):
        failing = FakeGenerator(error=GenerationFailedError("upstream 503", transient=True))
        with pytest.raises(GenerationFailedError):
            make_pipeline(gen=failing).respond(AGENT_ID, chat.id, "Hello?")
        assert store.list_messages(chat.id) == []
        assert store.touched == []

    def test_unknown_agent(self, make_pipeline, generator, chat):
        with pytest.raises(AgentNotFoundError):
            make_pipeline().respond("agent-missing", chat.id, "Hello?")
        assert generator.calls == []


class TestChatService:
    @pytest.fixture
    def service(self, store, make_pipeline) -> ChatService:
        return ChatService(store, make_pipeline())

    def test_create_chat_defaults_title(self, service):
        chat = service.create_chat(STUDENT_ID, AGENT_ID)
        assert chat.title == "New Chat"
        assert chat.user_id == STUDENT_ID

    def test_create_chat_requires_agent(self, service):
        with pytest.raises(ValidationError):
            service.create_chat(STUDENT_ID, None)
        with pytest.raises(AgentNotFoundError):
            service.create_chat(STUDENT_ID, "agent-missing")

    def test_list_chats_most_recent_first(self, service):
        first = service.create_chat(STUDENT_ID, AGENT_ID, "first")
        second = service.create_chat(STUDENT_ID, AGENT_ID, "second")
        service.create_chat("someone-else", AGENT_ID)
        assert [c.id for c in service.list_chats(STUDENT_ID)] == [second.id, first.id]

        service.send_message(STUDENT_ID, first.id, "Bump me")
        assert [c.id for c in service.list_chats(STUDENT_ID)] == [first.id, second.id]

    def test_send_message_and_get_chat(self, service, chat):
        exchange = service.send_message(STUDENT_ID, chat.id, "What is energy?")
        detail = service.get_chat(STUDENT_ID, chat.id)
        assert detail.chat.id == chat.id
        assert [m.id for m in detail.messages] == [exchange.user_message.id, exchange.assistant_message.id]

    @pytest.mark.parametrize("chat_id, content", [(None, "hi"), ("chat", None), ("chat", "   ")])
    def test_send_message_validation(self, service, chat_id, content):
        with pytest.raises(ValidationError):
            service.send_message(STUDENT_ID, chat_id, content)

    def test_other_users_chat_is_forbidden(self, service, chat, generator):
        with pytest.raises(AuthorizationError):
            service.send_message("intruder", chat.id, "hi")
        with pytest.raises(AuthorizationError):
            service.get_chat("intruder", chat.id)
        with pytest.raises(AuthorizationError):
            service.delete_chat("intruder", chat.id)
        assert generator.calls == []

    def test_missing_chat(self, service):
        with pytest.raises(ChatNotFoundError):
            service.get_chat(STUDENT_ID, "chat-missing")

    def test_delete_chat_removes_messages(self, service, store, chat):
        service.send_message(STUDENT_ID, chat.id, "What is energy?")
        service.delete_chat(STUDENT_ID, chat.id)
        assert store.get_chat(chat.id) is None
        assert store.list_messages(chat.id) == []
