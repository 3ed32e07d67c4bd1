"""
Chat feature: Generation provider backed by a LangChain chat model.
"""

import logging

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from tutor_agent.core.exceptions import GenerationFailedError
from tutor_agent.features.knowledge.embedding import is_transient_error

logger = logging.getLogger(__name__)

_MESSAGE_TYPES = {
    "system": SystemMessage,
    "user": HumanMessage,
    "assistant": AIMessage,
}


def to_langchain_messages(messages: list[dict]) -> list[BaseMessage]:
    """Convert ``{role, content}`` dicts to LangChain message objects."""
    converted = []
    for msg in messages:
        message_type = _MESSAGE_TYPES.get(msg["role"])
        if message_type is None:
            raise ValueError(f"Unknown message role: {msg['role']}")
        converted.append(message_type(content=msg["content"]))
    return converted


def extract_text(content) -> str:
    """Flatten model output, including Gemini's structured content blocks."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part if isinstance(part, str) else part.get("text", "")
            for part in content
            if isinstance(part, str) or (isinstance(part, dict) and part.get("type", "text") == "text")
        )
    return str(content)


class ChatGenerator:
    """messages -> assistant text. No retries: callers re-issue the query."""

    def __init__(self, llm: BaseChatModel):
        self.llm = llm

    def generate(self, messages: list[dict]) -> str:
        try:
            response = self.llm.invoke(to_langchain_messages(messages))
        except Exception as e:
            logger.error(f"Generation failed: {type(e).__name__}: {e}")
            raise GenerationFailedError(str(e), transient=is_transient_error(e)) from e

        text = extract_text(response.content)
        usage = getattr(response, "usage_metadata", None) or {}
        logger.debug(f"Generated {len(text)} characters (tokens used: {usage.get('total_tokens')})")
        return text
