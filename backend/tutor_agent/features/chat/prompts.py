"""
Chat feature: System prompt and context assembly.
"""

from tutor_agent.features.agents.schemas import Agent
from tutor_agent.features.chat.schemas import ChatMessage, MessageRole

CONTEXT_SEPARATOR = "\n\n"

SYSTEM_PROMPT_TEMPLATE = """You are an educational AI assistant focused on {subject}.
Your name is {name}.
{description}

Use the following context information to answer the student's question:
{context}

If you don't know the answer based on the provided context, say so clearly but try to provide helpful related information. Always be supportive and encouraging to students."""


def build_context(passages: list[str]) -> str:
    """Join retrieved passages in ranking order."""
    return CONTEXT_SEPARATOR.join(passages)


def build_system_prompt(agent: Agent, context: str) -> str:
    """Persona fields plus the retrieved context block."""
    return SYSTEM_PROMPT_TEMPLATE.format(
        subject=agent.subject,
        name=agent.name,
        description=agent.description or "",
        context=context,
    )


def build_messages(
    agent: Agent,
    passages: list[str],
    history: list[ChatMessage],
    query: str,
) -> list[dict]:
    """Ordered generation input: system, prior turns (oldest first), new question."""
    messages = [{"role": "system", "content": build_system_prompt(agent, build_context(passages))}]
    for msg in history:
        role = "user" if msg.role == MessageRole.USER else "assistant"
        messages.append({"role": role, "content": msg.content})
    messages.append({"role": "user", "content": query})
    return messages
