"""
Agents feature: tutor persona records.
Agents are managed by the teacher dashboard; this app only reads them.
"""

from datetime import datetime

from pydantic import BaseModel


class Agent(BaseModel):
    """A subject-matter tutor persona that owns documents and chats."""
    id: str
    name: str
    subject: str
    description: str | None = None
    teacher_id: str
    created_at: datetime | None = None
