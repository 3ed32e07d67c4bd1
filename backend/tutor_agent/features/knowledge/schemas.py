"""
Knowledge feature: Schemas for documents, vectors and ingestion jobs.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    NOT_FOUND = "not_found"


class Document(BaseModel):
    """An uploaded document.

    Only `completed` documents are listed, retrieved from or reported as
    ingested; a `failed` one is kept until deleted so its partial vectors
    can be removed with it.
    """
    id: str
    title: str
    agent_id: str
    content: str
    vector_id: str  # groups every chunk vector of this document
    file_path: str | None = None
    processing_status: JobStatus = JobStatus.PROCESSING
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class DocumentSummary(BaseModel):
    """Document listing entry (without the full extracted text)."""
    id: str
    title: str
    agent_id: str
    vector_id: str
    created_at: datetime | None = None


class VectorMatch(BaseModel):
    """One ranked result of a similarity query."""
    id: str
    score: float
    metadata: dict


class IngestionJob(BaseModel):
    """In-memory snapshot of one upload's ingestion progress.

    Snapshots are frozen; the registry replaces them whole on every change.
    """
    job_id: str
    status: JobStatus = JobStatus.PROCESSING
    progress: int = Field(default=0, ge=0, le=100)
    error: str | None = None
    document_id: str | None = None
    title: str | None = None
    agent_id: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(frozen=True)


class UploadAccepted(BaseModel):
    """Response for an accepted upload: poll the status endpoint with job_id."""
    job_id: str
    status: JobStatus = JobStatus.PROCESSING
    message: str = "Document accepted. Processing in the background."


class JobStatusResponse(BaseModel):
    job_id: str
    status: JobStatus
    progress: int = 0
    document_id: str | None = None
    error: str | None = None
    agent_id: str | None = Field(default=None, exclude=True)  # owner check only
