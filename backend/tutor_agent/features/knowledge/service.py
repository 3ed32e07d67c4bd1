"""
Knowledge feature: Service layer for document uploads, ingestion status
and document management.
"""

import logging
import uuid

from tutor_agent.background.document_tasks import ALLOWED_EXTENSIONS, IngestionRequest
from tutor_agent.background.ingestion_worker import IngestionWorker
from tutor_agent.core.exceptions import (
    AgentNotFoundError,
    AuthorizationError,
    DocumentNotFoundError,
    ValidationError,
)
from tutor_agent.core.metadata_store import MetadataStore
from tutor_agent.features.agents.schemas import Agent
from tutor_agent.features.knowledge.jobs import JobRegistry, StatusResolver
from tutor_agent.features.knowledge.schemas import Document, JobStatusResponse, UploadAccepted
from tutor_agent.features.knowledge.storage import FileStorage, secure_filename
from tutor_agent.features.knowledge.vector_store import VectorStore

logger = logging.getLogger(__name__)


def allowed_file(filename: str) -> bool:
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


class DocumentService:
    """Accepts uploads for background ingestion and manages ingested documents."""

    def __init__(
        self,
        store: MetadataStore,
        vector_store: VectorStore,
        storage: FileStorage,
        registry: JobRegistry,
        worker: IngestionWorker,
        resolver: StatusResolver,
        max_upload_bytes: int = 50 * 1024 * 1024,
    ):
        self.store = store
        self.vector_store = vector_store
        self.storage = storage
        self.registry = registry
        self.worker = worker
        self.resolver = resolver
        self.max_upload_bytes = max_upload_bytes

    def _get_owned_agent(self, user_id: str, agent_id: str, action: str) -> Agent:
        agent = self.store.get_agent(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)
        if agent.teacher_id != user_id:
            logger.warning(f"User {user_id} tried to {action} for agent {agent_id} owned by {agent.teacher_id}")
            raise AuthorizationError(f"Not authorized to {action} for this agent")
        return agent

    def accept_upload(
        self,
        user_id: str,
        filename: str | None,
        data: bytes | None,
        title: str | None,
        agent_id: str | None,
        content_type: str | None = None,
    ) -> UploadAccepted:
        """Validate an upload, store it and start ingestion in the background.

        Returns immediately with a temporary job id; poll `get_status` for
        the outcome.

        Raises:
            ValidationError: Missing file/title/agent, bad extension or size.
            AgentNotFoundError: Unknown agent.
            AuthorizationError: Caller does not own the agent.
        """
        if not filename or not data:
            raise ValidationError("No file uploaded")
        if not title or not title.strip() or not agent_id:
            raise ValidationError("Title and agent ID are required")
        if not allowed_file(filename):
            raise ValidationError(
                "Unsupported file type",
                detail=f"Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}",
            )
        if len(data) > self.max_upload_bytes:
            raise ValidationError(
                "File too large",
                detail=f"Maximum size is {self.max_upload_bytes // (1024 * 1024)}MB",
            )

        self._get_owned_agent(user_id, agent_id, "upload documents")

        job_id = uuid.uuid4().hex
        safe_name = secure_filename(filename)
        file_path = self.storage.save(f"{agent_id}/{job_id}_{safe_name}", data, content_type)

        self.registry.create(job_id, title=title.strip(), agent_id=agent_id)
        try:
            self.worker.submit(IngestionRequest(
                job_id=job_id,
                title=title.strip(),
                agent_id=agent_id,
                file_path=file_path,
                filename=safe_name,
            ))
        except Exception as e:
            logger.error(f"❌ Could not schedule ingestion for job {job_id}: {e}")
            self.registry.fail(job_id, f"Ingestion could not be scheduled: {e}")
            try:
                self.storage.remove(file_path)
            except Exception as cleanup_error:
                logger.warning(f"⚠️ Could not remove uploaded file {file_path}: {cleanup_error}")
            raise

        logger.info(f"Upload accepted: job {job_id} for agent {agent_id} ({safe_name}, {len(data)} bytes)")
        return UploadAccepted(job_id=job_id)

    def get_status(self, user_id: str, job_id: str) -> JobStatusResponse:
        """Job status from memory, falling back to the document table.

        Raises:
            AuthorizationError: The job belongs to another teacher's agent.
        """
        status = self.resolver.resolve(job_id)
        if status.agent_id is not None:
            agent = self.store.get_agent(status.agent_id)
            if agent is not None and agent.teacher_id != user_id:
                logger.warning(f"User {user_id} tried to read job {job_id} of agent {status.agent_id}")
                raise AuthorizationError("Not authorized to view this upload")
        return status

    def list_documents(self, agent_id: str) -> list[Document]:
        if self.store.get_agent(agent_id) is None:
            raise AgentNotFoundError(agent_id)
        return self.store.list_documents(agent_id)

    def delete_document(self, user_id: str, document_id: str) -> None:
        """Delete a document, every one of its chunk vectors and its source file."""
        document = self.store.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        self._get_owned_agent(user_id, document.agent_id, "delete documents")

        # All chunks carry the document id, so one filtered delete covers them
        self.vector_store.delete_where({"document_id": document_id})

        if document.file_path:
            try:
                self.storage.remove(document.file_path)
            except Exception as e:
                logger.debug(f"Document file {document.file_path} not removed (likely already gone): {e}")

        self.store.delete_document(document_id)
        logger.info(f"🗑️ Deleted document {document_id} (vector group {document.vector_id})")
