import logging
import tempfile
import os
import threading
import uuid
from enum import Enum
from typing import Callable

from pydantic import BaseModel
from langchain_community.document_loaders import PyPDFLoader

from tutor_agent.core.exceptions import PipelineError
from tutor_agent.core.metadata_store import MetadataStore
from tutor_agent.features.knowledge.chunker import chunk_text, validate_chunking
from tutor_agent.features.knowledge.embedding import EmbeddingProvider
from tutor_agent.features.knowledge.schemas import Document, JobStatus
from tutor_agent.features.knowledge.storage import FileStorage
from tutor_agent.features.knowledge.vector_store import VectorStore, chunk_vector_id

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"pdf", "docx", "txt", "md"}


class IngestionStep(str, Enum):
    EXTRACT = "extract"
    CHUNK = "chunk"
    PERSIST = "persist"
    EMBED = "embed"
    STORE = "store"


class IngestionCancelled(Exception):
    """Raised between steps when a run has been asked to stop."""


class IngestionRequest(BaseModel):
    """Everything a background run needs to ingest one stored upload."""
    job_id: str
    title: str
    agent_id: str
    file_path: str  # storage path of the uploaded file
    filename: str


def extract_text_from_bytes(file_bytes: bytes, filename: str) -> str:
    """
    Extract text from PDF, DOCX, TXT or MD bytes.
    Use temp files since loaders require file paths.
    """
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if ext not in ALLOWED_EXTENSIONS:
        raise ValueError(f"Unsupported file extension: {ext}")

    if ext in ("txt", "md"):
        return file_bytes.decode("utf-8")

    with tempfile.NamedTemporaryFile(delete=False, suffix=f".{ext}") as temp_file:
        temp_file.write(file_bytes)
        temp_path = temp_file.name

    try:
        if ext == "pdf":
            pages = PyPDFLoader(temp_path).load()
            return "\n".join(page.page_content for page in pages)

        import docx
        doc = docx.Document(temp_path)
        return "\n".join(para.text for para in doc.paragraphs if para.text.strip())
    finally:
        if os.path.exists(temp_path):
            os.remove(temp_path)


class DocumentIngestionPipeline:
    """
    Ingest one uploaded document:
    1. Extract text from the stored file.
    2. Chunk text (fixed windows, default 1000 size / 200 overlap).
    3. Create the document record (status processing) with a new vector group id.
    4. Embed each chunk in order and upsert its vector, then mark the document completed.
    5. Remove the uploaded file (best-effort).

    Vectors already written when a later chunk fails are left in place and
    the document is marked failed, so it is left out of listings and retrieval
    and its id polls as failed; the error carries that id so it can be deleted.
    """

    def __init__(
        self,
        store: MetadataStore,
        vector_store: VectorStore,
        embedder: EmbeddingProvider,
        storage: FileStorage,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
    ):
        validate_chunking(chunk_size, chunk_overlap)
        self.store = store
        self.vector_store = vector_store
        self.embedder = embedder
        self.storage = storage
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    def run(
        self,
        request: IngestionRequest,
        on_progress: Callable[[int], None] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Document:
        """Run every step for one upload.

        Raises:
            PipelineError: On the first failing step (a)-(d).
        """
        report = on_progress or (lambda progress: None)
        document_id: str | None = None

        def checkpoint(step: IngestionStep) -> None:
            if cancel_event is not None and cancel_event.is_set():
                raise PipelineError(step.value, IngestionCancelled("Ingestion cancelled"), document_id)

        logger.info(f"🚀 Starting ingestion for job {request.job_id} ({request.filename})")

        # 1. Extract text
        checkpoint(IngestionStep.EXTRACT)
        try:
            file_bytes = self.storage.read(request.file_path)
            text = extract_text_from_bytes(file_bytes, request.filename)
            if not text.strip():
                raise ValueError("No text could be extracted from the document.")
        except Exception as e:
            raise PipelineError(IngestionStep.EXTRACT.value, e) from e
        report(10)

        # 2. Chunk
        checkpoint(IngestionStep.CHUNK)
        try:
            chunks = chunk_text(text, self.chunk_size, self.chunk_overlap)
        except Exception as e:
            raise PipelineError(IngestionStep.CHUNK.value, e) from e
        logger.info(f"✅ Extracted {len(text)} characters, generated {len(chunks)} chunks.")
        report(20)

        # 3. Document record
        checkpoint(IngestionStep.PERSIST)
        vector_id = str(uuid.uuid4())
        try:
            document = self.store.create_document(
                title=request.title,
                agent_id=request.agent_id,
                content=text,
                vector_id=vector_id,
                file_path=request.file_path,
            )
        except Exception as e:
            raise PipelineError(IngestionStep.PERSIST.value, e) from e
        document_id = document.id
        logger.info(f"✅ Document {document_id} created (vector group {vector_id})")
        report(30)

        # 4. Embed + upsert, one chunk at a time; only a full set marks the document completed
        try:
            for index, chunk in enumerate(chunks):
                checkpoint(IngestionStep.EMBED)
                try:
                    vector = self.embedder.embed(chunk)
                except Exception as e:
                    raise PipelineError(IngestionStep.EMBED.value, e, document_id) from e

                chunk_id = chunk_vector_id(vector_id, index)
                try:
                    self.vector_store.upsert(chunk_id, vector, {
                        "document_id": document_id,
                        "agent_id": request.agent_id,
                        "content": chunk,
                        "title": request.title,
                        "chunk_index": index,
                    })
                except Exception as e:
                    raise PipelineError(IngestionStep.STORE.value, e, document_id) from e

                logger.debug(f"Chunk {index + 1}/{len(chunks)} stored as {chunk_id}")
                report(30 + (65 * (index + 1)) // len(chunks))

            try:
                self.store.set_document_status(document_id, JobStatus.COMPLETED)
            except Exception as e:
                raise PipelineError(IngestionStep.STORE.value, e, document_id) from e
        except PipelineError:
            self._mark_failed(document_id)
            raise

        # 5. Cleanup (never fatal: the document already exists)
        try:
            self.storage.remove(request.file_path)
            logger.info(f"✅ Removed uploaded file: {request.file_path}")
        except Exception as e:
            logger.warning(f"⚠️ Could not remove uploaded file {request.file_path}: {e}")

        logger.info(f"🎉 Ingestion finished for job {request.job_id}: document {document_id}, {len(chunks)} chunks")
        return document.model_copy(update={"processing_status": JobStatus.COMPLETED})

    def _mark_failed(self, document_id: str) -> None:
        try:
            self.store.set_document_status(document_id, JobStatus.FAILED)
        except Exception as e:
            logger.warning(f"⚠️ Could not mark document {document_id} as failed: {e}")
