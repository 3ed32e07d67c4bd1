"""
Background worker for document ingestion.

Each accepted upload becomes one task on a bounded thread pool. The worker
owns the task's outcome and writes it to the JobRegistry, so the request
that accepted the upload never waits on (or sees errors from) the run.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor

from tutor_agent.background.document_tasks import DocumentIngestionPipeline, IngestionRequest
from tutor_agent.core.exceptions import PipelineError
from tutor_agent.features.knowledge.jobs import JobRegistry
from tutor_agent.features.knowledge.schemas import Document

logger = logging.getLogger(__name__)


class IngestionWorker:
    """Supervises ingestion runs and feeds their results to the registry."""

    def __init__(self, pipeline: DocumentIngestionPipeline, registry: JobRegistry, max_workers: int = 2):
        self.pipeline = pipeline
        self.registry = registry
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="rag_pipeline")
        self._cancel_events: dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    def submit(self, request: IngestionRequest) -> Future:
        """Schedule a run for an already-registered job."""
        event = threading.Event()
        with self._lock:
            self._cancel_events[request.job_id] = event
        return self._executor.submit(self._execute, request, event)

    def cancel(self, job_id: str) -> bool:
        """Ask a run to stop at its next step boundary.

        Returns False if the job is not running on this worker.
        """
        with self._lock:
            event = self._cancel_events.get(job_id)
        if event is None:
            return False
        event.set()
        return True

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting uploads; by default let in-flight runs finish."""
        self._executor.shutdown(wait=wait)

    def _execute(self, request: IngestionRequest, cancel_event: threading.Event) -> Document | None:
        job_id = request.job_id
        try:
            document = self.pipeline.run(
                request,
                on_progress=lambda progress: self.registry.update_progress(job_id, progress),
                cancel_event=cancel_event,
            )
        except PipelineError as e:
            logger.error(f"❌ Ingestion failed for job {job_id}: {e.message}")
            self.registry.fail(job_id, e.message, document_id=e.document_id)
            return None
        except Exception as e:
            logger.exception(f"❌ Unexpected ingestion error for job {job_id}")
            self.registry.fail(job_id, f"Unexpected error: {e}")
            return None
        finally:
            with self._lock:
                self._cancel_events.pop(job_id, None)

        self.registry.complete(job_id, document.id)
        return document
