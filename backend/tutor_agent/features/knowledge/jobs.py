"""
Knowledge feature: ingestion job tracking.

JobRegistry holds the in-memory status of every running or recently
finished upload. It is not durable: a restart loses it, and terminal jobs
are evicted after a retention window (longer for failures). Once a job is
gone, StatusResolver falls back to the metadata store.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable

from cachetools import TLRUCache

from tutor_agent.core.metadata_store import MetadataStore
from tutor_agent.features.knowledge.schemas import IngestionJob, JobStatus, JobStatusResponse

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobRegistry:
    """Process-scoped, thread-safe table of ingestion jobs.

    Every change replaces the job snapshot under the lock, and status only
    moves forward: processing -> completed | failed.

    Running jobs live in a plain dict and are never evicted. Finished jobs
    move to a TLRUCache that drops them after their retention window, or
    least-recently-used first once ``maxsize`` finished jobs are held.
    """

    def __init__(
        self,
        completed_ttl: float = 300,
        failed_ttl: float = 900,
        maxsize: int = 10_000,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.completed_ttl = completed_ttl
        self.failed_ttl = failed_ttl
        self._lock = threading.Lock()
        self._active: dict[str, IngestionJob] = {}
        self._finished: TLRUCache = TLRUCache(maxsize=maxsize, ttu=self._time_to_use, timer=timer)

    def _time_to_use(self, job_id: str, job: IngestionJob, now: float) -> float:
        if job.status == JobStatus.COMPLETED:
            return now + self.completed_ttl
        return now + self.failed_ttl

    def create(self, job_id: str, title: str | None = None, agent_id: str | None = None) -> IngestionJob:
        now = _utcnow()
        job = IngestionJob(
            job_id=job_id,
            title=title,
            agent_id=agent_id,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            if job_id in self._active or job_id in self._finished:
                raise ValueError(f"Job {job_id} already exists")
            self._active[job_id] = job
        logger.info(f"📥 Job {job_id} registered (processing)")
        return job

    def get(self, job_id: str) -> IngestionJob | None:
        with self._lock:
            job = self._active.get(job_id)
            if job is None:
                job = self._finished.get(job_id)
            return job

    def update_progress(self, job_id: str, progress: int) -> bool:
        """Raise a processing job's progress. Never lowers it."""
        progress = max(0, min(100, int(progress)))
        with self._lock:
            job = self._active.get(job_id)
            if job is None or progress <= job.progress:
                return False
            self._active[job_id] = job.model_copy(update={"progress": progress, "updated_at": _utcnow()})
            return True

    def complete(self, job_id: str, document_id: str) -> bool:
        return self._finish(
            job_id,
            status=JobStatus.COMPLETED,
            progress=100,
            document_id=document_id,
        )

    def fail(self, job_id: str, error: str, document_id: str | None = None) -> bool:
        return self._finish(
            job_id,
            status=JobStatus.FAILED,
            error=error,
            document_id=document_id,
        )

    def _finish(self, job_id: str, status: JobStatus, **changes) -> bool:
        with self._lock:
            job = self._active.pop(job_id, None)
            if job is None:
                if job_id in self._finished:
                    logger.warning(
                        f"Ignoring transition of job {job_id} from "
                        f"{self._finished[job_id].status.value} to {status.value}"
                    )
                else:
                    logger.warning(f"Cannot mark job {job_id} {status.value}: job not found")
                return False
            changes.update(status=status, updated_at=_utcnow())
            self._finished[job_id] = job.model_copy(update=changes)
        return True

    def __len__(self) -> int:
        with self._lock:
            self._finished.expire()
            return len(self._active) + len(self._finished)


# ── Status Resolution ────────────────────────────────────

class StatusSource(ABC):
    """One strategy for answering 'what happened to this upload?'."""

    @abstractmethod
    def lookup(self, job_id: str) -> JobStatusResponse | None:
        """Return a status, or None to let the next source answer."""


class RegistryStatusSource(StatusSource):
    """Answers from the in-memory job table."""

    def __init__(self, registry: JobRegistry):
        self.registry = registry

    def lookup(self, job_id: str) -> JobStatusResponse | None:
        job = self.registry.get(job_id)
        if job is None:
            return None
        return JobStatusResponse(
            job_id=job.job_id,
            status=job.status,
            progress=job.progress,
            document_id=job.document_id,
            error=job.error,
            agent_id=job.agent_id,
        )


class DocumentStatusSource(StatusSource):
    """Treats the id as a document id and reports its recorded ingestion outcome."""

    def __init__(self, store: MetadataStore):
        self.store = store

    def lookup(self, job_id: str) -> JobStatusResponse | None:
        document = self.store.get_document(job_id)
        if document is None:
            return None
        status = document.processing_status
        return JobStatusResponse(
            job_id=job_id,
            status=status,
            progress=100 if status == JobStatus.COMPLETED else 0,
            document_id=document.id,
            error="Ingestion did not complete" if status == JobStatus.FAILED else None,
            agent_id=document.agent_id,
        )


class StatusResolver:
    """Tries each source in order; the first answer wins."""

    def __init__(self, sources: list[StatusSource]):
        self.sources = sources

    def resolve(self, job_id: str) -> JobStatusResponse:
        for source in self.sources:
            status = source.lookup(job_id)
            if status is not None:
                return status
        return JobStatusResponse(job_id=job_id, status=JobStatus.NOT_FOUND)
