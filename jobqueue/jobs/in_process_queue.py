"""In-process job queue backed by a document store and an asyncio scheduler.

No external broker (Redis, Celery) is needed: jobs are persisted through
the DocumentStore and executed by the Scheduler running on the same
event loop as the API.
"""

import logging
from typing import Any, Dict, List, Optional

from jobqueue.config import Settings
from jobqueue.jobs.dispatcher import JobDispatcher
from jobqueue.jobs.errors import JobNotCompletedError, JobNotFoundError
from jobqueue.jobs.models import (
    DEFAULT_TIMEOUT_MS,
    JOBS_COLLECTION,
    Job,
    JobPriority,
    JobStatus,
    JobStatusInfo,
)
from jobqueue.jobs.registry import HandlerRegistry, JobHandler
from jobqueue.jobs.scheduler import Scheduler, parse_job_document
from jobqueue.storage.base import DocumentStore
from jobqueue.storage.factory import create_store

logger = logging.getLogger(__name__)


class InProcessQueue(JobDispatcher):
    """Owns one store, one handler registry and one scheduler."""

    def __init__(
        self,
        store: DocumentStore,
        registry: Optional[HandlerRegistry] = None,
        max_concurrency: int = 2,
        tick_interval: float = 1.0,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ):
        if default_timeout_ms <= 0:
            raise ValueError("default_timeout_ms must be positive")
        self._store = store
        self._registry = registry if registry is not None else HandlerRegistry()
        self._default_timeout_ms = default_timeout_ms
        self._scheduler = Scheduler(
            store,
            self._registry,
            max_concurrency=max_concurrency,
            tick_interval=tick_interval,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, store: Optional[DocumentStore] = None
    ) -> "InProcessQueue":
        return cls(
            store if store is not None else create_store(settings),
            max_concurrency=settings.max_concurrency,
            tick_interval=settings.tick_interval_seconds,
            default_timeout_ms=settings.default_job_timeout_ms,
        )

    @property
    def registry(self) -> HandlerRegistry:
        return self._registry

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def register_handler(self, job_type: str, handler: JobHandler) -> None:
        self._registry.register(job_type, handler)

    async def create_job(
        self,
        name: str,
        job_type: str,
        payload: Any = None,
        priority: JobPriority = JobPriority.NORMAL,
        timeout_ms: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Job:
        job = Job(
            name=name,
            type=job_type,
            payload=payload,
            priority=priority,
            timeout_ms=timeout_ms if timeout_ms is not None else self._default_timeout_ms,
            metadata=metadata or {},
        )
        stored = await self._store.create(JOBS_COLLECTION, job.to_document())
        job = Job.from_document(stored)
        logger.info(
            "Created job: %s (%s, type=%s, priority=%s)",
            job.id, job.name, job.type, job.priority.name,
        )
        return job

    async def get_job(self, job_id: str) -> Optional[Job]:
        """Return the job, or None if it is missing or its document is unreadable."""
        document = await self._store.find_by_id(JOBS_COLLECTION, job_id)
        return parse_job_document(document) if document is not None else None

    async def _require_job(self, job_id: str) -> Job:
        job = await self.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def get_job_status(self, job_id: str) -> JobStatusInfo:
        job = await self._require_job(job_id)
        return job.status_info()

    async def get_job_result(self, job_id: str) -> Any:
        job = await self._require_job(job_id)
        if job.status is not JobStatus.COMPLETED:
            raise JobNotCompletedError(job_id, job.status.value)
        return job.result

    async def cancel_job(self, job_id: str) -> Optional[Job]:
        return await self._scheduler.cancel(job_id)

    async def get_jobs(self, status: Optional[JobStatus] = None) -> List[Job]:
        filters = {"status": JobStatus(status).value} if status is not None else None
        documents = await self._store.find(JOBS_COLLECTION, filters)
        jobs = [job for job in map(parse_job_document, documents) if job is not None]
        jobs.sort(key=lambda j: j.created_at)
        return jobs

    async def clear_jobs(self) -> int:
        """Delete every stored job. In-flight handlers still write their
        final state afterwards, which re-creates their documents."""
        removed = await self._store.delete_all(JOBS_COLLECTION)
        logger.info("Cleared all jobs (%d removed)", removed)
        return removed

    async def stats(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in JobStatus}
        for document in await self._store.find(JOBS_COLLECTION):
            status = document.get("status")
            if status in counts:
                counts[status] += 1
        counts["active"] = self._scheduler.active_count
        return counts

    async def tick(self) -> List[str]:
        return await self._scheduler.tick()

    async def start(self) -> None:
        await self._scheduler.start()

    async def stop(self) -> None:
        await self._scheduler.stop()

    async def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for every in-flight handler to return.

        Returns False if `timeout` seconds elapse first.
        """
        return await self._scheduler.wait_idle(timeout)
