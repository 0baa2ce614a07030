"""Job dispatcher interface consumed by the request-facing API."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from jobqueue.jobs.models import Job, JobPriority, JobStatus, JobStatusInfo


class JobDispatcher(ABC):
    """Abstract interface for submitting and tracking jobs."""

    @property
    @abstractmethod
    def running(self) -> bool:
        ...

    @abstractmethod
    async def create_job(
        self,
        name: str,
        job_type: str,
        payload: Any = None,
        priority: JobPriority = JobPriority.NORMAL,
        timeout_ms: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Job:
        """Queue a job in PENDING. Its handler is resolved only at dispatch."""
        ...

    @abstractmethod
    async def get_job(self, job_id: str) -> Optional[Job]:
        ...

    @abstractmethod
    async def get_job_status(self, job_id: str) -> JobStatusInfo:
        """Raises JobNotFoundError."""
        ...

    @abstractmethod
    async def get_job_result(self, job_id: str) -> Any:
        """Raises JobNotFoundError, or JobNotCompletedError unless COMPLETED."""
        ...

    @abstractmethod
    async def cancel_job(self, job_id: str) -> Optional[Job]:
        ...

    @abstractmethod
    async def get_jobs(self, status: Optional[JobStatus] = None) -> List[Job]:
        ...

    @abstractmethod
    async def clear_jobs(self) -> int:
        ...

    @abstractmethod
    async def stats(self) -> Dict[str, int]:
        ...

    @abstractmethod
    async def start(self) -> None:
        """Start the dispatcher (e.g., start worker loop)."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the dispatcher gracefully."""
        ...
