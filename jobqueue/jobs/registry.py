"""Handler registry: maps a job type to the callable that does the work."""

import logging
from typing import Any, Callable, Dict, List, Optional

from jobqueue.jobs.context import JobContext
from jobqueue.jobs.models import Job

logger = logging.getLogger(__name__)

# fn(job, context) -> result. May be a coroutine function; plain callables
# run in the default thread executor.
JobHandler = Callable[[Job, JobContext], Any]


class HandlerRegistry:
    """Owns the job type -> handler mapping for one queue instance.

    Registering a type twice replaces the earlier handler.
    """

    def __init__(self):
        self._handlers: Dict[str, JobHandler] = {}

    def register(self, job_type: str, handler: JobHandler) -> None:
        if not job_type or not job_type.strip():
            raise ValueError("Job type cannot be empty")
        if not callable(handler):
            raise TypeError(f"Handler for '{job_type}' must be callable")

        if job_type in self._handlers:
            logger.info("Replacing handler for job type: %s", job_type)
        else:
            logger.info("Registered handler for job type: %s", job_type)
        self._handlers[job_type] = handler

    def unregister(self, job_type: str) -> bool:
        return self._handlers.pop(job_type, None) is not None

    def resolve(self, job_type: str) -> Optional[JobHandler]:
        return self._handlers.get(job_type)

    def job_types(self) -> List[str]:
        return sorted(self._handlers)

    def __contains__(self, job_type: str) -> bool:
        return job_type in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
