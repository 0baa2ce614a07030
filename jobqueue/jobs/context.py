"""Per-dispatch handle passed to job handlers."""

import asyncio
import logging
import threading
from typing import Awaitable, Callable, Set

logger = logging.getLogger(__name__)

# Type alias for the scheduler-side progress sink: fn(job_id, progress)
ProgressSink = Callable[[str, float], Awaitable[None]]


class JobContext:
    """Lets a running handler report progress and notice abandonment.

    Both members are safe to use from the event loop and from a handler
    running in an executor thread. Setting `cancelled` is advisory: the
    scheduler never interrupts a handler, it only stops caring about it.
    """

    def __init__(
        self,
        job_id: str,
        loop: asyncio.AbstractEventLoop,
        progress_sink: ProgressSink,
    ):
        self.job_id = job_id
        self._loop = loop
        self._progress_sink = progress_sink
        self._cancelled = threading.Event()
        self._pending: Set[asyncio.Task] = set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def report_progress(self, progress: float) -> None:
        """Record progress (0-100). Ignored once the job has left RUNNING."""
        self._loop.call_soon_threadsafe(self._schedule_progress, float(progress))

    def _schedule_progress(self, progress: float) -> None:
        task = self._loop.create_task(self._progress_sink(self.job_id, progress))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
