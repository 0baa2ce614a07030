"""Scheduling loop: dispatches pending jobs by priority under a concurrency ceiling.

Every tick the loop reads PENDING jobs, orders them by priority (highest
first, oldest first within a priority), and starts as many as there are
free slots. Each started handler runs in its own asyncio task; a second
task per job enforces the timeout. All bookkeeping (the active set and
every status write) happens under one asyncio.Lock, so ticks, completions,
timeouts, progress updates and cancellations never interleave.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError, to_jsonable_python

from jobqueue.jobs.context import JobContext
from jobqueue.jobs.models import JOBS_COLLECTION, Job, JobStatus
from jobqueue.jobs.registry import HandlerRegistry, JobHandler
from jobqueue.storage.base import DocumentStore

logger = logging.getLogger(__name__)


def describe_error(exc: BaseException) -> str:
    message = str(exc)
    return message if message else type(exc).__name__


def parse_job_document(document: Dict[str, Any]) -> Optional[Job]:
    """Build a Job from a stored document, or log and return None if it is malformed."""
    try:
        return Job.from_document(document)
    except ValidationError as exc:
        logger.warning(
            "Ignoring malformed job document %s: %s", document.get("id"), exc
        )
        return None


@dataclass
class ActiveJob:
    """A dispatched job the scheduler is still waiting on."""
    job: Job
    context: JobContext
    task: Optional[asyncio.Task] = None
    timer: Optional[asyncio.Task] = None


class Scheduler:
    def __init__(
        self,
        store: DocumentStore,
        registry: HandlerRegistry,
        max_concurrency: int = 2,
        tick_interval: float = 1.0,
        collection: str = JOBS_COLLECTION,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if tick_interval <= 0:
            raise ValueError("tick_interval must be positive")

        self._store = store
        self._registry = registry
        self._max_concurrency = max_concurrency
        self._tick_interval = tick_interval
        self._collection = collection

        self._lock = asyncio.Lock()
        self._active: Dict[str, ActiveJob] = {}
        self._loop_task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    @property
    def active_count(self) -> int:
        return len(self._active)

    def active_job_ids(self) -> List[str]:
        return list(self._active)

    # ---------------------------
    # Loop control
    # ---------------------------
    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._stop_event = asyncio.Event()
        self._loop_task = asyncio.create_task(self._run_loop())
        logger.info("Scheduler started with concurrency of %d", self._max_concurrency)

    async def stop(self) -> None:
        """Stop ticking and signal abandonment to running handlers.

        Handlers are not interrupted: cooperative ones see
        `context.cancelled` and return early, the rest run to completion.
        """
        if not self._running:
            return
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()
        if self._loop_task is not None:
            # Let an in-progress tick finish rather than cancelling mid-dispatch
            await self._loop_task
            self._loop_task = None
        async with self._lock:
            for entry in self._active.values():
                entry.context.cancel()
        logger.info("Scheduler stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self._tick_interval
                )
            except asyncio.TimeoutError:
                pass
            if not self._running:
                break
            try:
                await self.tick()
            except Exception:
                logger.exception("Scheduling tick failed; retrying on next interval")

    async def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Wait until every dispatched handler has returned.

        A handler that ignores its timeout keeps running, so without a
        `timeout` this can block for as long as that handler does. Returns
        False if `timeout` seconds pass first; the handlers are left alone.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while self._active:
            tasks = [
                e.task for e in list(self._active.values())
                if e.task is not None and not e.task.done()
            ]
            if not tasks:
                break
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                return False
            _, still_running = await asyncio.wait(tasks, timeout=remaining)
            if still_running:
                return False
        return True

    # ---------------------------
    # Tick
    # ---------------------------
    async def tick(self) -> List[str]:
        """Run one scheduling decision. Returns ids of jobs moved to RUNNING."""
        async with self._lock:
            available = self._max_concurrency - len(self._active)
            if available <= 0:
                return []

            pending = await self._load_pending()
            pending.sort(key=lambda j: (-int(j.priority), j.created_at))

            started: List[str] = []
            picked = 0
            for job in pending:
                if picked >= available:
                    break
                if job.id in self._active:
                    continue
                picked += 1
                if await self._dispatch(job):
                    started.append(job.id)
            return started

    async def _load_pending(self) -> List[Job]:
        documents = await self._store.find(
            self._collection, {"status": JobStatus.PENDING.value}
        )
        jobs = (parse_job_document(document) for document in documents)
        return [job for job in jobs if job is not None]

    async def _dispatch(self, job: Job) -> bool:
        # Re-read: the job may have been cancelled since the scan
        document = await self._store.find_by_id(self._collection, job.id)
        if document is None or document.get("status") != JobStatus.PENDING.value:
            logger.debug("Skipping job %s: no longer pending", job.id)
            return False
        job = Job.from_document(document)

        handler = self._registry.resolve(job.type)
        if handler is None:
            job.fail(f"No handler registered for job type: {job.type}")
            await self._save(job)
            logger.warning(
                "Failed job %s (%s): no handler registered for type '%s'",
                job.id, job.name, job.type,
            )
            return False

        job.start()
        await self._save(job)

        context = JobContext(job.id, asyncio.get_running_loop(), self._record_progress)
        entry = ActiveJob(job=job, context=context)
        self._active[job.id] = entry
        entry.task = asyncio.create_task(self._execute(entry, handler))
        entry.timer = asyncio.create_task(self._expire(job.id, job.timeout_ms))
        logger.info("Started job %s (%s)", job.id, job.name)
        return True

    # ---------------------------
    # Execution and completion
    # ---------------------------
    @staticmethod
    async def _invoke(handler: JobHandler, job: Job, context: JobContext) -> Any:
        if inspect.iscoroutinefunction(handler) or inspect.iscoroutinefunction(
            getattr(handler, "__call__", None)
        ):
            return await handler(job, context)
        # Plain callables may block; keep them off the event loop
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, handler, job, context)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _execute(self, entry: ActiveJob, handler: JobHandler) -> None:
        job_id = entry.job.id
        try:
            result = await self._invoke(handler, entry.job.model_copy(deep=True), entry.context)
        except asyncio.CancelledError as exc:
            await self._finish(job_id, error=describe_error(exc), exc=exc)
            raise
        except BaseException as exc:
            # Includes SystemExit/KeyboardInterrupt raised inside executor threads
            await self._finish(job_id, error=describe_error(exc), exc=exc)
        else:
            await self._finish(job_id, result=result)

    async def _finish(
        self,
        job_id: str,
        result: Any = None,
        error: Optional[str] = None,
        exc: Optional[BaseException] = None,
    ) -> None:
        async with self._lock:
            entry = self._active.pop(job_id, None)
            if entry is None:
                return
            if entry.timer is not None:
                entry.timer.cancel()

            job = entry.job
            if job.status is not JobStatus.RUNNING:
                logger.warning(
                    "Discarding late %s for job %s (already %s)",
                    "result" if error is None else "error", job_id, job.status.value,
                )
                return

            if error is None:
                try:
                    result = to_jsonable_python(result)
                except PydanticSerializationError as serialization_error:
                    error = f"Handler returned a result that cannot be serialized: {serialization_error}"

            if error is None:
                job.complete(result)
                logger.info("Completed job %s (%s)", job_id, job.name)
            else:
                job.fail(error)
                logger.warning(
                    "Failed job %s (%s): %s", job_id, job.name, error, exc_info=exc
                )

            try:
                await self._save(job)
            except Exception:
                logger.exception("Could not persist final state of job %s", job_id)

    async def _expire(self, job_id: str, timeout_ms: int) -> None:
        await asyncio.sleep(timeout_ms / 1000)
        async with self._lock:
            entry = self._active.get(job_id)
            if entry is None or entry.job.status is not JobStatus.RUNNING:
                return
            # The handler keeps its slot until it returns
            entry.job.fail(f"Job timed out after {timeout_ms}ms")
            entry.context.cancel()
            logger.error("Job timed out: %s (%s)", job_id, entry.job.name)
            try:
                await self._save(entry.job)
            except Exception:
                logger.exception("Could not persist timeout of job %s", job_id)

    async def _record_progress(self, job_id: str, progress: float) -> None:
        async with self._lock:
            entry = self._active.get(job_id)
            if entry is None or entry.job.status is not JobStatus.RUNNING:
                return
            entry.job.update_progress(progress)
            try:
                await self._save(entry.job)
            except Exception:
                logger.exception("Could not persist progress of job %s", job_id)

    # ---------------------------
    # Cancellation
    # ---------------------------
    async def cancel(self, job_id: str) -> Optional[Job]:
        """Cancel a PENDING job. Any other job is returned unchanged."""
        async with self._lock:
            document = await self._store.find_by_id(self._collection, job_id)
            if document is None:
                return None
            job = parse_job_document(document)
            if job is None or job.status is not JobStatus.PENDING:
                return job
            job.cancel()
            await self._save(job)
        logger.info("Cancelled job %s (%s)", job.id, job.name)
        return job

    async def _save(self, job: Job) -> None:
        document = job.to_document()
        if await self._store.update_by_id(self._collection, job.id, document) is None:
            # Document was bulk-cleared while the job was in flight
            await self._store.create(self._collection, document)
