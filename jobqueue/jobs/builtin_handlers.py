"""Diagnostic handlers registered at start-up when enabled in settings."""

import asyncio
from typing import Any, Dict

from jobqueue.jobs.context import JobContext
from jobqueue.jobs.models import Job
from jobqueue.jobs.registry import HandlerRegistry


def echo(job: Job, context: JobContext) -> Dict[str, Any]:
    return {"echoed": job.payload}


async def sleep(job: Job, context: JobContext) -> Dict[str, Any]:
    """Sleep for payload["seconds"], reporting progress every 10%.

    Returns early if the scheduler abandons the job.
    """
    payload = job.payload if isinstance(job.payload, dict) else {}
    seconds = float(payload.get("seconds", 1.0))
    if seconds < 0:
        raise ValueError("seconds must not be negative")

    steps = 10
    for step in range(1, steps + 1):
        if context.cancelled:
            return {"slept": seconds * (step - 1) / steps, "abandoned": True}
        await asyncio.sleep(seconds / steps)
        context.report_progress(step * 100 / steps)
    return {"slept": seconds}


def register_builtin_handlers(registry: HandlerRegistry) -> None:
    registry.register("echo", echo)
    registry.register("sleep", sleep)
