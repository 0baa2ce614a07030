"""Pytest fixtures shared across the job queue tests."""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from jobqueue.jobs.in_process_queue import InProcessQueue
from jobqueue.storage.base import Document
from jobqueue.storage.memory import MemoryStore


class RecordingStore(MemoryStore):
    """MemoryStore that remembers every status written per document."""

    def __init__(self):
        super().__init__()
        self.status_history: Dict[str, List[str]] = {}

    def _record(self, document: Optional[Document]) -> None:
        if document is not None and "status" in document:
            self.status_history.setdefault(document["id"], []).append(document["status"])

    async def create(self, collection: str, document: Document) -> Document:
        stored = await super().create(collection, document)
        self._record(stored)
        return stored

    async def update_by_id(self, collection: str, doc_id: str, changes: Document):
        updated = await super().update_by_id(collection, doc_id, changes)
        self._record(updated)
        return updated


class Gate:
    """Async handler that blocks until released, tracking peak concurrency."""

    def __init__(self, result: Any = "done"):
        self.result = result
        self.released = asyncio.Event()
        self.running = 0
        self.peak = 0
        self.seen: List[str] = []

    async def __call__(self, job, context):
        self.seen.append(job.id)
        self.running += 1
        self.peak = max(self.peak, self.running)
        try:
            await self.released.wait()
        finally:
            self.running -= 1
        return self.result


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def queue(store):
    return InProcessQueue(store, max_concurrency=2, tick_interval=0.05)


@pytest.fixture
def serial_queue(store):
    return InProcessQueue(store, max_concurrency=1, tick_interval=0.05)


async def echo_handler(job, context):
    return {"echoed": job.payload}
