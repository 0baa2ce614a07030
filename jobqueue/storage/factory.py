"""Build the configured document store."""

from jobqueue.config import Settings
from jobqueue.storage.base import DocumentStore
from jobqueue.storage.file_store import FileStore
from jobqueue.storage.memory import MemoryStore


def create_store(settings: Settings) -> DocumentStore:
    storage_type = settings.storage_type.lower()
    if storage_type == "memory":
        return MemoryStore()
    if storage_type == "file":
        return FileStore(settings.storage_path)
    raise ValueError(
        f"Unknown storage_type '{settings.storage_type}' (expected 'file' or 'memory')"
    )
