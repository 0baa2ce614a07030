"""JSON-file document store: one file per document, one directory per collection."""

import asyncio
import json
import logging
import os
import re
import tempfile
import threading
import uuid
from typing import Any, Callable, Dict, List, Mapping, Optional

from jobqueue.storage.base import Document, DocumentStore, matches, utc_timestamp

logger = logging.getLogger(__name__)

_SAFE_NAME = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]*$")


class FileStore(DocumentStore):
    """Persists documents as <base_dir>/<collection>/<id>.json.

    Files are written to a temp file and renamed into place, so a reader
    sees either the old or the new document, never a partial one.
    Blocking file I/O runs in the default thread executor.
    """

    def __init__(self, base_dir: str):
        self._base_dir = os.path.abspath(base_dir)
        os.makedirs(self._base_dir, exist_ok=True)
        # Serialises read-modify-write sequences across executor threads
        self._lock = threading.Lock()

    @property
    def base_dir(self) -> str:
        return self._base_dir

    def _collection_dir(self, collection: str) -> str:
        if not _SAFE_NAME.match(collection):
            raise ValueError(f"Invalid collection name: {collection!r}")
        path = os.path.join(self._base_dir, collection)
        os.makedirs(path, exist_ok=True)
        return path

    def _path(self, collection: str, doc_id: str) -> str:
        if not isinstance(doc_id, str) or not _SAFE_NAME.match(doc_id):
            raise ValueError(f"Invalid document id: {doc_id!r}")
        return os.path.join(self._collection_dir(collection), f"{doc_id}.json")

    async def _run(self, fn: Callable, *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    # ---------------------------
    # Blocking helpers
    # ---------------------------
    @staticmethod
    def _read(path: str) -> Optional[Document]:
        try:
            with open(path, "r", encoding="utf-8") as fh:
                return json.load(fh)
        except FileNotFoundError:
            return None

    @staticmethod
    def _write(path: str, document: Document) -> None:
        directory = os.path.dirname(path)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _create_sync(self, collection: str, document: Document) -> Document:
        stored = dict(document)
        if not stored.get("id"):
            stored["id"] = str(uuid.uuid4())
        now = utc_timestamp()
        stored.setdefault("created_at", now)
        stored["updated_at"] = now
        path = self._path(collection, stored["id"])
        with self._lock:
            self._write(path, stored)
        return stored

    def _find_by_id_sync(self, collection: str, doc_id: str) -> Optional[Document]:
        return self._read(self._path(collection, doc_id))

    def _find_sync(
        self, collection: str, filters: Optional[Mapping[str, Any]]
    ) -> List[Document]:
        directory = self._collection_dir(collection)
        documents = []
        for entry in sorted(os.listdir(directory)):
            if not entry.endswith(".json") or entry.startswith("."):
                continue
            path = os.path.join(directory, entry)
            try:
                document = self._read(path)
            except (OSError, ValueError) as exc:
                logger.warning("Skipping unreadable document %s: %s", path, exc)
                continue
            if document is not None and matches(document, filters):
                documents.append(document)
        return documents

    def _update_sync(
        self, collection: str, doc_id: str, changes: Document
    ) -> Optional[Document]:
        path = self._path(collection, doc_id)
        with self._lock:
            current = self._read(path)
            if current is None:
                return None
            updated = {**current, **changes}
            updated["id"] = doc_id
            updated["updated_at"] = utc_timestamp()
            self._write(path, updated)
        return updated

    def _delete_sync(self, collection: str, doc_id: str) -> bool:
        path = self._path(collection, doc_id)
        with self._lock:
            try:
                os.unlink(path)
            except FileNotFoundError:
                return False
        return True

    def _delete_all_sync(self, collection: str) -> int:
        directory = self._collection_dir(collection)
        removed = 0
        with self._lock:
            for entry in os.listdir(directory):
                if not entry.endswith(".json"):
                    continue
                try:
                    os.unlink(os.path.join(directory, entry))
                except FileNotFoundError:
                    continue
                if not entry.startswith("."):
                    removed += 1
        return removed

    # ---------------------------
    # DocumentStore
    # ---------------------------
    async def create(self, collection: str, document: Document) -> Document:
        return await self._run(self._create_sync, collection, document)

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        return await self._run(self._find_by_id_sync, collection, doc_id)

    async def find(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> List[Document]:
        return await self._run(self._find_sync, collection, filters)

    async def update_by_id(
        self, collection: str, doc_id: str, changes: Document
    ) -> Optional[Document]:
        return await self._run(self._update_sync, collection, doc_id, changes)

    async def delete_by_id(self, collection: str, doc_id: str) -> bool:
        return await self._run(self._delete_sync, collection, doc_id)

    async def delete_all(self, collection: str) -> int:
        return await self._run(self._delete_all_sync, collection)
