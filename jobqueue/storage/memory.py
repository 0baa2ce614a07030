"""Dict-backed document store for tests and single-process deployments."""

import copy
import uuid
from typing import Any, Dict, List, Mapping, Optional

from jobqueue.storage.base import Document, DocumentStore, matches, utc_timestamp


class MemoryStore(DocumentStore):
    """Keeps documents in process memory.

    Every read and write copies the document, so callers never share
    mutable state with the store or with each other.
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, Document]] = {}

    def _collection(self, name: str) -> Dict[str, Document]:
        return self._collections.setdefault(name, {})

    async def create(self, collection: str, document: Document) -> Document:
        stored = copy.deepcopy(document)
        if not stored.get("id"):
            stored["id"] = str(uuid.uuid4())
        now = utc_timestamp()
        stored.setdefault("created_at", now)
        stored["updated_at"] = now
        self._collection(collection)[stored["id"]] = stored
        return copy.deepcopy(stored)

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        document = self._collection(collection).get(doc_id)
        return copy.deepcopy(document) if document is not None else None

    async def find(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> List[Document]:
        return [
            copy.deepcopy(d)
            for d in self._collection(collection).values()
            if matches(d, filters)
        ]

    async def update_by_id(
        self, collection: str, doc_id: str, changes: Document
    ) -> Optional[Document]:
        docs = self._collection(collection)
        if doc_id not in docs:
            return None
        updated = {**docs[doc_id], **copy.deepcopy(changes)}
        updated["id"] = doc_id
        updated["updated_at"] = utc_timestamp()
        docs[doc_id] = updated
        return copy.deepcopy(updated)

    async def delete_by_id(self, collection: str, doc_id: str) -> bool:
        return self._collection(collection).pop(doc_id, None) is not None

    async def delete_all(self, collection: str) -> int:
        docs = self._collection(collection)
        removed = len(docs)
        docs.clear()
        return removed
