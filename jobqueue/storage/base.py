"""Document store interface consumed by the job queue."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

Document = Dict[str, Any]


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def matches(document: Document, filters: Optional[Mapping[str, Any]]) -> bool:
    """Equality match over every filter key. No filter matches everything."""
    if not filters:
        return True
    return all(
        key in document and document[key] == value
        for key, value in filters.items()
    )


class DocumentStore(ABC):
    """Abstract interface for a collection/id keyed document store.

    Implementations only need last-write-wins semantics; callers that need
    ordering between writes serialise those writes themselves.
    """

    @abstractmethod
    async def create(self, collection: str, document: Document) -> Document:
        """Store a new document. Assigns an id when absent and stamps
        created_at (if absent) and updated_at. Returns the stored copy."""
        ...

    @abstractmethod
    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        ...

    @abstractmethod
    async def find(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> List[Document]:
        """Return documents whose fields equal every value in filters."""
        ...

    @abstractmethod
    async def update_by_id(
        self, collection: str, doc_id: str, changes: Document
    ) -> Optional[Document]:
        """Merge changes into an existing document. None if it does not exist."""
        ...

    @abstractmethod
    async def delete_by_id(self, collection: str, doc_id: str) -> bool:
        ...

    @abstractmethod
    async def delete_all(self, collection: str) -> int:
        """Remove every document in the collection. Returns the count removed."""
        ...
