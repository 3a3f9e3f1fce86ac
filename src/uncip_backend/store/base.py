"""
Document store collaborator.

The backend only relies on collection-scoped get/query/create/update/delete
and three kinds of filter conditions: equality, array-contains and in-set.
Timestamps are assigned by the store.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence
from pydantic import BaseModel


class StoreError(Exception):
    """Raised when the underlying store cannot complete an operation."""
    pass


class DuplicateDocumentError(StoreError):
    """Raised when a document id is already taken in a collection."""

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"Document {collection}/{doc_id} already exists")
        self.collection = collection
        self.doc_id = doc_id


class FilterOp(str, Enum):
    EQ = "=="
    ARRAY_CONTAINS = "array-contains"
    IN = "in"


class Condition(BaseModel):
    field: str
    op: FilterOp = FilterOp.EQ
    value: Any = None

    def matches(self, document: Dict[str, Any]) -> bool:
        current = document.get(self.field)

        if self.op == FilterOp.EQ:
            return current == self.value

        if self.op == FilterOp.ARRAY_CONTAINS:
            return isinstance(current, (list, tuple, set)) and self.value in current

        if self.op == FilterOp.IN:
            return current in (self.value or [])

        return False


def matches_all(document: Dict[str, Any], conditions: Sequence[Condition]) -> bool:
    return all(condition.matches(document) for condition in conditions)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStore(ABC):
    """Collection-scoped CRUD over schemaless documents keyed by id"""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return the document including its `id`, or None"""
        pass

    @abstractmethod
    async def query(self, collection: str, conditions: Sequence[Condition] = ()) -> List[Dict[str, Any]]:
        """Return all documents matching every condition"""
        pass

    @abstractmethod
    async def create(self, collection: str, data: Dict[str, Any], doc_id: Optional[str] = None) -> Dict[str, Any]:
        """Store a new document, stamping equal `created_at`/`updated_at`"""
        pass

    @abstractmethod
    async def update(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Merge `patch` into the document and stamp `updated_at`; None if absent"""
        pass

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        pass
