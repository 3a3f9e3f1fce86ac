import copy
import uuid
from typing import Any, Dict, List, Optional, Sequence

from uncip_backend.store.base import Condition, DocumentStore, DuplicateDocumentError, matches_all, utc_now

PROTECTED_FIELDS = ("id", "created_at")


class MemoryDocumentStore(DocumentStore):
    """In-process document store for development and tests."""

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(name, {})

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        document = self._collection(collection).get(doc_id)
        return copy.deepcopy(document) if document is not None else None

    async def query(self, collection: str, conditions: Sequence[Condition] = ()) -> List[Dict[str, Any]]:
        return [
            copy.deepcopy(document)
            for document in self._collection(collection).values()
            if matches_all(document, conditions)
        ]

    async def create(self, collection: str, data: Dict[str, Any], doc_id: Optional[str] = None) -> Dict[str, Any]:
        documents = self._collection(collection)
        doc_id = doc_id or uuid.uuid4().hex
        if doc_id in documents:
            raise DuplicateDocumentError(collection, doc_id)

        now = utc_now()
        document = copy.deepcopy(data)
        document.update({"id": doc_id, "created_at": now, "updated_at": now})
        documents[doc_id] = document
        return copy.deepcopy(document)

    async def update(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        document = self._collection(collection).get(doc_id)
        if document is None:
            return None

        for key, value in patch.items():
            if key in PROTECTED_FIELDS:
                continue
            document[key] = copy.deepcopy(value)
        document["updated_at"] = utc_now()
        return copy.deepcopy(document)

    async def delete(self, collection: str, doc_id: str) -> bool:
        return self._collection(collection).pop(doc_id, None) is not None

    def clear(self):
        self._collections.clear()
