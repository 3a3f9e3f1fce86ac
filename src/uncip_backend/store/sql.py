import logging
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence
from sqlalchemy import and_, false, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from uncip_backend.model.documents import Document
from uncip_backend.store.base import (
    Condition,
    DocumentStore,
    DuplicateDocumentError,
    FilterOp,
    StoreError,
    utc_now,
)

logger = logging.getLogger(__name__)

PROTECTED_FIELDS = ("id", "created_at", "updated_at")


def condition_clause(condition: Condition):
    """Translate a store condition into a JSONB containment expression"""

    if condition.field == "id":
        if condition.op == FilterOp.IN:
            values = [str(v) for v in condition.value or []]
            return Document.id.in_(values) if values else false()
        if condition.op == FilterOp.EQ:
            return Document.id == str(condition.value)
        return false()

    if condition.op == FilterOp.EQ:
        return Document.data.contains({condition.field: condition.value})

    if condition.op == FilterOp.ARRAY_CONTAINS:
        return Document.data.contains({condition.field: [condition.value]})

    if condition.op == FilterOp.IN:
        values = list(condition.value or [])
        if not values:
            return false()
        return or_(*[Document.data.contains({condition.field: value}) for value in values])

    raise ValueError(f"Unsupported filter operation: {condition.op}")


def build_select(collection: str, conditions: Sequence[Condition] = ()):
    clauses = [Document.collection == collection]
    clauses.extend(condition_clause(condition) for condition in conditions)
    return select(Document).where(and_(*clauses)).order_by(Document.created_at)


class SqlDocumentStore(DocumentStore):
    """Document store backed by a single PostgreSQL JSONB table."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            with self._session_factory() as db:
                item = db.get(Document, (collection, doc_id))
                return item.to_dict() if item is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to read {collection}/{doc_id}: {e}")
            raise StoreError(str(e)) from e

    async def query(self, collection: str, conditions: Sequence[Condition] = ()) -> List[Dict[str, Any]]:
        try:
            with self._session_factory() as db:
                return [item.to_dict() for item in db.scalars(build_select(collection, conditions)).all()]
        except SQLAlchemyError as e:
            logger.error(f"Failed to query {collection}: {e}")
            raise StoreError(str(e)) from e

    async def create(self, collection: str, data: Dict[str, Any], doc_id: Optional[str] = None) -> Dict[str, Any]:
        now = utc_now()
        item = Document(
            collection=collection,
            id=doc_id or uuid.uuid4().hex,
            data={k: v for k, v in data.items() if k not in PROTECTED_FIELDS},
            created_at=now,
            updated_at=now,
        )

        with self._session_factory() as db:
            try:
                db.add(item)
                db.commit()
                db.refresh(item)
                return item.to_dict()
            except IntegrityError as e:
                db.rollback()
                raise DuplicateDocumentError(collection, item.id) from e
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to create document in {collection}: {e}")
                raise StoreError(str(e)) from e

    async def update(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._session_factory() as db:
            try:
                item = db.get(Document, (collection, doc_id), with_for_update=True)
                if item is None:
                    return None

                merged = dict(item.data or {})
                merged.update({k: v for k, v in patch.items() if k not in PROTECTED_FIELDS})
                item.data = merged
                item.updated_at = utc_now()

                db.commit()
                db.refresh(item)
                return item.to_dict()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to update {collection}/{doc_id}: {e}")
                raise StoreError(str(e)) from e

    async def delete(self, collection: str, doc_id: str) -> bool:
        with self._session_factory() as db:
            try:
                item = db.get(Document, (collection, doc_id))
                if item is None:
                    return False
                db.delete(item)
                db.commit()
                return True
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to delete {collection}/{doc_id}: {e}")
                raise StoreError(str(e)) from e
