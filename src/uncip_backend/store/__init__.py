from .base import Condition, DocumentStore, DuplicateDocumentError, FilterOp, StoreError
from .memory import MemoryDocumentStore

__all__ = [
    "Condition",
    "DocumentStore",
    "DuplicateDocumentError",
    "FilterOp",
    "StoreError",
    "MemoryDocumentStore",
]
