from .base import Base
from .documents import Document

__all__ = ["Base", "Document"]
