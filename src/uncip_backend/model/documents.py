from sqlalchemy import Column, DateTime, Index, String, text
from sqlalchemy.dialects.postgresql import JSONB

from .base import Base


class Document(Base):
    __tablename__ = 'documents'
    __table_args__ = (
        Index('documents_data_gin', 'data', postgresql_using='gin'),
    )

    collection = Column(String(63), primary_key=True)
    id = Column(String(128), primary_key=True)
    data = Column(JSONB, nullable=False, server_default=text("'{}'::jsonb"))
    created_at = Column(DateTime(True), nullable=False)
    updated_at = Column(DateTime(True), nullable=False)

    def to_dict(self) -> dict:
        document = dict(self.data or {})
        document.update({"id": self.id, "created_at": self.created_at, "updated_at": self.updated_at})
        return document
