"""
SQLAlchemy Database Models

The mirror store keeps each order, bill and menu item as a JSON document
keyed by (collection, id), the same camelCase shape the API returns.
"""

from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.sql import func

from snappy_serve.database import Base


class MirrorDocument(Base):
    """One shadow-written document."""
    __tablename__ = "mirror_documents"

    collection = Column(String(32), primary_key=True)
    doc_id = Column(String(64), primary_key=True)
    body = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<MirrorDocument {self.collection}/{self.doc_id}>"
