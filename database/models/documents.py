from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    DateTime,
    func,
    JSON,
    Index,
)
from database.engine import Base
from datetime import datetime
from typing import Any


# ==================== Models ===================== #
class Document(Base):
    """
    One document of the store, addressed by its slash-separated path.

    `collection` is the parent collection path, so subcollections such as
    `users/u1/appliedJobs` are plain collections with a longer path.
    """

    __tablename__ = "documents"
    path: Mapped[str] = mapped_column(String(512), primary_key=True)
    collection: Mapped[str] = mapped_column(String(400), nullable=False, index=True)
    doc_id: Mapped[str] = mapped_column(String(128), nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (Index("ix_documents_collection_doc_id", "collection", "doc_id"),)

    def __repr__(self) -> str:
        return f"<Document {self.path}>"
