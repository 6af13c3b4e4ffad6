"""One row per document path: the SQL substrate behind SqlDocumentStore."""

from datetime import datetime
from sqlalchemy import DateTime, String
from sqlalchemy.types import JSON
from sqlalchemy.orm import Mapped, mapped_column
from fitledger.db.base import Base


class StoredDocument(Base):
    __tablename__ = "stored_documents"

    # e.g. users/42/logs/2026-02-25
    path: Mapped[str] = mapped_column(String(512), primary_key=True)
    # Parent collection path, e.g. users/42/logs
    collection: Mapped[str] = mapped_column(String(512), nullable=False, index=True)
    doc_id: Mapped[str] = mapped_column(String(128), nullable=False)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)
