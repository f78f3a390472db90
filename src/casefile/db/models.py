"""
Modele SQLAlchemy de la piece de dossier (Document).

Seuls les champs consommes/produits par le pipeline sont mappes. Les colonnes
`version` et `lease_expires_at` portent le verrouillage optimiste et le bail
de traitement utilises par le ResultWriter et le balayage de supervision.
"""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text

from casefile.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentRecord(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    case_id = Column(Integer, nullable=False, index=True)
    file_name = Column(Text, nullable=False)
    mime_type = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=True)
    storage_path = Column(Text, nullable=True)

    processing_status = Column(
        String(20),
        nullable=False,
        default="PENDING",
        comment="PENDING | PROCESSING | PROCESSED | FAILED",
    )
    extracted_text = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    timeline = Column(JSON, nullable=True)
    translation_en = Column(Text, nullable=True)
    translation_ar = Column(Text, nullable=True)

    version = Column(Integer, nullable=False, default=0)
    lease_expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (Index("ix_documents_status_lease", "processing_status", "lease_expires_at"),)

    def __repr__(self) -> str:
        return f"<DocumentRecord id={self.id} status={self.processing_status} v={self.version}>"
