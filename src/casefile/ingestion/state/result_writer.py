"""
Ecriture des resultats de traitement dans la table `documents`.

Seul point d'ecriture du pipeline sur un document. Chaque ecriture:
- verifie la transition d'etat demandee
- incremente `version` sous condition (verrouillage optimiste): une ecriture
  concurrente fait echouer l'UPDATE au lieu d'ecraser silencieusement
- pose ou libere le bail `lease_expires_at` de l'etat PROCESSING
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from casefile.common.errors import DocumentNotFound, InvalidStatusTransition, ResultPersistenceFailure
from casefile.db.base import Database
from casefile.db.models import DocumentRecord
from casefile.ingestion.models import EnrichmentResult, ProcessingStatus
from casefile.ingestion.state.document_state import assert_transition, error_text

logger = logging.getLogger(__name__)

INTERRUPTED_MESSAGE = "Processing interrupted"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite restitue des datetimes naifs: ils sont stockes en UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class DocumentSnapshot:
    id: int
    case_id: int
    file_name: str
    mime_type: str
    storage_path: Optional[str]
    processing_status: ProcessingStatus
    extracted_text: Optional[str]
    summary: Optional[str]
    timeline: Optional[List[Dict[str, str]]]
    translation_en: Optional[str]
    translation_ar: Optional[str]
    version: int
    lease_expires_at: Optional[datetime]

    @classmethod
    def from_record(cls, record: DocumentRecord) -> "DocumentSnapshot":
        return cls(
            id=record.id,
            case_id=record.case_id,
            file_name=record.file_name,
            mime_type=record.mime_type,
            storage_path=record.storage_path,
            processing_status=ProcessingStatus(record.processing_status),
            extracted_text=record.extracted_text,
            summary=record.summary,
            timeline=record.timeline,
            translation_en=record.translation_en,
            translation_ar=record.translation_ar,
            version=record.version,
            lease_expires_at=as_utc(record.lease_expires_at),
        )


class ResultWriter:
    """
    Usage:
        writer = ResultWriter(database)
        version = writer.mark_processing(42)
        version = writer.save_extracted_text(42, text, version)
        writer.commit_success(42, enrichment, version)
    """

    def __init__(
        self,
        database: Database,
        lease_seconds: int = 5400,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.database = database
        self.lease = timedelta(seconds=lease_seconds)
        self.clock = clock

    # ------------------------------------------------------------------ reads

    def get(self, document_id: int) -> DocumentSnapshot:
        with self._session() as session:
            return DocumentSnapshot.from_record(self._load(session, document_id))

    @staticmethod
    def _load(session: Session, document_id: int) -> DocumentRecord:
        record = session.get(DocumentRecord, document_id)
        if record is None:
            raise DocumentNotFound(document_id)
        return record

    # ----------------------------------------------------------------- writes

    def _session(self):
        return self.database.session()

    def _update(self, session: Session, document_id: int, expected_version: int, values: Dict[str, Any]) -> int:
        new_version = expected_version + 1
        stmt = (
            update(DocumentRecord)
            .where(DocumentRecord.id == document_id, DocumentRecord.version == expected_version)
            .values(version=new_version, updated_at=self.clock(), **values)
        )
        result = session.execute(stmt)
        if result.rowcount != 1:
            raise ResultPersistenceFailure(
                f"Document {document_id} was modified concurrently (expected version {expected_version})"
            )
        return new_version

    def _lease_expired(self, record: DocumentRecord, now: Optional[datetime] = None) -> bool:
        now = now or self.clock()
        expires_at = as_utc(record.lease_expires_at)
        if expires_at is None:
            expires_at = as_utc(record.updated_at) + self.lease
        return expires_at <= now

    def _write(self, document_id: int, operation: Callable[[Session, DocumentRecord], int]) -> int:
        try:
            with self._session() as session:
                record = self._load(session, document_id)
                return operation(session, record)
        except SQLAlchemyError as exc:
            raise ResultPersistenceFailure(f"Database write failed for document {document_id}: {exc}") from exc

    def mark_pending(self, document_id: int) -> int:
        """FAILED -> PENDING (relance). Sans effet si le document est deja PENDING."""

        def _op(session: Session, record: DocumentRecord) -> int:
            if record.processing_status == ProcessingStatus.PENDING.value:
                return record.version
            assert_transition(record.processing_status, ProcessingStatus.PENDING)
            return self._update(
                session, record.id, record.version,
                {"processing_status": ProcessingStatus.PENDING.value, "lease_expires_at": None},
            )

        return self._write(document_id, _op)

    def mark_processing(self, document_id: int) -> int:
        """
        Passe le document en PROCESSING et pose le bail.

        Un document FAILED est d'abord remis a PENDING (nouvelle tentative).
        Un document PROCESSING dont le bail a expire est repris tel quel.

        Returns:
            la version a fournir aux ecritures suivantes
        """

        def _op(session: Session, record: DocumentRecord) -> int:
            version = record.version
            status = record.processing_status
            if status == ProcessingStatus.PROCESSING.value and self._lease_expired(record):
                logger.warning(f"[ResultWriter] Document {record.id}: expired PROCESSING lease taken over")
                return self._update(session, record.id, version, {"lease_expires_at": self.clock() + self.lease})
            if status == ProcessingStatus.FAILED.value:
                version = self._update(
                    session, record.id, version, {"processing_status": ProcessingStatus.PENDING.value}
                )
                status = ProcessingStatus.PENDING.value
            assert_transition(status, ProcessingStatus.PROCESSING)
            return self._update(
                session, record.id, version,
                {
                    "processing_status": ProcessingStatus.PROCESSING.value,
                    "lease_expires_at": self.clock() + self.lease,
                },
            )

        version = self._write(document_id, _op)
        logger.info(f"[ResultWriter] Document {document_id} -> PROCESSING (v{version})")
        return version

    def save_extracted_text(self, document_id: int, text: str, version: int) -> int:
        """Persiste le texte de base avant l'enrichissement (le document reste PROCESSING)."""

        def _op(session: Session, record: DocumentRecord) -> int:
            if record.processing_status != ProcessingStatus.PROCESSING.value:
                raise InvalidStatusTransition(record.processing_status, ProcessingStatus.PROCESSING.value)
            return self._update(session, record.id, version, {"extracted_text": text})

        new_version = self._write(document_id, _op)
        logger.info(f"[ResultWriter] Document {document_id}: extracted text saved ({len(text)} chars)")
        return new_version

    def commit_success(
        self,
        document_id: int,
        enrichment: Optional[EnrichmentResult],
        version: int,
    ) -> int:
        def _op(session: Session, record: DocumentRecord) -> int:
            assert_transition(record.processing_status, ProcessingStatus.PROCESSED)
            values: Dict[str, Any] = {
                "processing_status": ProcessingStatus.PROCESSED.value,
                "lease_expires_at": None,
            }
            if enrichment is not None:
                values.update(
                    summary=enrichment.summary,
                    timeline=enrichment.timeline_json(),
                    translation_en=enrichment.translation_en,
                    translation_ar=enrichment.translation_ar,
                )
                if enrichment.title:
                    values["file_name"] = enrichment.title
            return self._update(session, record.id, version, values)

        new_version = self._write(document_id, _op)
        logger.info(f"[ResultWriter] ✅ Document {document_id} -> PROCESSED (v{new_version})")
        return new_version

    def commit_failure(self, document_id: int, message: str, version: Optional[int] = None) -> bool:
        """
        Passe le document en FAILED avec le message prefixe par le marqueur d'erreur.

        `version=None` force l'ecriture sur la version courante (document bloque
        apres un echec de persistance). Un document PROCESSED n'est jamais ecrase.

        Returns:
            False si le document etait deja PROCESSED
        """

        def _op(session: Session, record: DocumentRecord) -> int:
            status = record.processing_status
            current = record.version if version is None else version
            if status == ProcessingStatus.PROCESSED.value:
                return -1
            if status == ProcessingStatus.PENDING.value:
                current = self._update(
                    session, record.id, current, {"processing_status": ProcessingStatus.PROCESSING.value}
                )
                status = ProcessingStatus.PROCESSING.value
            if status != ProcessingStatus.FAILED.value:
                assert_transition(status, ProcessingStatus.FAILED)
            return self._update(
                session, record.id, current,
                {
                    "processing_status": ProcessingStatus.FAILED.value,
                    "extracted_text": error_text(message),
                    "lease_expires_at": None,
                },
            )

        result = self._write(document_id, _op)
        if result < 0:
            logger.warning(f"[ResultWriter] Document {document_id} already PROCESSED, failure not recorded: {message}")
            return False
        logger.error(f"[ResultWriter] ❌ Document {document_id} -> FAILED: {message}")
        return True

    def sweep_stale_processing(self, now: Optional[datetime] = None) -> List[int]:
        """Force en FAILED les documents PROCESSING dont le bail a expire (worker mort)."""
        now = as_utc(now) if now is not None else self.clock()
        swept: List[int] = []
        try:
            with self._session() as session:
                records = session.execute(
                    select(DocumentRecord).where(
                        DocumentRecord.processing_status == ProcessingStatus.PROCESSING.value
                    )
                ).scalars().all()
                for record in records:
                    if not self._lease_expired(record, now):
                        continue
                    try:
                        self._update(
                            session, record.id, record.version,
                            {
                                "processing_status": ProcessingStatus.FAILED.value,
                                "extracted_text": error_text(INTERRUPTED_MESSAGE),
                                "lease_expires_at": None,
                            },
                        )
                    except ResultPersistenceFailure as exc:
                        logger.warning(f"[ResultWriter] Sweep skipped document {record.id}: {exc}")
                        continue
                    swept.append(record.id)
        except SQLAlchemyError as exc:
            raise ResultPersistenceFailure(f"Stale PROCESSING sweep failed: {exc}") from exc

        if swept:
            logger.warning(f"[ResultWriter] Sweep: {len(swept)} stale PROCESSING documents -> FAILED {swept}")
        else:
            logger.info("[ResultWriter] Sweep: no stale PROCESSING document")
        return swept


__all__ = ["ResultWriter", "DocumentSnapshot", "INTERRUPTED_MESSAGE", "as_utc", "utcnow"]
