"""
Pipeline complet d'un document: extraction -> texte persiste -> enrichissement -> commit.

Le ResultWriter est l'unique point d'ecriture; toute erreur d'extraction,
de sauvegarde ou d'enrichissement passe le document en FAILED avant d'etre
re-levee vers le job, qui decide d'un eventuel retry de file.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional

from casefile.common.clients.gemini_client import GeminiClient, get_gemini_client
from casefile.common.errors import InvalidStatusTransition
from casefile.common.retry import BackoffPolicy
from casefile.config.settings import Settings, get_settings
from casefile.db.base import Database, get_database
from casefile.ingestion.components.enrichment.chain import EnrichmentChain
from casefile.ingestion.components.multimodal.processor import MultimodalProcessor
from casefile.ingestion.components.multimodal.visual_analyzer import VisualAnalyzer
from casefile.ingestion.components.ocr.processor import OCRProcessor
from casefile.ingestion.models import DocumentJobPayload, EnrichmentResult, ExtractionResult, ProcessingStatus
from casefile.ingestion.pipelines.router import ExtractionRouter
from casefile.ingestion.state.result_writer import ResultWriter

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int, str], None]

TOTAL_STEPS = 5


@dataclass
class ProcessingOutcome:
    document_id: int
    status: ProcessingStatus
    confidence: float = 0.0
    method: Optional[str] = None
    analysis_type: Optional[str] = None
    text_length: int = 0
    error: Optional[str] = None
    skipped: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


def _no_progress(step: str, progress: int, total_steps: int, message: str) -> None:
    return None


class DocumentPipeline:
    """
    Usage:
        pipeline = DocumentPipeline.from_settings(get_settings())
        outcome = await pipeline.run(DocumentJobPayload(42, "/data/uploads/scan.png", "image/png"))
        pipeline.close()
    """

    def __init__(
        self,
        router: ExtractionRouter,
        enrichment: EnrichmentChain,
        writer: ResultWriter,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.router = router
        self.enrichment = enrichment
        self.writer = writer
        self.progress = progress_callback or _no_progress

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        database: Optional[Database] = None,
        client: Optional[GeminiClient] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> "DocumentPipeline":
        settings = settings or get_settings()
        database = database or get_database()
        client = client or get_gemini_client()

        policy = BackoffPolicy(attempts=settings.ai_max_retries, base_delay=settings.ai_retry_base_delay)
        ocr = OCRProcessor.from_settings(settings)
        multimodal = MultimodalProcessor(
            client,
            policy=policy,
            toolchain=ocr.toolchain,
            tmp_dir=settings.tmp_dir,
            primary_language=settings.primary_language,
            secondary_language=settings.secondary_language,
        )
        visual = VisualAnalyzer(client, toolchain=ocr.toolchain, tmp_dir=settings.tmp_dir)
        enrichment = EnrichmentChain(
            client,
            primary_language=settings.primary_language,
            secondary_language=settings.secondary_language,
            dayfirst=settings.timeline_dayfirst,
        )
        writer = ResultWriter(database, lease_seconds=settings.processing_lease_seconds)
        return cls(ExtractionRouter(ocr, multimodal, visual), enrichment, writer, progress_callback)

    def close(self) -> None:
        self.router.ocr.close()

    async def run(self, payload: DocumentJobPayload) -> ProcessingOutcome:
        document_id = payload.document_id
        logger.info(f"[Pipeline] Document {document_id}: {payload.file_path} ({payload.mime_type})")

        self.progress("Initialisation", 0, TOTAL_STEPS, "Passage en PROCESSING")
        snapshot = self.writer.get(document_id)
        try:
            version = self.writer.mark_processing(document_id)
        except InvalidStatusTransition:
            if snapshot.processing_status is ProcessingStatus.PROCESSED:
                logger.info(f"[Pipeline] Document {document_id} already PROCESSED, nothing to do")
                return ProcessingOutcome(document_id, ProcessingStatus.PROCESSED, skipped=True)
            raise

        self.progress("Extraction", 1, TOTAL_STEPS, f"Extraction du contenu ({payload.mime_type})")
        try:
            result = await self.router.extract(payload.file_path, payload.mime_type)
        except Exception as exc:
            logger.error(f"[Pipeline] ❌ Extraction failed for document {document_id}: {exc}")
            self.writer.commit_failure(document_id, str(exc), version)
            raise

        # Tout echec apres extraction force FAILED: le bail PROCESSING ne doit pas survivre au job
        try:
            await self._persist(document_id, snapshot.file_name, result, version)
        except Exception as exc:
            logger.error(f"[Pipeline] ❌ Persistence failed for document {document_id}: {exc}")
            self.writer.commit_failure(document_id, str(exc))
            raise

        self.progress("Termine", TOTAL_STEPS, TOTAL_STEPS, "Traitement termine")
        return self._outcome(document_id, result)

    async def _persist(self, document_id: int, file_name: str, result: ExtractionResult, version: int) -> None:
        self.progress("Sauvegarde", 2, TOTAL_STEPS, "Sauvegarde du texte extrait")
        version = self.writer.save_extracted_text(document_id, result.text, version)

        enrichment: Optional[EnrichmentResult] = None
        if self._should_enrich(result):
            self.progress("Enrichissement", 3, TOTAL_STEPS, "Resume, chronologie, traductions")
            enrichment = await self.enrichment.run(result.text, file_name)
        else:
            logger.info(f"[Pipeline] Document {document_id}: enrichment skipped (confidence {result.confidence:.0f})")

        self.progress("Finalisation", 4, TOTAL_STEPS, "Enregistrement du resultat")
        self.writer.commit_success(document_id, enrichment, version)

    @staticmethod
    def _should_enrich(result: ExtractionResult) -> bool:
        return result.confidence > 0 and bool(result.text.strip())

    @staticmethod
    def _outcome(document_id: int, result: ExtractionResult) -> ProcessingOutcome:
        return ProcessingOutcome(
            document_id=document_id,
            status=ProcessingStatus.PROCESSED,
            confidence=result.confidence,
            method=result.method.value,
            analysis_type=result.analysis_type.value if result.analysis_type else None,
            text_length=len(result.text),
        )


__all__ = ["DocumentPipeline", "ProcessingOutcome", "ProgressCallback", "TOTAL_STEPS"]
