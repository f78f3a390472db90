"""
Routage de l'extraction par type MIME.

    texte/code/tableurs  -> lecture locale (confiance 100, aucun appel IA)
    DOCX                 -> texte python-docx + analyse des images embarquees
    image / video        -> pre-controle "texte present ?" puis OCR, visuel ou hybride
    audio                -> transcription par le modele
    PDF et autres types  -> processeur multimodal
    inconnu              -> UnsupportedMimeType

Les echecs d'extraction sont rattrapes localement tant qu'une alternative
existe (OCR -> modele); seule l'impossibilite totale d'obtenir un texte
remonte a l'appelant.
"""

from __future__ import annotations

import logging
from typing import Optional

from casefile.common.errors import AIProcessingFailure, CasefileError, OCRLowConfidence, UnsupportedMimeType
from casefile.ingestion import mime_types
from casefile.ingestion.components.extractors.text_reader import read_text_document
from casefile.ingestion.components.multimodal.processor import MultimodalProcessor
from casefile.ingestion.components.multimodal.visual_analyzer import VisualAnalyzer
from casefile.ingestion.components.ocr.processor import OCRProcessor
from casefile.ingestion.components.validators.content_validator import has_meaningful_text
from casefile.ingestion.models import AnalysisType, ExtractionResult

logger = logging.getLogger(__name__)


def accept_ocr(result: ExtractionResult) -> ExtractionResult:
    """Leve OCRLowConfidence si le texte OCR n'est pas exploitable."""
    if not has_meaningful_text(result.text, result.confidence):
        raise OCRLowConfidence(result.confidence, len(result.text.strip()))
    return result


class ExtractionRouter:
    """
    Usage:
        router = ExtractionRouter(ocr_processor, multimodal_processor, visual_analyzer)
        result = await router.extract("/data/uploads/scan.png", "image/png")
    """

    def __init__(self, ocr: OCRProcessor, multimodal: MultimodalProcessor, visual: VisualAnalyzer):
        self.ocr = ocr
        self.multimodal = multimodal
        self.visual = visual

    async def extract(self, file_path: str, mime_type: str) -> ExtractionResult:
        logger.info(f"[Router] {file_path} ({mime_type})")

        if mime_types.is_text_based(mime_type):
            return await read_text_document(file_path, mime_type)

        if mime_types.is_docx(mime_type):
            return await self.multimodal.process_docx_with_images(file_path)

        if mime_types.is_image(mime_type) or mime_types.is_video(mime_type):
            return await self._extract_visual(file_path, mime_type)

        if mime_types.is_audio(mime_type) or mime_types.is_supported(mime_type):
            return await self.multimodal.process_with_retry(file_path, mime_type)

        raise UnsupportedMimeType(mime_type)

    async def _extract_visual(self, file_path: str, mime_type: str) -> ExtractionResult:
        if mime_types.is_video(mime_type) and not self.ocr.video_supported:
            return await self._video_without_toolchain(file_path, mime_type)

        if not await self.visual.has_extractable_text(file_path, mime_type):
            try:
                return await self.visual.visual_only(file_path, mime_type)
            except AIProcessingFailure as exc:
                logger.warning(f"[Router] Visual analysis failed, falling back to multimodal processor: {exc}")
                return await self.multimodal.process_with_retry(file_path, mime_type)

        ocr_result = await self._run_ocr(file_path, mime_type)
        if ocr_result is None:
            return await self.multimodal.process_with_retry(file_path, mime_type)

        try:
            return accept_ocr(ocr_result)
        except OCRLowConfidence as exc:
            logger.info(f"[Router] {exc}, switching to hybrid analysis")

        try:
            return await self.visual.hybrid(file_path, mime_type, ocr_result)
        except AIProcessingFailure as exc:
            if ocr_result.text.strip():
                logger.warning(f"[Router] Hybrid analysis failed, keeping low-confidence OCR text: {exc}")
                return ocr_result
            raise

    async def _run_ocr(self, file_path: str, mime_type: str) -> Optional[ExtractionResult]:
        try:
            return await self.ocr.process_file(file_path, mime_type)
        except (CasefileError, OSError, RuntimeError) as exc:
            logger.warning(f"[Router] Local OCR failed for {file_path}: {exc}")
            return None

    async def _video_without_toolchain(self, file_path: str, mime_type: str) -> ExtractionResult:
        """
        Pas de ffmpeg/ffprobe: resultat "non disponible" (confiance 0), complete
        par l'analyse visuelle de la video entiere quand le modele y parvient.
        """
        marker = await self.ocr.process_video(file_path)
        try:
            visual = await self.visual.analyze_video(file_path, mime_type)
        except AIProcessingFailure as exc:
            logger.warning(f"[Router] Visual fallback for video failed: {exc}")
            return marker

        return ExtractionResult(
            text=f"{marker.text}\n\nVISUAL ANALYSIS:\n{visual}",
            confidence=0,
            processing_time_ms=marker.processing_time_ms,
            method=marker.method,
            analysis_type=AnalysisType.VISUAL,
            description="Video toolchain not available, visual analysis of the whole video",
        )


__all__ = ["ExtractionRouter", "accept_ocr"]
