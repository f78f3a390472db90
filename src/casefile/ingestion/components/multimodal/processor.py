"""
Processeur multimodal: delegue transcription, OCR visuel et extraction
documentaire au modele generatif.

La confiance retournee est une valeur nominale fixe (85): le fournisseur
n'en produit pas, elle n'est pas calibree.
"""

from __future__ import annotations

import asyncio
import logging
import tempfile
import time
from pathlib import Path
from typing import List, Optional, Tuple

from casefile.common.clients.gemini_client import GeminiClient
from casefile.common.errors import AIProcessingFailure, CasefileError
from casefile.common.retry import BackoffPolicy, retry_async
from casefile.ingestion.components.enrichment.language import OTHER, detect_language
from casefile.ingestion.components.extractors.docx_extractor import (
    EmbeddedImage,
    extract_docx_text,
    extract_embedded_images,
)
from casefile.ingestion.components.multimodal import prompts
from casefile.ingestion.components.ocr.video import VideoToolchain, detect_video_toolchain
from casefile.ingestion.mime_types import NATIVE_AUDIO_TYPES
from casefile.ingestion.models import AnalysisType, ExtractionMethod, ExtractionResult

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 85.0
MIN_CONTENT_LENGTH = 10
AUDIO_CONVERSION_TIMEOUT = 300

# Confiance derivee du traitement DOCX
DOCX_BASE_CONFIDENCE = 60.0
DOCX_TEXT_BONUS = 10.0
DOCX_IMAGE_BONUS = 20.0
DOCX_TRANSLATION_PENALTY = 10.0

IMAGE_SPLIT_MARKERS = (
    "\n- Identified objects",
    "\n- Object & Scene Description",
    "\n- Description:",
    "\n- Objects:",
    "\n- Scene:",
)


def processing_method(mime_type: str) -> ExtractionMethod:
    if mime_type.startswith("audio/"):
        return ExtractionMethod.AUDIO_TRANSCRIPTION
    if mime_type.startswith("image/") or mime_type.startswith("video/"):
        return ExtractionMethod.VISUAL_OCR
    return ExtractionMethod.DOCUMENT_ANALYSIS


def validate_content_length(content: str, operation: str) -> str:
    if not content or len(content.strip()) < MIN_CONTENT_LENGTH:
        raise AIProcessingFailure(f"{operation} returned insufficient content")
    return content


def format_image_analysis(file_name: str, analysis: str) -> str:
    """Separe le texte OCR du resume visuel quand le modele a suivi le format demande."""
    split_index = -1
    for marker in IMAGE_SPLIT_MARKERS:
        split_index = analysis.find(marker)
        if split_index != -1:
            break

    if split_index != -1:
        ocr_text = analysis[:split_index].strip()
        visual_summary = analysis[split_index:].strip()
        return (
            f"\n--- Image from {file_name} (Comprehensive Analysis) ---\n"
            f"OCR Text:\n{ocr_text}\n\nVisual Summary:\n{visual_summary}"
        )
    return f"\n--- Image from {file_name} (Analysis) ---\n{analysis}"


def docx_confidence(has_text: bool, analysed_images: int, translated: bool) -> float:
    confidence = DOCX_BASE_CONFIDENCE
    if has_text:
        confidence += DOCX_TEXT_BONUS
    if analysed_images > 0:
        confidence += DOCX_IMAGE_BONUS
    if translated:
        confidence -= DOCX_TRANSLATION_PENALTY
    return confidence


class MultimodalProcessor:
    """
    Usage:
        processor = MultimodalProcessor(gemini_client)
        result = await processor.process_with_retry("/data/uploads/contract.pdf", "application/pdf")
        result = await processor.process_docx_with_images("/data/uploads/report.docx")
    """

    def __init__(
        self,
        client: GeminiClient,
        policy: Optional[BackoffPolicy] = None,
        toolchain: Optional[VideoToolchain] = None,
        tmp_dir: Optional[Path] = None,
        primary_language: str = "en",
        secondary_language: str = "ar",
    ):
        self.client = client
        self.policy = policy or BackoffPolicy(attempts=3, base_delay=2.0)
        self.toolchain = toolchain if toolchain is not None else detect_video_toolchain()
        self.tmp_dir = tmp_dir
        self.primary_language = primary_language
        self.secondary_language = secondary_language

    async def process_file(self, file_path: str, mime_type: str) -> ExtractionResult:
        start = time.monotonic()
        method = processing_method(mime_type)
        logger.info(f"[Gemini] Processing {mime_type} file: {file_path} ({method.value})")

        if method is ExtractionMethod.AUDIO_TRANSCRIPTION:
            text = await self._transcribe_audio(file_path, mime_type)
        elif method is ExtractionMethod.VISUAL_OCR:
            text = await self._analyze_media(file_path, mime_type, prompts.visual_analysis_prompt(mime_type), "Visual analysis")
        else:
            text = await self._analyze_media(file_path, mime_type, prompts.document_analysis_prompt(mime_type), "Document analysis")

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info(f"[Gemini] Processing completed in {elapsed_ms}ms, text length: {len(text)}")
        return ExtractionResult(
            text=text,
            confidence=DEFAULT_CONFIDENCE,
            processing_time_ms=elapsed_ms,
            method=method,
            analysis_type=AnalysisType.VISUAL if method is ExtractionMethod.VISUAL_OCR else None,
            description=f"Content extracted by multimodal model ({method.value})",
        )

    async def process_with_retry(
        self, file_path: str, mime_type: str, policy: Optional[BackoffPolicy] = None
    ) -> ExtractionResult:
        """
        `process_file` avec backoff exponentiel.

        Raises:
            AIProcessingFailure: tentatives epuisees, porte la derniere erreur
        """
        policy = policy or self.policy
        try:
            return await retry_async(
                lambda: self.process_file(file_path, mime_type),
                policy=policy,
                operation=f"Gemini {Path(file_path).name}",
                retry_on=(AIProcessingFailure,),
            )
        except AIProcessingFailure as exc:
            raise AIProcessingFailure(
                f"Gemini processing failed after {policy.attempts} attempts: {exc}",
                attempts=policy.attempts,
                last_error=exc,
            ) from exc

    async def _analyze_media(self, file_path: str, mime_type: str, prompt: str, operation: str) -> str:
        data = await asyncio.to_thread(Path(file_path).read_bytes)
        try:
            content = await self.client.generate_with_media(prompt, data, mime_type)
        except AIProcessingFailure as exc:
            raise AIProcessingFailure(f"{operation} failed: {exc}", last_error=exc.last_error) from exc
        return validate_content_length(content, operation)

    async def _transcribe_audio(self, file_path: str, mime_type: str) -> str:
        logger.info(f"[Gemini] Transcribing audio file: {file_path} (MIME: {mime_type})")
        data, actual_mime = await self._load_audio(file_path, mime_type)
        try:
            transcription = await self.client.generate_with_media(prompts.AUDIO_TRANSCRIPTION_PROMPT, data, actual_mime)
        except AIProcessingFailure as exc:
            raise AIProcessingFailure(f"Audio transcription failed: {exc}", last_error=exc.last_error) from exc
        return validate_content_length(transcription, "Audio transcription")

    async def _load_audio(self, file_path: str, mime_type: str) -> Tuple[bytes, str]:
        """Lit l'audio; les formats non natifs sont convertis en WAV si ffmpeg est present."""
        if mime_type in NATIVE_AUDIO_TYPES or not self.toolchain.ffmpeg:
            return await asyncio.to_thread(Path(file_path).read_bytes), mime_type

        logger.info(f"[Gemini] Converting {file_path} to WAV for model compatibility...")
        with tempfile.TemporaryDirectory(prefix="casefile-audio-", dir=self.tmp_dir) as tmp:
            wav_path = Path(tmp) / f"{Path(file_path).stem}.wav"
            process = await asyncio.create_subprocess_exec(
                self.toolchain.ffmpeg, "-v", "error", "-i", file_path, "-y", str(wav_path),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=AUDIO_CONVERSION_TIMEOUT)
            if process.returncode != 0:
                raise CasefileError(f"Audio conversion to WAV failed: {stderr.decode(errors='replace').strip()}")
            logger.info(f"[Gemini] Conversion to WAV completed: {wav_path.name}")
            return await asyncio.to_thread(wav_path.read_bytes), "audio/wav"

    async def analyze_embedded_image(self, image: EmbeddedImage) -> str:
        """Analyse une image de DOCX; chaine vide en cas d'echec (l'image est ignoree)."""
        try:
            analysis = await self.client.generate_with_media(prompts.IMAGE_BUFFER_PROMPT, image.data, image.mime_type)
        except AIProcessingFailure as exc:
            logger.warning(f"[Gemini] Failed to process image {image.name}: {exc}")
            return ""
        return analysis.strip()

    async def process_docx_with_images(self, file_path: str, extracted_text: Optional[str] = None) -> ExtractionResult:
        """
        DOCX: texte embarque + analyse de chaque image raster du conteneur.

        Confiance derivee: 60, +10 si du texte a ete extrait, +20 si au moins une
        image a ete analysee, -10 si une traduction vers l'anglais a ete necessaire.
        """
        start = time.monotonic()
        logger.info(f"[Gemini] Processing DOCX file with image extraction: {file_path}")

        if extracted_text is None:
            extracted_text = await extract_docx_text(file_path)
        extracted_text = (extracted_text or "").strip()

        images = await extract_embedded_images(file_path)
        analyses: List[str] = []
        for image in images:
            analysis = await self.analyze_embedded_image(image)
            if analysis:
                analyses.append(format_image_analysis(image.name, analysis))

        combined = extracted_text
        if analyses:
            combined += "\n\n--- IMAGE CONTENT ANALYSIS ---\n" + "\n".join(analyses)
        combined = combined.strip()
        if not combined:
            raise CasefileError("No text or images could be extracted from DOCX file")

        translated = False
        language = detect_language(combined, self.primary_language, self.secondary_language)
        if language == OTHER:
            translated = True
            try:
                translation = await self.client.generate_text(prompts.TRANSLATE_TO_ENGLISH_PROMPT.format(text=combined))
                if translation.strip():
                    combined = translation.strip()
            except AIProcessingFailure as exc:
                logger.warning(f"[Gemini] DOCX translation to English failed, keeping original text: {exc}")

        confidence = docx_confidence(bool(extracted_text), len(analyses), translated)
        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            f"[Gemini] DOCX processing completed: {len(analyses)}/{len(images)} images analysed, "
            f"{len(combined)} chars, confidence {confidence:.0f}"
        )
        return ExtractionResult(
            text=combined,
            confidence=confidence,
            processing_time_ms=elapsed_ms,
            method=ExtractionMethod.DOCUMENT_ANALYSIS,
            analysis_type=AnalysisType.HYBRID if analyses else AnalysisType.TEXT,
            description=f"DOCX text with {len(analyses)} analysed images",
        )


__all__ = [
    "MultimodalProcessor",
    "DEFAULT_CONFIDENCE",
    "format_image_analysis",
    "docx_confidence",
    "processing_method",
    "validate_content_length",
]
