"""
Analyse visuelle des images et videos.

Le pre-controle "contient du texte extractible ?" evite de lancer l'OCR sur
des photos de scene. Quand l'OCR est insuffisant alors que du texte est present,
le resultat hybride combine OCR et description visuelle.
"""

from __future__ import annotations

import asyncio
import logging
import re
import tempfile
import time
from pathlib import Path
from typing import List, Optional

from casefile.common.clients.gemini_client import GeminiClient
from casefile.common.errors import AIProcessingFailure, CasefileError, UnsupportedMimeType
from casefile.ingestion.components.multimodal import prompts
from casefile.ingestion.components.ocr.video import FrameSampler, VideoToolchain, detect_video_toolchain
from casefile.ingestion.components.validators.content_validator import build_hybrid_content
from casefile.ingestion.models import AnalysisType, ExtractionMethod, ExtractionResult

logger = logging.getLogger(__name__)

VISUAL_ONLY_CONFIDENCE = 90.0
PRECHECK_FRAMES = 3
ANALYSIS_FRAMES = 5
KEYFRAME_INTERVAL = 5.0

# Le modele ne doit pas deviner la langue d'un texte qu'il decrit visuellement
LANGUAGE_ASSUMPTION_PATTERNS = [
    re.compile(r"primarily in \w+ script", re.IGNORECASE),
    re.compile(r"appears to be in \w+", re.IGNORECASE),
    re.compile(r"written in \w+", re.IGNORECASE),
    re.compile(r"contains \w+ text", re.IGNORECASE),
    re.compile(r"language appears to be", re.IGNORECASE),
    re.compile(r"script analysis", re.IGNORECASE),
]
_CUT_MARKERS = ("This document", "primarily", "appears to be", "written in", "contains", "language", "script")

EXTENSION_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".webp": "image/webp",
    ".tiff": "image/tiff",
    ".tif": "image/tiff",
}


def mime_type_from_path(file_path: str, default: str = "image/jpeg") -> str:
    return EXTENSION_MIME_TYPES.get(Path(file_path).suffix.lower(), default)


def validate_visual_response(response: str) -> str:
    """Retire le debut de phrase qui suppose une langue ou une ecriture."""
    for pattern in LANGUAGE_ASSUMPTION_PATTERNS:
        if pattern.search(response):
            logger.warning("[VisualAnalyzer] AI response contains language assumptions, trimming it")
            corrected = response
            for marker in _CUT_MARKERS:
                index = corrected.find(marker)
                if index != -1:
                    corrected = corrected[index + len(marker):]
                    break
            return f"VISUAL ANALYSIS: {corrected.strip()}"
    return response


def _is_yes(answer: str) -> bool:
    return answer.strip().strip(".!\"'").upper() == "YES"


class VisualAnalyzer:
    """
    Usage:
        analyzer = VisualAnalyzer(gemini_client)
        if await analyzer.has_extractable_text(path, "image/png"):
            ...
        result = await analyzer.visual_only(path, "image/png")
    """

    def __init__(
        self,
        client: GeminiClient,
        toolchain: Optional[VideoToolchain] = None,
        tmp_dir: Optional[Path] = None,
    ):
        self.client = client
        self.toolchain = toolchain if toolchain is not None else detect_video_toolchain()
        self.tmp_dir = tmp_dir

    async def has_extractable_text(self, file_path: str, mime_type: str) -> bool:
        """Pre-controle YES/NO par le modele; toute erreur vaut NO."""
        try:
            if mime_type.startswith("image/"):
                return await self._check_image_for_text(file_path, mime_type)
            if mime_type.startswith("video/"):
                return await self._check_video_for_text(file_path, mime_type)
        except (CasefileError, OSError, asyncio.TimeoutError) as exc:
            logger.warning(f"[VisualAnalyzer] Error checking for extractable text: {exc}")
        return False

    async def _check_image_for_text(self, file_path: str, mime_type: str) -> bool:
        data = await asyncio.to_thread(Path(file_path).read_bytes)
        answer = await self.client.generate_with_media(
            prompts.TEXT_PRESENCE_PROMPT.format(subject="image"), data, mime_type
        )
        logger.info(f"[VisualAnalyzer] Image text check result: {answer.strip().upper()}")
        return _is_yes(answer)

    async def _check_video_for_text(self, file_path: str, mime_type: str) -> bool:
        if not self.toolchain.available:
            data = await asyncio.to_thread(Path(file_path).read_bytes)
            answer = await self.client.generate_with_media(
                prompts.TEXT_PRESENCE_PROMPT.format(subject="video"), data, mime_type
            )
            return _is_yes(answer)

        sampler = FrameSampler(self.toolchain, interval=KEYFRAME_INTERVAL, max_frames=PRECHECK_FRAMES)
        has_text = False
        with tempfile.TemporaryDirectory(prefix="casefile-keyframes-", dir=self.tmp_dir) as tmp:
            async for _, frame_path in sampler.frames(file_path, Path(tmp)):
                try:
                    if has_text:
                        continue
                    data = await asyncio.to_thread(frame_path.read_bytes)
                    answer = await self.client.generate_with_media(
                        prompts.TEXT_PRESENCE_PROMPT.format(subject="video frame"), data, "image/png"
                    )
                    has_text = _is_yes(answer)
                except AIProcessingFailure as exc:
                    logger.warning(f"[VisualAnalyzer] Frame text check failed: {exc}")
                finally:
                    frame_path.unlink(missing_ok=True)

        logger.info(f"[VisualAnalyzer] Video text check result: {'YES' if has_text else 'NO'}")
        return has_text

    async def analyze_image(self, file_path: str, mime_type: Optional[str] = None) -> str:
        logger.info(f"[VisualAnalyzer] Analyzing image: {file_path}")
        data = await asyncio.to_thread(Path(file_path).read_bytes)
        response = await self.client.generate_with_media(
            prompts.VISUAL_DESCRIPTION_PROMPT.format(subject="image"),
            data,
            mime_type or mime_type_from_path(file_path),
        )
        return validate_visual_response(response)

    async def analyze_video(self, file_path: str, mime_type: str = "video/mp4") -> str:
        logger.info(f"[VisualAnalyzer] Analyzing video: {file_path}")
        if not self.toolchain.available:
            # Le modele accepte la video entiere en ligne
            data = await asyncio.to_thread(Path(file_path).read_bytes)
            response = await self.client.generate_with_media(prompts.visual_analysis_prompt(mime_type), data, mime_type)
            return validate_visual_response(response)

        sampler = FrameSampler(self.toolchain, interval=KEYFRAME_INTERVAL, max_frames=ANALYSIS_FRAMES)
        frame_analyses: List[str] = []
        with tempfile.TemporaryDirectory(prefix="casefile-keyframes-", dir=self.tmp_dir) as tmp:
            async for _, frame_path in sampler.frames(file_path, Path(tmp)):
                index = len(frame_analyses) + 1
                try:
                    data = await asyncio.to_thread(frame_path.read_bytes)
                    response = await self.client.generate_with_media(
                        prompts.VISUAL_DESCRIPTION_PROMPT.format(subject=f"video frame (frame {index})"),
                        data,
                        "image/png",
                    )
                    frame_analyses.append(f"Frame {index}: {validate_visual_response(response)}")
                except AIProcessingFailure as exc:
                    logger.warning(f"[VisualAnalyzer] Failed to analyze frame {index}: {exc}")
                    frame_analyses.append(f"Frame {index}: Analysis failed")
                finally:
                    frame_path.unlink(missing_ok=True)

        if not frame_analyses:
            return "[VIDEO] Video analysis failed - could not extract frames for analysis."

        combined = "\n\n".join(frame_analyses)
        summary = await self.client.generate_text(prompts.VIDEO_SUMMARY_PROMPT.format(frame_analyses=combined))
        return (
            f"VIDEO ANALYSIS SUMMARY:\n\n{validate_visual_response(summary)}"
            f"\n\nDETAILED FRAME ANALYSIS:\n\n{combined}"
        )

    async def analyze_visual(self, file_path: str, mime_type: str) -> str:
        if mime_type.startswith("image/"):
            return await self.analyze_image(file_path, mime_type)
        if mime_type.startswith("video/"):
            return await self.analyze_video(file_path, mime_type)
        raise UnsupportedMimeType(mime_type)

    async def visual_only(self, file_path: str, mime_type: str) -> ExtractionResult:
        """Aucun texte detecte: description visuelle seule, confiance 90."""
        start = time.monotonic()
        logger.info("[VisualAnalyzer] No extractable text detected, proceeding directly to visual analysis")
        content = await self.analyze_visual(file_path, mime_type)
        return ExtractionResult(
            text=content,
            confidence=VISUAL_ONLY_CONFIDENCE,
            processing_time_ms=int((time.monotonic() - start) * 1000),
            method=ExtractionMethod.VISUAL_OCR,
            analysis_type=AnalysisType.VISUAL,
            description="Content analyzed using visual AI analysis (no extractable text detected)",
        )

    async def hybrid(self, file_path: str, mime_type: str, ocr_result: ExtractionResult) -> ExtractionResult:
        """OCR insuffisant alors que du texte est present: OCR + analyse visuelle."""
        start = time.monotonic()
        logger.info(
            f"[VisualAnalyzer] OCR extracted minimal text ({len(ocr_result.text)} chars, "
            f"{ocr_result.confidence:.0f}% confidence) despite text being present. Using hybrid approach."
        )
        visual = await self.analyze_visual(file_path, mime_type)
        content, confidence = build_hybrid_content(ocr_result.text, ocr_result.confidence, visual)
        return ExtractionResult(
            text=content,
            confidence=confidence,
            processing_time_ms=ocr_result.processing_time_ms + int((time.monotonic() - start) * 1000),
            method=ExtractionMethod.VISUAL_OCR,
            analysis_type=AnalysisType.HYBRID,
            description="Content analyzed using hybrid approach (OCR + Visual Analysis)",
        )


__all__ = [
    "VisualAnalyzer",
    "VISUAL_ONLY_CONFIDENCE",
    "validate_visual_response",
    "mime_type_from_path",
]
