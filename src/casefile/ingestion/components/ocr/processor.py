"""
OCR local des images et videos (aucun appel au modele generatif).
"""

from __future__ import annotations

import asyncio
import logging
import tempfile
import time
from pathlib import Path
from typing import List, Optional

from PIL import Image

from casefile.common.errors import UnsupportedMimeType
from casefile.config.settings import Settings
from casefile.ingestion.components.ocr.preprocessing import DEFAULT_MAX_DIMENSION, load_preprocessed
from casefile.ingestion.components.ocr.scheduler import RecognitionScheduler
from casefile.ingestion.components.ocr.video import (
    VIDEO_UNAVAILABLE_MESSAGE,
    FrameSampler,
    VideoToolchain,
    combine_frame_results,
    detect_video_toolchain,
)
from casefile.ingestion.models import AnalysisType, ExtractionMethod, ExtractionResult, VideoFrame

logger = logging.getLogger(__name__)


def _open_frame(path: Path) -> Image.Image:
    with Image.open(path) as frame:
        frame.load()
        return frame.copy()


class OCRProcessor:
    """
    Usage:
        processor = OCRProcessor.from_settings(settings)
        result = await processor.process_file("/data/uploads/scan.png", "image/png")
        processor.close()
    """

    def __init__(
        self,
        scheduler: RecognitionScheduler,
        toolchain: Optional[VideoToolchain] = None,
        max_dimension: int = DEFAULT_MAX_DIMENSION,
        frame_interval: float = 2.0,
        max_frames: int = 10,
        tmp_dir: Optional[Path] = None,
    ):
        self.scheduler = scheduler
        self.toolchain = toolchain if toolchain is not None else detect_video_toolchain()
        self.max_dimension = max_dimension
        self.sampler = FrameSampler(self.toolchain, interval=frame_interval, max_frames=max_frames)
        self.tmp_dir = tmp_dir

    @classmethod
    def from_settings(cls, settings: Settings) -> "OCRProcessor":
        scheduler = RecognitionScheduler(workers=settings.ocr_workers, languages=settings.ocr_languages)
        return cls(
            scheduler,
            max_dimension=settings.ocr_max_dimension,
            frame_interval=settings.video_frame_interval,
            max_frames=settings.video_max_frames,
            tmp_dir=settings.tmp_dir,
        )

    @property
    def video_supported(self) -> bool:
        return self.toolchain.available

    async def process_file(self, file_path: str, mime_type: str) -> ExtractionResult:
        if mime_type.startswith("image/"):
            return await self.process_image(file_path)
        if mime_type.startswith("video/"):
            return await self.process_video(file_path)
        raise UnsupportedMimeType(mime_type)

    async def process_image(self, file_path: str) -> ExtractionResult:
        start = time.monotonic()
        logger.info(f"[OCR] Processing image: {file_path}")

        image = await asyncio.to_thread(load_preprocessed, file_path, self.max_dimension)
        recognized = await self.scheduler.recognize(image)

        logger.info(f"[OCR] Image done: {len(recognized.text)} chars, {recognized.confidence:.1f}% confidence")
        return ExtractionResult(
            text=recognized.text,
            confidence=recognized.confidence,
            processing_time_ms=int((time.monotonic() - start) * 1000),
            method=ExtractionMethod.VISUAL_OCR,
            analysis_type=AnalysisType.OCR,
            description="Text extracted using local OCR",
        )

    async def process_video(self, file_path: str) -> ExtractionResult:
        start = time.monotonic()
        logger.info(f"[OCR] Processing video: {file_path}")

        if not self.toolchain.available:
            logger.warning("[OCR] FFprobe not available, skipping video processing")
            return ExtractionResult(
                text=VIDEO_UNAVAILABLE_MESSAGE,
                confidence=0,
                processing_time_ms=int((time.monotonic() - start) * 1000),
                method=ExtractionMethod.VISUAL_OCR,
                analysis_type=AnalysisType.OCR,
                description="Video toolchain not available",
            )

        frames: List[VideoFrame] = []
        with tempfile.TemporaryDirectory(prefix="casefile-frames-", dir=self.tmp_dir) as tmp:
            async for timestamp, frame_path in self.sampler.frames(file_path, Path(tmp)):
                try:
                    image = await asyncio.to_thread(_open_frame, frame_path)
                    recognized = await self.scheduler.recognize(image)
                    frames.append(VideoFrame(timestamp, recognized.text, recognized.confidence))
                except Exception as exc:
                    logger.warning(f"[OCR] Failed to process frame at {timestamp}s: {exc}")
                finally:
                    frame_path.unlink(missing_ok=True)

        text, confidence = combine_frame_results(frames)
        logger.info(f"[OCR] Video done: {len(frames)} frames, {confidence:.1f}% mean confidence")
        return ExtractionResult(
            text=text,
            confidence=confidence,
            processing_time_ms=int((time.monotonic() - start) * 1000),
            method=ExtractionMethod.VISUAL_OCR,
            analysis_type=AnalysisType.OCR,
            description=f"Text extracted from {len(frames)} video frames",
        )

    def close(self) -> None:
        self.scheduler.close()


__all__ = ["OCRProcessor"]
