"""
Echantillonnage video pour l'OCR.

- Detection unique de ffmpeg/ffprobe au demarrage du process
- Une frame toutes les 2 s (au plus 10), extraite par ffmpeg dans un repertoire temporaire
- Recombinaison: tri par timestamp, frames de confiance <= 30 ecartees,
  lignes "[{t}s] {texte}", confiance = moyenne de toutes les frames
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import AsyncIterator, Iterable, List, Optional, Tuple

from casefile.common.errors import CasefileError, VideoToolchainUnavailable
from casefile.ingestion.models import VideoFrame

logger = logging.getLogger(__name__)

VIDEO_UNAVAILABLE_MESSAGE = (
    "[VIDEO] Video processing not available - FFprobe not installed. "
    "Please install FFmpeg to enable video OCR."
)
FRAME_CONFIDENCE_FLOOR = 30.0
PROBE_TIMEOUT_SECONDS = 30
FRAME_TIMEOUT_SECONDS = 60


@dataclass(frozen=True)
class VideoToolchain:
    ffmpeg: Optional[str]
    ffprobe: Optional[str]

    @property
    def available(self) -> bool:
        return bool(self.ffmpeg and self.ffprobe)


@lru_cache(maxsize=1)
def detect_video_toolchain() -> VideoToolchain:
    """Resolu une seule fois par process (les binaires ne changent pas a chaud)."""
    toolchain = VideoToolchain(ffmpeg=shutil.which("ffmpeg"), ffprobe=shutil.which("ffprobe"))
    if toolchain.available:
        logger.info(f"[OCR] Video toolchain found (ffmpeg={toolchain.ffmpeg}, ffprobe={toolchain.ffprobe})")
    else:
        logger.warning("[OCR] FFprobe not available, video processing will be limited")
    return toolchain


def format_timestamp(seconds: float) -> str:
    return f"{seconds:g}"


def combine_frame_results(frames: Iterable[VideoFrame]) -> Tuple[str, float]:
    """
    Combine les resultats OCR des frames.

    L'ordre d'arrivee des frames est indifferent: la sortie est triee par timestamp.
    """
    ordered = sorted(frames, key=lambda frame: frame.timestamp_seconds)
    if not ordered:
        return "", 0.0

    lines = [
        f"[{format_timestamp(frame.timestamp_seconds)}s] {frame.text.strip()}"
        for frame in ordered
        if frame.confidence > FRAME_CONFIDENCE_FLOOR and frame.text.strip()
    ]
    confidence = sum(frame.confidence for frame in ordered) / len(ordered)
    return "\n\n".join(lines), confidence


def sample_timestamps(duration: Optional[float], interval: float = 2.0, max_frames: int = 10) -> List[float]:
    if not duration or duration <= 0:
        return [0.0]
    timestamps: List[float] = []
    t = 0.0
    while t < duration and len(timestamps) < max_frames:
        timestamps.append(t)
        t += interval
    return timestamps


async def _run(cmd: List[str], timeout: float) -> Tuple[int, bytes, bytes]:
    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise
    return process.returncode, stdout, stderr


async def probe_duration(video_path: str, toolchain: VideoToolchain) -> float:
    if not toolchain.available:
        raise VideoToolchainUnavailable()
    cmd = [
        toolchain.ffprobe,
        "-v", "error",
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        video_path,
    ]
    returncode, stdout, stderr = await _run(cmd, PROBE_TIMEOUT_SECONDS)
    if returncode != 0:
        raise CasefileError(f"ffprobe failed on {video_path}: {stderr.decode(errors='replace').strip()}")
    try:
        return float(stdout.decode().strip())
    except ValueError:
        logger.warning(f"[OCR] Unknown duration for {video_path}, sampling first frame only")
        return 0.0


async def extract_frame(video_path: str, timestamp: float, output_path: Path, toolchain: VideoToolchain) -> bool:
    cmd = [
        toolchain.ffmpeg,
        "-v", "error",
        "-ss", format_timestamp(timestamp),
        "-i", video_path,
        "-frames:v", "1",
        "-y",
        str(output_path),
    ]
    returncode, _, stderr = await _run(cmd, FRAME_TIMEOUT_SECONDS)
    if returncode != 0 or not output_path.exists():
        logger.warning(f"[OCR] Frame extraction failed at {timestamp}s: {stderr.decode(errors='replace').strip()}")
        return False
    return True


class FrameSampler:
    """
    Produit les frames d'une video une par une.

    Usage:
        sampler = FrameSampler(detect_video_toolchain(), interval=2.0, max_frames=10)
        async for timestamp, frame_path in sampler.frames(video_path, tmp_dir):
            ...
            frame_path.unlink()
    """

    def __init__(self, toolchain: VideoToolchain, interval: float = 2.0, max_frames: int = 10):
        self.toolchain = toolchain
        self.interval = interval
        self.max_frames = max_frames

    async def frames(self, video_path: str, output_dir: Path) -> AsyncIterator[Tuple[float, Path]]:
        duration = await probe_duration(video_path, self.toolchain)
        timestamps = sample_timestamps(duration, self.interval, self.max_frames)
        logger.info(f"[OCR] Sampling {len(timestamps)} frames from {Path(video_path).name} ({duration:.1f}s)")

        for index, timestamp in enumerate(timestamps, start=1):
            frame_path = output_dir / f"frame-{index}.png"
            if await extract_frame(video_path, timestamp, frame_path, self.toolchain):
                yield timestamp, frame_path


__all__ = [
    "VIDEO_UNAVAILABLE_MESSAGE",
    "FRAME_CONFIDENCE_FLOOR",
    "VideoToolchain",
    "detect_video_toolchain",
    "combine_frame_results",
    "sample_timestamps",
    "probe_duration",
    "extract_frame",
    "FrameSampler",
]
