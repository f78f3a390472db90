"""
Sous-systeme OCR: pretraitement Pillow, pool Tesseract, echantillonnage video.
"""

from .processor import OCRProcessor
from .scheduler import RecognitionScheduler, RecognizedText
from .video import (
    VIDEO_UNAVAILABLE_MESSAGE,
    FrameSampler,
    VideoToolchain,
    combine_frame_results,
    detect_video_toolchain,
)

__all__ = [
    "OCRProcessor",
    "RecognitionScheduler",
    "RecognizedText",
    "VIDEO_UNAVAILABLE_MESSAGE",
    "FrameSampler",
    "VideoToolchain",
    "combine_frame_results",
    "detect_video_toolchain",
]
