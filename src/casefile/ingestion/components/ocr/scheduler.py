"""
Ordonnanceur de reconnaissance OCR.

Un pool fixe de threads (OCR_WORKERS, 2 par defaut) execute Tesseract;
les coroutines soumettent les images via `recognize()` sans bloquer la boucle.
Au-dela de la taille du pool, les soumissions attendent leur tour.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import pytesseract
from PIL import Image

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecognizedText:
    text: str
    confidence: float


def _lines_from_data(data: Dict[str, List]) -> Tuple[str, float]:
    """Reconstruit les lignes (bloc/paragraphe/ligne) et la confiance moyenne des mots."""
    lines: Dict[Tuple[int, int, int], List[str]] = {}
    confidences: List[float] = []

    for i, word in enumerate(data.get("text", [])):
        word = (word or "").strip()
        try:
            conf = float(data["conf"][i])
        except (KeyError, TypeError, ValueError):
            conf = -1.0
        if not word:
            continue
        key = (int(data["block_num"][i]), int(data["par_num"][i]), int(data["line_num"][i]))
        lines.setdefault(key, []).append(word)
        if conf >= 0:
            confidences.append(conf)

    text = "\n".join(" ".join(words) for _, words in sorted(lines.items()))
    confidence = sum(confidences) / len(confidences) if confidences else 0.0
    return text, max(0.0, min(100.0, confidence))


def tesseract_recognize(image: Image.Image, languages: str) -> RecognizedText:
    data = pytesseract.image_to_data(image, lang=languages, output_type=pytesseract.Output.DICT)
    text, confidence = _lines_from_data(data)
    return RecognizedText(text=text, confidence=confidence)


Recognizer = Callable[[Image.Image, str], RecognizedText]


class RecognitionScheduler:
    """
    Usage:
        scheduler = RecognitionScheduler(workers=2, languages="eng+ara")
        result = await scheduler.recognize(image)
        scheduler.close()
    """

    def __init__(self, workers: int = 2, languages: str = "eng+ara", recognizer: Optional[Recognizer] = None):
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self.workers = workers
        self.languages = languages
        self._recognizer = recognizer or tesseract_recognize
        self._executor: Optional[ThreadPoolExecutor] = ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="ocr-worker"
        )
        logger.info(f"[OCR] Initialized {workers} workers (languages={languages})")

    async def recognize(self, image: Image.Image) -> RecognizedText:
        if self._executor is None:
            raise RuntimeError("RecognitionScheduler is closed")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._recognizer, image, self.languages)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
            logger.info("[OCR] Cleanup completed")

    def __enter__(self) -> "RecognitionScheduler":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


__all__ = ["RecognitionScheduler", "RecognizedText", "Recognizer", "tesseract_recognize"]
