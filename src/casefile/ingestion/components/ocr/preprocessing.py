"""
Pretraitement d'image avant reconnaissance Tesseract.

Redimensionnement borne (ratio conserve, jamais d'agrandissement), nettoyage
des contours, normalisation du contraste puis binarisation.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from PIL import Image, ImageFilter, ImageOps

logger = logging.getLogger(__name__)

DEFAULT_MAX_DIMENSION = 2000
BINARIZE_THRESHOLD = 128


def preprocess_image(
    image: Image.Image,
    max_dimension: int = DEFAULT_MAX_DIMENSION,
    threshold: int = BINARIZE_THRESHOLD,
) -> Image.Image:
    processed = ImageOps.exif_transpose(image)
    processed = processed.convert("L")
    processed.thumbnail((max_dimension, max_dimension), Image.LANCZOS)
    processed = processed.filter(ImageFilter.SHARPEN)
    processed = ImageOps.autocontrast(processed)
    return processed.point(lambda p: 255 if p >= threshold else 0)


def load_preprocessed(source: Union[str, Path], max_dimension: int = DEFAULT_MAX_DIMENSION) -> Image.Image:
    """
    Ouvre et pretraite une image; en cas d'echec du pretraitement,
    l'image d'origine est retournee telle quelle.
    """
    with Image.open(source) as original:
        original.load()
        try:
            return preprocess_image(original, max_dimension=max_dimension)
        except Exception as exc:
            logger.warning(f"[OCR] Image preprocessing failed, using original: {exc}")
            return original.copy()


__all__ = ["preprocess_image", "load_preprocessed", "DEFAULT_MAX_DIMENSION", "BINARIZE_THRESHOLD"]
