"""
Classification de langue sur un prefixe du texte extrait.
"""

from __future__ import annotations

import logging

from langdetect import DetectorFactory, LangDetectException, detect

logger = logging.getLogger(__name__)

# Initialiser seed pour reproductibilite
DetectorFactory.seed = 0

SAMPLE_LENGTH = 1000
OTHER = "other"


def detect_language(text: str, primary: str = "en", secondary: str = "ar") -> str:
    """
    Retourne `primary`, `secondary` ou "other".

    Seuls les 1000 premiers caracteres sont analyses.
    """
    sample = (text or "").strip()[:SAMPLE_LENGTH]
    if not sample:
        return OTHER
    try:
        code = detect(sample)
    except LangDetectException as exc:
        logger.debug(f"[Language] detection failed: {exc}")
        return OTHER

    if code == primary:
        return primary
    if code == secondary:
        return secondary
    logger.debug(f"[Language] detected '{code}', classified as {OTHER}")
    return OTHER


__all__ = ["detect_language", "SAMPLE_LENGTH", "OTHER"]
