"""
Validation du contenu extrait.

- has_meaningful_text: decide si un resultat OCR peut etre accepte tel quel
- decode_bytes: detection d'encodage pour la lecture locale des fichiers texte
- clean_*: nettoyage specifique CSV / tableur / Word avant analyse IA
- build_hybrid_content: texte combine OCR (faible confiance) + analyse visuelle
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Sequence, Tuple

from casefile.common.errors import EncodingDetectionFailure

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 30.0
MIN_TEXT_LENGTH = 10
MIN_READABLE_RATIO = 0.6
MIN_PRINTABLE_RATIO = 0.7
HYBRID_CONFIDENCE_FLOOR = 75.0

DEFAULT_ENCODINGS: Tuple[str, ...] = ("utf-8", "utf-16", "latin-1", "cp1252")

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]")
_UNREADABLE_CHARS = re.compile(r"[^\w\s.,!?;:()\[\]{}\"'`~@#$%^&*+=<>/\\|-]")
_NON_PRINTABLE_ASCII = re.compile(r"[^\x20-\x7E\n\t]")
_WHITESPACE_RUN = re.compile(r"\s+")


def _only_punctuation(text: str) -> bool:
    return not any(ch.isalnum() for ch in text)


def _only_letters_and_spaces(text: str) -> bool:
    return all(ch.isalpha() or ch.isspace() for ch in text)


def _only_digits_and_spaces(text: str) -> bool:
    return all(ch.isdigit() or ch.isspace() for ch in text)


# Motifs typiques d'un OCR rate (bruit plutot que contenu reel)
DEGENERATE_PATTERNS = (_only_punctuation, _only_letters_and_spaces, _only_digits_and_spaces)


def readable_ratio(text: str) -> float:
    if not text:
        return 0.0
    readable = len(_UNREADABLE_CHARS.sub("", text))
    return readable / len(text)


def has_meaningful_text(text: Optional[str], confidence: float) -> bool:
    """
    Vrai si le texte OCR est exploitable.

    Faux si la confiance < 30, si le texte nettoye fait moins de 10 caracteres,
    si moins de 60 % des caracteres sont lisibles, ou si le texte correspond
    a un motif degenere (ponctuation seule, lettres+espaces seuls, chiffres seuls).
    """
    if confidence < MIN_CONFIDENCE:
        return False

    clean_text = (text or "").strip()
    if len(clean_text) < MIN_TEXT_LENGTH:
        return False

    if readable_ratio(clean_text) < MIN_READABLE_RATIO:
        return False

    for pattern in DEGENERATE_PATTERNS:
        if pattern(clean_text):
            return False

    return True


def is_readable_text(text: str) -> bool:
    """Au moins 70 % de caracteres imprimables (hors caracteres de controle)."""
    if not text:
        return False
    printable = len(_CONTROL_CHARS.sub("", text.replace("\ufffd", "\x00")))
    return printable / len(text) > MIN_PRINTABLE_RATIO


def _has_utf16_bom(data: bytes) -> bool:
    return data.startswith(b"\xff\xfe") or data.startswith(b"\xfe\xff")


def decode_bytes(
    data: bytes,
    encodings: Sequence[str] = DEFAULT_ENCODINGS,
    source: str = "<bytes>",
) -> Tuple[str, str]:
    """
    Decode `data` avec le premier encodage lisible de la liste.

    UTF-16 n'est tente qu'en presence d'un BOM: sans BOM n'importe quel buffer
    de longueur paire se decode en caracteres CJK sans erreur.

    Returns:
        (texte, encodage retenu)

    Raises:
        EncodingDetectionFailure: aucun encodage ne donne un texte lisible
    """
    for encoding in encodings:
        if encoding.replace("-", "").lower() == "utf16" and not _has_utf16_bom(data):
            continue
        try:
            text = data.decode(encoding)
        except (UnicodeDecodeError, LookupError) as exc:
            logger.debug(f"[Validator] {source}: decoding with {encoding} failed ({exc})")
            continue
        if text.startswith("\ufeff"):
            text = text[1:]
        if is_readable_text(text):
            logger.debug(f"[Validator] {source}: decoded with {encoding}")
            return text, encoding

    raise EncodingDetectionFailure(source, tuple(encodings))


def clean_csv_text(csv_text: str) -> str:
    lines = (_WHITESPACE_RUN.sub(" ", line).strip() for line in csv_text.splitlines())
    return "\n".join(line for line in lines if line)


def clean_spreadsheet_text(text: str) -> str:
    """Tableur binaire (xls): on ne garde que l'ASCII imprimable."""
    cleaned = _CONTROL_CHARS.sub("", text)
    cleaned = _NON_PRINTABLE_ASCII.sub("", cleaned)
    lines = (line.strip() for line in cleaned.split("\n"))
    result = "\n".join(line for line in lines if line)
    return result or text


def clean_word_text(text: str) -> str:
    cleaned = _CONTROL_CHARS.sub("", text)
    cleaned = cleaned.replace("\r\n", "\n").replace("\r", "\n")
    lines = (line.strip() for line in cleaned.split("\n"))
    result = "\n".join(line for line in lines if line)
    return result or text


def build_hybrid_content(ocr_text: str, ocr_confidence: float, visual_analysis: str) -> Tuple[str, float]:
    """Combine un OCR peu fiable et l'analyse visuelle; confiance = max(ocr, 75)."""
    content = f"OCR EXTRACTED TEXT (Low Confidence):\n{ocr_text}\n\nVISUAL ANALYSIS:\n{visual_analysis}"
    return content, max(float(ocr_confidence), HYBRID_CONFIDENCE_FLOOR)


__all__ = [
    "MIN_CONFIDENCE",
    "MIN_TEXT_LENGTH",
    "DEFAULT_ENCODINGS",
    "has_meaningful_text",
    "is_readable_text",
    "readable_ratio",
    "decode_bytes",
    "clean_csv_text",
    "clean_spreadsheet_text",
    "clean_word_text",
    "build_hybrid_content",
]
