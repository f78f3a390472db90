"""
Titre lisible du document (remplace le nom de fichier, extension conservee).
"""

from __future__ import annotations

import logging
import re
from pathlib import PurePath
from typing import Optional

from casefile.common.clients.gemini_client import GeminiClient
from casefile.common.errors import AIProcessingFailure

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 60
MIN_LINE_LENGTH = 4
TITLE_SAMPLE_LENGTH = 4000

TITLE_PROMPT = """Generate a short, descriptive title (max 8 words) for this legal case document.
Use the document's own language. Return only the title, without quotes or file extension.

---
{text}"""

_FORBIDDEN_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1F]')
_MARKER_LINE = re.compile(r"^(\[[A-Z]+\]|---|OCR EXTRACTED TEXT|VISUAL ANALYSIS|VIDEO ANALYSIS)", re.IGNORECASE)


def sanitize_title(title: str) -> str:
    cleaned = _FORBIDDEN_CHARS.sub(" ", title or "")
    cleaned = cleaned.strip().strip("\"'`*#").strip()
    cleaned = re.sub(r"\s+", " ", cleaned)
    if len(cleaned) > MAX_TITLE_LENGTH:
        cleaned = cleaned[:MAX_TITLE_LENGTH].rsplit(" ", 1)[0].rstrip(" ,;:-")
    return cleaned


def heuristic_title(text: str) -> Optional[str]:
    """Premiere ligne significative du texte, tronquee a 60 caracteres."""
    for line in (text or "").splitlines():
        line = line.strip()
        if len(line) < MIN_LINE_LENGTH or _MARKER_LINE.match(line):
            continue
        if not any(ch.isalpha() for ch in line):
            continue
        title = sanitize_title(line)
        if title:
            return title
    return None


def with_extension(title: str, original_name: str) -> str:
    suffix = PurePath(original_name).suffix
    return f"{title}{suffix}" if suffix else title


async def generate_title(client: GeminiClient, text: str, original_name: str) -> str:
    """
    Titre genere par le modele, sinon titre heuristique, sinon nom d'origine.
    """
    if not (text or "").strip():
        return original_name

    try:
        raw = await client.generate_text(TITLE_PROMPT.format(text=text[:TITLE_SAMPLE_LENGTH]))
        first_line = next((line for line in raw.splitlines() if line.strip()), "")
        title = sanitize_title(first_line)
        if title:
            return with_extension(title, original_name)
        logger.warning("[Title] Model returned an empty title, using heuristic")
    except AIProcessingFailure as exc:
        logger.warning(f"[Title] Title generation failed, using heuristic: {exc}")

    fallback = heuristic_title(text)
    return with_extension(fallback, original_name) if fallback else original_name


__all__ = ["generate_title", "heuristic_title", "sanitize_title", "with_extension"]
