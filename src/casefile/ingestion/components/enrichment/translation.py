"""
Traductions bidirectionnelles anglais/arabe.

Langue secondaire detectee -> traduction vers la langue principale + version
revisee de l'original; langue principale -> l'inverse; autre langue -> les
deux traductions. Un echec de traduction donne None, un echec de revision
retombe sur le texte original.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from casefile.common.clients.gemini_client import GeminiClient
from casefile.common.errors import AIProcessingFailure

logger = logging.getLogger(__name__)

LANGUAGE_NAMES = {"en": "English", "ar": "Arabic"}

TRANSLATE_PROMPT = """Translate the following text to {language}. Return only the translated text.

---
{text}"""

POLISH_PROMPT = """Edit the following {language} text for clarity, spelling and grammar without changing its meaning,
names, dates or figures. Keep the original language. Return only the edited text.

---
{text}"""


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code, code)


async def translate(client: GeminiClient, text: str, target: str) -> Optional[str]:
    try:
        translated = await client.generate_text(TRANSLATE_PROMPT.format(language=language_name(target), text=text))
    except AIProcessingFailure as exc:
        logger.error(f"[Translation] translation to {target} failed: {exc}")
        return None
    return translated.strip() or None


async def polish(client: GeminiClient, text: str, language: str) -> str:
    try:
        polished = await client.generate_text(POLISH_PROMPT.format(language=language_name(language), text=text))
    except AIProcessingFailure as exc:
        logger.warning(f"[Translation] polish ({language}) failed, keeping original text: {exc}")
        return text
    return polished.strip() or text


async def translate_bidirectional(
    client: GeminiClient,
    text: str,
    detected: str,
    primary: str = "en",
    secondary: str = "ar",
) -> Dict[str, Optional[str]]:
    """Retourne {code langue: texte} pour la langue principale et la secondaire."""
    if detected == secondary:
        translated, polished = await asyncio.gather(
            translate(client, text, primary), polish(client, text, secondary)
        )
        return {primary: translated, secondary: polished}
    if detected == primary:
        translated, polished = await asyncio.gather(
            translate(client, text, secondary), polish(client, text, primary)
        )
        return {primary: polished, secondary: translated}
    to_primary, to_secondary = await asyncio.gather(
        translate(client, text, primary), translate(client, text, secondary)
    )
    return {primary: to_primary, secondary: to_secondary}


__all__ = ["translate", "polish", "translate_bidirectional", "language_name"]
