"""
Chaine d'enrichissement: langue, resume, chronologie, traductions, titre.

Lancee une fois le texte de base persiste. Les appels au modele sont
independants: un echec degrade le champ concerne (None / []) sans
interrompre les autres.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Callable, List, Optional

from casefile.common.clients.gemini_client import GeminiClient
from casefile.common.errors import AIProcessingFailure, TimelineParseFailure
from casefile.ingestion.components.enrichment.language import detect_language
from casefile.ingestion.components.enrichment.timeline import normalize_timeline, parse_timeline_response
from casefile.ingestion.components.enrichment.title import generate_title
from casefile.ingestion.components.enrichment.translation import translate_bidirectional
from casefile.ingestion.models import EnrichmentResult, TimelineEvent

logger = logging.getLogger(__name__)

SUMMARY_PROMPT = """Provide a concise, professional summary of the document:

---
{text}"""

TIMELINE_PROMPT = """Extract a timeline of key events and dates. Return as a valid JSON array of objects,
each with "date" and "event" keys. Use the YYYY-MM-DD format when the date is certain, otherwise
copy the date exactly as written. If none, return [].

---
{text}"""


class EnrichmentChain:
    """
    Usage:
        chain = EnrichmentChain(gemini_client)
        enrichment = await chain.run(extracted_text, "scan_0042.pdf")
    """

    def __init__(
        self,
        client: GeminiClient,
        primary_language: str = "en",
        secondary_language: str = "ar",
        dayfirst: bool = False,
        today: Callable[[], date] = date.today,
    ):
        self.client = client
        self.primary_language = primary_language
        self.secondary_language = secondary_language
        self.dayfirst = dayfirst
        self.today = today

    async def summarize(self, text: str) -> Optional[str]:
        try:
            summary = await self.client.generate_text(SUMMARY_PROMPT.format(text=text))
        except AIProcessingFailure as exc:
            logger.error(f"[Enrichment] AI summary failed: {exc}")
            return None
        return summary.strip() or None

    async def extract_timeline(self, text: str) -> List[TimelineEvent]:
        try:
            raw = await self.client.generate_text(TIMELINE_PROMPT.format(text=text))
            items = parse_timeline_response(raw)
        except (AIProcessingFailure, TimelineParseFailure) as exc:
            logger.error(f"[Enrichment] AI timeline failed: {exc}")
            return []
        return normalize_timeline(items, reference_date=self.today(), dayfirst=self.dayfirst)

    async def run(self, text: str, file_name: str, with_title: bool = True) -> EnrichmentResult:
        language = detect_language(text, self.primary_language, self.secondary_language)
        logger.info(f"[Enrichment] Detected language: {language} ({len(text)} chars)")

        async def _title() -> Optional[str]:
            if not with_title:
                return None
            return await generate_title(self.client, text, file_name)

        results = await asyncio.gather(
            self.summarize(text),
            self.extract_timeline(text),
            translate_bidirectional(self.client, text, language, self.primary_language, self.secondary_language),
            _title(),
            return_exceptions=True,
        )
        labels = ("summary", "timeline", "translation", "title")
        for label, value in zip(labels, results):
            if isinstance(value, BaseException):
                logger.error(f"[Enrichment] {label} step raised unexpectedly: {value!r}")

        summary, timeline, translations, title = (
            None if isinstance(value, BaseException) else value for value in results
        )
        translations = translations or {}

        enrichment = EnrichmentResult(
            language=language,
            summary=summary,
            timeline=timeline or [],
            translation_en=translations.get("en"),
            translation_ar=translations.get("ar"),
            title=title,
        )
        logger.info(
            f"[Enrichment] ✅ summary={'yes' if enrichment.summary else 'no'}, "
            f"timeline={len(enrichment.timeline)} events, "
            f"en={'yes' if enrichment.translation_en else 'no'}, ar={'yes' if enrichment.translation_ar else 'no'}"
        )
        return enrichment


__all__ = ["EnrichmentChain", "SUMMARY_PROMPT", "TIMELINE_PROMPT"]
