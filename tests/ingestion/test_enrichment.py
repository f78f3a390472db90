from __future__ import annotations

from datetime import date

import pytest

from casefile.common.errors import AIProcessingFailure
from casefile.ingestion.components.enrichment.chain import EnrichmentChain
from casefile.ingestion.components.enrichment.language import detect_language
from casefile.ingestion.components.enrichment.title import generate_title, heuristic_title, sanitize_title
from casefile.ingestion.components.enrichment.translation import translate_bidirectional
from casefile.ingestion.models import TimelineEvent

ENGLISH_TEXT = (
    "The tenant failed to pay the rent for three consecutive months and the landlord "
    "filed a complaint with the court on the thirteenth of August."
)
ARABIC_TEXT = "قدم المؤجر شكوى إلى المحكمة بعد أن تخلف المستأجر عن دفع الإيجار لمدة ثلاثة أشهر متتالية."


def scripted(responses):
    """Reponse choisie selon le debut du prompt; AIProcessingFailure si la valeur est une exception."""

    async def _generate_text(prompt: str) -> str:
        for prefix, value in responses.items():
            if prompt.startswith(prefix):
                if isinstance(value, Exception):
                    raise value
                return value
        raise AssertionError(f"unexpected prompt: {prompt[:60]}")

    return _generate_text


class TestDetectLanguage:
    def test_primary_language(self):
        assert detect_language(ENGLISH_TEXT) == "en"

    def test_secondary_language(self):
        assert detect_language(ARABIC_TEXT) == "ar"

    def test_other_language(self):
        french = "Le locataire n'a pas payé son loyer pendant trois mois consécutifs et le bailleur a saisi le tribunal."
        assert detect_language(french) == "other"

    @pytest.mark.parametrize("text", ["", "   ", "12345 !!!"])
    def test_undetectable_is_other(self, text):
        assert detect_language(text) == "other"


class TestTranslateBidirectional:
    async def test_secondary_language_is_translated_and_polished(self, gemini_client):
        gemini_client.generate_text.side_effect = scripted({
            "Translate the following text to English": "English version",
            "Edit the following Arabic": "نص منقح",
        })

        result = await translate_bidirectional(gemini_client, ARABIC_TEXT, "ar")

        assert result == {"en": "English version", "ar": "نص منقح"}

    async def test_other_language_gets_both_translations(self, gemini_client):
        gemini_client.generate_text.side_effect = scripted({
            "Translate the following text to English": "English version",
            "Translate the following text to Arabic": "نسخة عربية",
        })

        result = await translate_bidirectional(gemini_client, "Bonjour", "other")

        assert result == {"en": "English version", "ar": "نسخة عربية"}

    async def test_failures_degrade_gracefully(self, gemini_client):
        gemini_client.generate_text.side_effect = AIProcessingFailure("quota exceeded")

        result = await translate_bidirectional(gemini_client, ENGLISH_TEXT, "en")

        # Traduction perdue, revision retombe sur l'original
        assert result == {"en": ENGLISH_TEXT, "ar": None}


class TestTitle:
    def test_sanitize_title(self):
        assert sanitize_title('  "Lease: dispute/2024?"  ') == "Lease dispute 2024"
        assert len(sanitize_title("word " * 30)) <= 60

    def test_heuristic_title_skips_markers(self):
        text = "[VIDEO] marker\n---\nCourt ruling on eviction\nmore"
        assert heuristic_title(text) == "Court ruling on eviction"

    async def test_generated_title_keeps_extension(self, gemini_client):
        gemini_client.generate_text.return_value = "Eviction Notice Hearing\nextra"

        assert await generate_title(gemini_client, ENGLISH_TEXT, "scan_0042.pdf") == "Eviction Notice Hearing.pdf"

    async def test_title_falls_back_to_heuristic(self, gemini_client):
        gemini_client.generate_text.side_effect = AIProcessingFailure("down")

        title = await generate_title(gemini_client, "Rental agreement\nbody", "doc.txt")

        assert title == "Rental agreement.txt"

    async def test_empty_text_keeps_original_name(self, gemini_client):
        assert await generate_title(gemini_client, "  ", "doc.txt") == "doc.txt"
        gemini_client.generate_text.assert_not_called()


class TestEnrichmentChain:
    async def test_full_enrichment(self, gemini_client):
        gemini_client.generate_text.side_effect = scripted({
            "Provide a concise": "A rent dispute.",
            "Extract a timeline": 'Sure: [{"date": "08/13/2024", "event": "Complaint filed"}]',
            "Translate the following text to Arabic": "نسخة عربية",
            "Edit the following English": "Polished English",
            "Generate a short": "Rent Dispute Complaint",
        })
        chain = EnrichmentChain(gemini_client, today=lambda: date(2024, 9, 1))

        result = await chain.run(ENGLISH_TEXT, "upload.txt")

        assert result.language == "en"
        assert result.summary == "A rent dispute."
        assert result.timeline == [TimelineEvent("2024-08-13", "Complaint filed [Original: 08/13/2024]")]
        assert result.translation_en == "Polished English"
        assert result.translation_ar == "نسخة عربية"
        assert result.title == "Rent Dispute Complaint.txt"

    async def test_each_step_degrades_independently(self, gemini_client):
        gemini_client.generate_text.side_effect = scripted({
            "Provide a concise": AIProcessingFailure("blocked"),
            "Extract a timeline": "no json at all",
            "Translate the following text to Arabic": "نسخة عربية",
            "Edit the following English": AIProcessingFailure("blocked"),
            "Generate a short": AIProcessingFailure("blocked"),
        })
        chain = EnrichmentChain(gemini_client)

        result = await chain.run(ENGLISH_TEXT, "upload.txt")

        assert result.summary is None
        assert result.timeline == []
        assert result.translation_en == ENGLISH_TEXT
        assert result.translation_ar == "نسخة عربية"
        assert result.title == "The tenant failed to pay the rent for three consecutive.txt"

    async def test_translations_follow_language_codes_when_arabic_is_primary(self, gemini_client):
        gemini_client.generate_text.side_effect = scripted({
            "Provide a concise": "A rent dispute.",
            "Extract a timeline": "[]",
            "Translate the following text to Arabic": "نسخة عربية",
            "Edit the following English": "Polished English",
            "Generate a short": "Rent Dispute",
        })
        chain = EnrichmentChain(gemini_client, primary_language="ar", secondary_language="en")

        result = await chain.run(ENGLISH_TEXT, "upload.txt")

        assert result.language == "en"
        assert result.translation_en == "Polished English"
        assert result.translation_ar == "نسخة عربية"
