"""
Client Google Gemini pour le pipeline d'ingestion.

Un seul point d'entree vers le modele generatif: les composants OCR/visuel,
le processeur multimodal et la chaine d'enrichissement recoivent une instance
de `GeminiClient` par injection et n'importent jamais le SDK directement.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Optional, Sequence

import google.generativeai as genai
from google.generativeai.types import HarmBlockThreshold, HarmCategory

from casefile.common.errors import AIProcessingFailure, MissingCredentials
from casefile.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

# Les pieces juridiques declenchent facilement les filtres: seuil permissif partout
SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_NONE,
}


class GeminiClient:
    """
    Enveloppe asynchrone autour de `genai.GenerativeModel`.

    Usage:
        client = GeminiClient(api_key="...", model_name="gemini-1.5-flash")
        text = await client.generate_text("Summarize ...")
        text = await client.generate_with_media(prompt, image_bytes, "image/png")
    """

    def __init__(self, api_key: str, model_name: str, request_timeout: float = 120.0):
        if not api_key:
            raise MissingCredentials("GEMINI_API_KEY is not defined. The document processor cannot start.")
        genai.configure(api_key=api_key)
        self.model_name = model_name
        self.request_timeout = request_timeout
        self._model = genai.GenerativeModel(model_name, safety_settings=SAFETY_SETTINGS)
        logger.info(f"[Gemini] Client configured (model={model_name})")

    async def generate(self, contents: Sequence[Any]) -> str:
        try:
            response = await self._model.generate_content_async(
                list(contents),
                request_options={"timeout": self.request_timeout},
            )
        except Exception as exc:
            raise AIProcessingFailure(f"Gemini request failed: {exc}", last_error=exc) from exc

        try:
            text = response.text
        except ValueError as exc:
            # Reponse sans partie texte: blocage securite ou finish_reason anormal
            raise AIProcessingFailure(f"Gemini returned no text (blocked or empty): {exc}", last_error=exc) from exc
        return text or ""

    async def generate_text(self, prompt: str) -> str:
        return await self.generate([prompt])

    async def generate_with_media(self, prompt: str, data: bytes, mime_type: str) -> str:
        return await self.generate([prompt, {"mime_type": mime_type, "data": data}])


def is_gemini_configured(settings: Optional[Settings] = None) -> bool:
    settings = settings or get_settings()
    return bool(settings.gemini_api_key)


@lru_cache(maxsize=1)
def get_gemini_client() -> GeminiClient:
    """Client partage par tous les jobs d'un meme process worker."""
    settings = get_settings()
    return GeminiClient(
        api_key=settings.gemini_api_key or "",
        model_name=settings.gemini_model,
        request_timeout=settings.gemini_request_timeout,
    )


__all__ = ["GeminiClient", "SAFETY_SETTINGS", "get_gemini_client", "is_gemini_configured"]
