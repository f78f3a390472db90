from .gemini_client import GeminiClient, get_gemini_client, is_gemini_configured

__all__ = [
    "GeminiClient",
    "get_gemini_client",
    "is_gemini_configured",
]
