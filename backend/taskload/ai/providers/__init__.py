"""Chatbot provider implementations."""

from typing import Optional

from taskload.ai.providers.base import AIMessage, AIProvider, AIResponse
from taskload.ai.providers.gemini import GeminiProvider
from taskload.config import get_settings


def get_provider() -> Optional[AIProvider]:
    """Return the configured provider, or None when no API key is set."""
    settings = get_settings()
    api_key = settings.gemini_api_key.get_secret_value()
    if not api_key:
        return None
    return GeminiProvider(api_key=api_key, default_model=settings.gemini_model)


__all__ = [
    "AIMessage",
    "AIProvider",
    "AIResponse",
    "GeminiProvider",
    "get_provider",
]
