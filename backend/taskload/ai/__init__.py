"""Chatbot provider integration."""

from taskload.ai.exceptions import AIError, AIProviderError, AIRateLimitError
from taskload.ai.providers import AIMessage, AIProvider, AIResponse, get_provider

__all__ = [
    "AIError",
    "AIProviderError",
    "AIRateLimitError",
    "AIMessage",
    "AIProvider",
    "AIResponse",
    "get_provider",
]
