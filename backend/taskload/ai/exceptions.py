"""Chatbot provider exceptions."""

from typing import Optional


class AIError(Exception):
    """Base exception for AI-related errors."""

    def __init__(self, message: str, code: str = "AI_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class AIProviderError(AIError):
    """The provider rejected the request or could not be reached."""

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: Optional[int] = None,
    ):
        self.provider = provider
        self.status_code = status_code
        super().__init__(
            message=f"[{provider}] {message}",
            code="AI_PROVIDER_ERROR",
        )


class AIRateLimitError(AIProviderError):
    """Rate limit or quota exceeded with the provider."""

    def __init__(
        self,
        provider: str,
        message: str,
        retry_after: Optional[int] = None,
    ):
        self.retry_after = retry_after
        super().__init__(provider=provider, message=f"Rate limited: {message}", status_code=429)
        self.code = "AI_RATE_LIMITED"
