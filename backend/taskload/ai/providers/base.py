"""Abstract base class for chatbot providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Literal, Optional


@dataclass
class AIMessage:
    """A message in an AI conversation.

    Attributes:
        role: 'system', 'user' or 'assistant'
        content: The text content of the message
    """
    role: Literal["system", "user", "assistant"]
    content: str


@dataclass
class AIResponse:
    """Response from an AI provider."""
    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    finish_reason: str = "stop"
    latency_ms: Optional[int] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class AIProvider(ABC):
    """Interface every chatbot backend implements.

    Example:
        ```python
        provider = GeminiProvider(api_key="...")
        response = await provider.complete([
            AIMessage(role="system", content="You are TaskLoad's assistant."),
            AIMessage(role="user", content="How do I add a subtask?"),
        ])
        print(response.content)
        ```
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of this provider (e.g. 'gemini')."""

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Return the default model identifier for this provider."""

    @abstractmethod
    async def complete(
        self,
        messages: List[AIMessage],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> AIResponse:
        """Generate a completion for the given messages.

        Raises:
            AIProviderError: If the provider request fails
        """

    def _validate_messages(self, messages: List[AIMessage]) -> None:
        """Raise ValueError for an empty list, an unknown role or empty content."""
        if not messages:
            raise ValueError("Messages list cannot be empty")

        for msg in messages:
            if msg.role not in ("system", "user", "assistant"):
                raise ValueError(f"Invalid message role: {msg.role}")
            if not msg.content:
                raise ValueError("Message content cannot be empty")
