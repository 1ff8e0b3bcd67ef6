"""Google Gemini provider."""

import time
from typing import List, Optional

from google import genai
from google.genai import types

from taskload.ai.exceptions import AIProviderError, AIRateLimitError
from taskload.ai.providers.base import AIMessage, AIProvider, AIResponse


class GeminiProvider(AIProvider):
    """Gemini chat completions through the ``google-genai`` SDK."""

    def __init__(
        self,
        api_key: str,
        default_model: str = "gemini-2.5-flash",
        timeout: float = 60.0,
    ):
        self._api_key = api_key
        self._default_model = default_model
        self._timeout = timeout

    @property
    def provider_name(self) -> str:
        return "gemini"

    @property
    def default_model(self) -> str:
        return self._default_model

    def _build_contents(
        self,
        messages: List[AIMessage],
    ) -> tuple[Optional[str], list[types.Content]]:
        """Split out the system instruction and map roles to Gemini's.

        Gemini takes the system prompt separately and calls the assistant
        role 'model'.
        """
        system_instruction = None
        contents = []

        for msg in messages:
            if msg.role == "system":
                system_instruction = msg.content
            else:
                role = "model" if msg.role == "assistant" else "user"
                contents.append(
                    types.Content(
                        role=role,
                        parts=[types.Part(text=msg.content)],
                    )
                )

        return system_instruction, contents

    def _translate_error(self, error: Exception) -> AIProviderError:
        error_str = str(error).lower()
        if ("rate" in error_str and "limit" in error_str) or "quota" in error_str or "429" in error_str:
            return AIRateLimitError(provider=self.provider_name, message=str(error))
        return AIProviderError(provider=self.provider_name, message=str(error))

    async def complete(
        self,
        messages: List[AIMessage],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> AIResponse:
        """Generate a completion using Gemini.

        Raises:
            AIProviderError: If the Gemini API request fails
            AIRateLimitError: If rate limited by Google
        """
        self._validate_messages(messages)

        model = model or self._default_model
        start_time = time.perf_counter()
        system_instruction, contents = self._build_contents(messages)

        try:
            generation_config = types.GenerateContentConfig(
                temperature=temperature,
                max_output_tokens=max_tokens,
            )
            if system_instruction:
                generation_config.system_instruction = system_instruction

            # Fresh client per request avoids "client closed" errors
            client = genai.Client(
                api_key=self._api_key,
                http_options=types.HttpOptions(timeout=int(self._timeout * 1000)),
            )
            response = await client.aio.models.generate_content(
                model=model,
                contents=contents,
                config=generation_config,
            )
        except Exception as e:
            raise self._translate_error(e) from e

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        usage = response.usage_metadata
        finish_reason = "stop"
        if response.candidates and response.candidates[0].finish_reason:
            finish_reason = response.candidates[0].finish_reason.name.lower()

        return AIResponse(
            content=response.text or "",
            model=model,
            input_tokens=(usage.prompt_token_count or 0) if usage else 0,
            output_tokens=(usage.candidates_token_count or 0) if usage else 0,
            finish_reason=finish_reason,
            latency_ms=latency_ms,
        )
