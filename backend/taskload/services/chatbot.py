"""Chat assistant that answers messages addressed to it.

A message is for the assistant when it starts with ``@ai`` or contains
``ai:``. Each room keeps a short rolling context (last N turns) in Redis,
or in process memory when the cache is off. Replies come from Gemini when
an API key is configured and from a few canned rules otherwise.
"""

import re
from collections import defaultdict

import structlog

from taskload.ai.exceptions import AIProviderError
from taskload.ai.providers import AIMessage, AIProvider, get_provider
from taskload.config import get_settings
from taskload.services.cache import CacheService, cache

logger = structlog.get_logger()

ASSISTANT_ID = "ai-assistant"

SYSTEM_PROMPT = (
    "You are the TaskLoad assistant. You help people organise projects, "
    "tasks, subtasks, teams and tracked time. Answer briefly and concretely."
)

APOLOGY = "Sorry, I couldn't come up with an answer right now. Please try again in a moment."

_GREETING = re.compile(r"\b(hello|hi|hey)\b")
_HELP = re.compile(r"\bhelp\b")
_THANKS = re.compile(r"\bthank")
_WORK = re.compile(r"\b(tasks?|projects?)\b")


def is_ai_message(content: str) -> bool:
    text = (content or "").strip().lower()
    return text.startswith("@ai") or "ai:" in text


def extract_query(content: str) -> str:
    """Strip the ``@ai`` prefix, or everything up to and including ``ai:``."""
    text = (content or "").strip()
    if text.lower().startswith("@ai"):
        return text[3:].strip()
    index = text.lower().find("ai:")
    if index >= 0:
        return text[index + 3:].strip()
    return text


def rule_based_reply(query: str) -> str:
    text = query.lower()
    if _GREETING.search(text):
        return "Hello! How can I assist you today?"
    if _HELP.search(text):
        return "I'm here to help! You can ask me about tasks, projects, or any other assistance you need."
    if _THANKS.search(text):
        return "You're welcome! Is there anything else I can help with?"
    if _WORK.search(text):
        return (
            "I can help you manage your tasks and projects. "
            "Would you like me to show you how to create a new task or project?"
        )
    return f'I received your message: "{query}". How can I assist you with this?'


class ChatbotService:
    """Rolling per-room context plus reply generation."""

    def __init__(
        self,
        provider: AIProvider | None = None,
        cache_service: CacheService | None = None,
        context_size: int | None = None,
        context_ttl: int | None = None,
    ):
        settings = get_settings()
        self.provider = provider
        self.cache = cache_service or cache
        self.context_size = context_size or settings.chatbot_context_size
        self.context_ttl = context_ttl or settings.chatbot_context_ttl
        self._memory: dict[str, list[dict]] = defaultdict(list)

    def _key(self, room_id: str) -> str:
        return f"{self.cache.PREFIX_AI_CONTEXT}{room_id}"

    async def get_context(self, room_id: str) -> list[dict]:
        if self.cache.enabled:
            cached = await self.cache.get_json(self._key(room_id))
            if cached is not None:
                return cached
        return list(self._memory.get(room_id, []))

    async def save_context(self, room_id: str, context: list[dict]) -> None:
        context = context[-self.context_size:]
        self._memory[room_id] = context
        if self.cache.enabled:
            await self.cache.set_json(self._key(room_id), context, ttl=self.context_ttl)

    async def clear_context(self, room_id: str) -> None:
        self._memory.pop(room_id, None)
        await self.cache.delete(self._key(room_id))

    async def _generate(self, context: list[dict]) -> str:
        if self.provider is None:
            return rule_based_reply(context[-1]["content"])

        messages = [AIMessage(role="system", content=SYSTEM_PROMPT)]
        messages.extend(AIMessage(role=turn["role"], content=turn["content"]) for turn in context)
        try:
            response = await self.provider.complete(messages)
        except AIProviderError as e:
            logger.warning("Chatbot provider failed", provider=e.provider, error=e.message)
            return APOLOGY
        return response.content.strip() or APOLOGY

    async def reply(self, room_id: str, content: str) -> str:
        """Answer a message and record both turns in the room's context."""
        query = extract_query(content) or content.strip()
        context = await self.get_context(room_id)
        context = [*context, {"role": "user", "content": query}][-self.context_size:]

        answer = await self._generate(context)
        await self.save_context(room_id, [*context, {"role": "assistant", "content": answer}])
        logger.debug("Chatbot replied", room_id=room_id, context_turns=len(context))
        return answer


_chatbot: ChatbotService | None = None


def get_chatbot() -> ChatbotService:
    """Shared chatbot instance, built on first use."""
    global _chatbot
    if _chatbot is None:
        _chatbot = ChatbotService(provider=get_provider())
    return _chatbot
