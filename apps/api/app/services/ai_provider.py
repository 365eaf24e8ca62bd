"""AI provider abstraction for the bug-report helper.

Supports Anthropic and OpenAI with a unified chat interface.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from app.core.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class ChatMessage:
    """A single message in a conversation."""

    role: str  # 'system', 'user', 'assistant'
    content: str


@dataclass
class ChatResponse:
    """Response from an AI provider."""

    content: str
    prompt_tokens: int
    completion_tokens: int
    model: str


class AIProvider(ABC):
    """Abstract base class for AI providers."""

    def __init__(
        self,
        api_key: str,
        default_model: str,
        *,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.default_model = default_model
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    @abstractmethod
    async def chat(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> ChatResponse:
        """Send a chat completion request. Raises httpx.HTTPError on failure."""


class AnthropicProvider(AIProvider):
    """Anthropic Messages API provider."""

    base_url = "https://api.anthropic.com/v1"
    api_version = "2023-06-01"

    async def chat(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> ChatResponse:
        model = model or self.default_model

        # System prompt is a top-level field, not a message
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        body = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [
                {"role": m.role, "content": m.content}
                for m in messages
                if m.role != "system"
            ],
        }
        if system:
            body["system"] = system

        async with self._client() as client:
            response = await client.post(
                f"{self.base_url}/messages",
                headers={
                    "x-api-key": self.api_key,
                    "anthropic-version": self.api_version,
                    "content-type": "application/json",
                },
                json=body,
            )
            response.raise_for_status()
            data = response.json()

        text = "".join(
            block.get("text", "")
            for block in data.get("content", [])
            if block.get("type") == "text"
        )
        usage = data.get("usage", {})
        return ChatResponse(
            content=text,
            prompt_tokens=usage.get("input_tokens", 0),
            completion_tokens=usage.get("output_tokens", 0),
            model=model,
        )


class OpenAIProvider(AIProvider):
    """OpenAI API provider."""

    base_url = "https://api.openai.com/v1"

    async def chat(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> ChatResponse:
        model = model or self.default_model

        async with self._client() as client:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": model,
                    "messages": [
                        {"role": m.role, "content": m.content} for m in messages
                    ],
                    "temperature": temperature,
                    "max_tokens": max_tokens,
                },
            )
            response.raise_for_status()
            data = response.json()

        usage = data.get("usage", {})
        return ChatResponse(
            content=data["choices"][0]["message"]["content"],
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
            model=model,
        )


def get_provider(
    provider_name: str, api_key: str, model: str | None = None
) -> AIProvider:
    """Factory function to get the appropriate AI provider."""
    if provider_name == "anthropic":
        return AnthropicProvider(api_key, default_model=model or "claude-3-5-sonnet-latest")
    elif provider_name == "openai":
        return OpenAIProvider(api_key, default_model=model or "gpt-4o-mini")
    else:
        raise ValueError(f"Unknown provider: {provider_name}")


def build_ai_provider(settings: Settings) -> AIProvider | None:
    """Provider from settings, or None when no key is configured."""
    if settings.AI_PROVIDER == "openai":
        api_key, model = settings.OPENAI_API_KEY, settings.OPENAI_MODEL
    else:
        api_key, model = settings.ANTHROPIC_API_KEY, settings.ANTHROPIC_MODEL
    if not api_key:
        logger.info("No API key for AI provider %s; bug reports use the fallback", settings.AI_PROVIDER)
        return None
    return get_provider(settings.AI_PROVIDER, api_key, model)
