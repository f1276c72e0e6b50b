"""
Mistral Provider - Streaming chat completions over SSE.
=======================================================

Calls ``POST /v1/chat/completions`` with ``stream: true`` and reads the
Server-Sent Events body line by line:

    data: {"choices": [{"delta": {"content": "..."}}], "usage": {...}}
    data: [DONE]

Lines that fail to parse are logged and skipped. Usage is taken from the
last event that carries it.
"""

import json
from typing import AsyncIterator, Optional

import httpx

from su_advisor.rag.providers.base import ChatMessages, ChatStream, GenerationProvider
from su_advisor.shared.config import get_settings
from su_advisor.shared.errors import (
    ConfigurationMissingError,
    MalformedUpstreamChunkError,
    ProviderUnavailableError,
)
from su_advisor.shared.logging import get_logger
from su_advisor.shared.schemas import TokenUsage

logger = get_logger(__name__)

DONE_SENTINEL = "[DONE]"


def parse_sse_line(line: str) -> Optional[dict]:
    """
    Parse one SSE line.

    Returns:
        The decoded event, or None for lines that carry no data
        (blank lines, comments, other fields)

    Raises:
        MalformedUpstreamChunkError: If a data line is not a JSON object
    """
    if not line.startswith("data:"):
        return None

    payload = line[len("data:"):].strip()
    if not payload:
        return None

    try:
        event = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedUpstreamChunkError(line, str(e)) from e

    if not isinstance(event, dict):
        raise MalformedUpstreamChunkError(line, "not an object")
    return event


def extract_delta(event: dict) -> str:
    """Get ``choices[0].delta.content`` or an empty string."""
    choices = event.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return ""
    delta = choices[0].get("delta") or {}
    content = delta.get("content") if isinstance(delta, dict) else None
    return content if isinstance(content, str) else ""


def extract_usage(event: dict) -> Optional[TokenUsage]:
    usage = event.get("usage")
    if not isinstance(usage, dict):
        return None
    return TokenUsage(
        prompt_tokens=int(usage.get("prompt_tokens") or 0),
        completion_tokens=int(usage.get("completion_tokens") or 0),
    )


class MistralChatStream(ChatStream):
    """One streaming chat completion request."""

    def __init__(self, client: httpx.AsyncClient, headers: dict, body: dict):
        super().__init__(model=body["model"])
        self._client = client
        self._headers = headers
        self._body = body

    async def _generate(self) -> AsyncIterator[str]:
        try:
            async with self._client.stream(
                "POST", "/chat/completions", headers=self._headers, json=self._body
            ) as response:
                if response.status_code >= 400:
                    detail = (await response.aread()).decode("utf-8", errors="replace")
                    raise ProviderUnavailableError("mistral", detail[:200], response.status_code)

                async for line in response.aiter_lines():
                    if line.startswith("data:") and line[len("data:"):].strip() == DONE_SENTINEL:
                        self.completed = True
                        return

                    try:
                        event = parse_sse_line(line)
                    except MalformedUpstreamChunkError as e:
                        logger.debug(f"Skipping stream line: {e}")
                        continue
                    if event is None:
                        continue

                    usage = extract_usage(event)
                    if usage is not None:
                        self.usage = usage

                    content = extract_delta(event)
                    if content:
                        yield content
        except httpx.HTTPError as e:
            raise ProviderUnavailableError("mistral", str(e) or type(e).__name__) from e


class MistralChatProvider(GenerationProvider):
    """
    Mistral chat completion provider over httpx.

    Example:
        >>> provider = MistralChatProvider(api_key="...")
        >>> stream = provider.stream_chat([{"role": "user", "content": "Merhaba"}])
        >>> async for token in stream:
        ...     print(token, end="")
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        config = settings.generation.mistral

        self._model_name = model_name or config.model_name
        self._api_key = api_key or settings.mistral_api_key
        self.max_tokens = max_tokens or config.max_tokens
        self.temperature = temperature if temperature is not None else config.temperature

        if not self._api_key:
            raise ConfigurationMissingError(
                "Mistral API key is required. Set MISTRAL_API_KEY environment variable "
                "or pass api_key parameter."
            )

        self._client = http_client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout,
        )
        self._headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }

        logger.debug(
            f"Mistral chat provider configured: model={self._model_name}, "
            f"max_tokens={self.max_tokens}, temp={self.temperature}"
        )

    @property
    def provider_name(self) -> str:
        return "mistral"

    @property
    def model_name(self) -> str:
        return self._model_name

    def stream_chat(self, messages: ChatMessages) -> ChatStream:
        body = {
            "model": self._model_name,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "stream": True,
        }
        return MistralChatStream(self._client, self._headers, body)

    async def aclose(self) -> None:
        await self._client.aclose()
