"""
Content generator client.

Defines the ContentGenerator contract used by the mastery loop and an
httpx implementation for OpenAI-compatible chat-completion APIs (Groq by
default). The client retries timeouts, 5xx responses and connection
errors with exponential backoff; 4xx responses fail immediately. Every
failure surfaces as GenerationTransportError.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol, runtime_checkable

import httpx
from loguru import logger

from mastery_loop.core.errors import GenerationTransportError
from mastery_loop.generation.prompts import get_system_prompt
from mastery_loop.generation.schemas import GenerationRequest


@runtime_checkable
class ContentGenerator(Protocol):
    """Single request/response text-generation call."""

    async def generate(self, request: GenerationRequest) -> str: ...


class ChatCompletionClient:
    """HTTP client for an OpenAI-compatible /chat/completions endpoint."""

    def __init__(
        self,
        api_url: str,
        api_key: str | None,
        model: str,
        temperature: float = 0.4,
        max_tokens: int = 4096,
        timeout_ms: int = 30000,
        retry_attempts: int = 3,
        backoff_seconds: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the client.

        Args:
            api_url: Base URL, e.g. https://api.groq.com/openai/v1
            api_key: Bearer token for the provider
            model: Model name sent with every request
            temperature: Sampling temperature
            max_tokens: Completion token cap
            timeout_ms: Request timeout in milliseconds
            retry_attempts: Number of attempts before giving up
            backoff_seconds: Base wait before the first retry (doubles each time)
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.api_url = api_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_ms / 1000.0
        self.retry_attempts = max(1, retry_attempts)
        self.backoff_seconds = backoff_seconds

        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout_seconds),
            follow_redirects=True,
            headers=headers,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, transport: httpx.AsyncBaseTransport | None = None) -> ChatCompletionClient:
        from config import get_settings

        cfg = get_settings().get_generator_config()
        return cls(transport=transport, **cfg)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> ChatCompletionClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _payload(self, request: GenerationRequest) -> dict[str, Any]:
        user_content = request.instruction_prompt
        if request.context_text:
            user_content = f"{user_content}\n\nCONTEXT:\n{request.context_text}"
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": get_system_prompt()},
                {"role": "user", "content": user_content},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    @staticmethod
    def _content_of(data: dict[str, Any]) -> str:
        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            return ""

    async def generate(self, request: GenerationRequest) -> str:
        """
        Run one generation call with retry logic.

        Returns:
            The raw completion text (may still need JSON extraction)

        Raises:
            GenerationTransportError: On 4xx, or when every attempt failed
        """
        last_error: Exception | None = None
        status_code: int | None = None

        for attempt in range(self.retry_attempts):
            try:
                response = await self.client.post(
                    f"{self.api_url}/chat/completions",
                    json=self._payload(request),
                )
                response.raise_for_status()
                return self._content_of(response.json())

            except httpx.TimeoutException as e:
                last_error = e
                wait_time = self.backoff_seconds * 2**attempt  # Exponential backoff: 1s, 2s, 4s
                logger.warning(
                    f"Generator timeout on attempt {attempt + 1}/{self.retry_attempts}. "
                    f"Retrying in {wait_time}s..."
                )
                if attempt < self.retry_attempts - 1:
                    await asyncio.sleep(wait_time)

            except httpx.HTTPStatusError as e:
                last_error = e
                status_code = e.response.status_code
                if status_code >= 500:
                    wait_time = self.backoff_seconds * 2**attempt
                    logger.warning(
                        f"Generator server error {status_code} on attempt "
                        f"{attempt + 1}/{self.retry_attempts}. Retrying in {wait_time}s..."
                    )
                    if attempt < self.retry_attempts - 1:
                        await asyncio.sleep(wait_time)
                else:
                    logger.error(f"Generator client error: {status_code}")
                    raise GenerationTransportError(
                        f"Generator rejected request with HTTP {status_code}",
                        attempts=attempt + 1,
                        status_code=status_code,
                    ) from e

            except httpx.RequestError as e:
                last_error = e
                wait_time = self.backoff_seconds * 2**attempt
                logger.warning(
                    f"Generator request error on attempt {attempt + 1}/{self.retry_attempts}: {e}. "
                    f"Retrying in {wait_time}s..."
                )
                if attempt < self.retry_attempts - 1:
                    await asyncio.sleep(wait_time)

        error_msg = f"Generator call failed after {self.retry_attempts} attempts"
        logger.error(f"{error_msg}: {last_error}")
        raise GenerationTransportError(
            f"{error_msg}: {last_error}",
            attempts=self.retry_attempts,
            status_code=status_code,
        ) from last_error
