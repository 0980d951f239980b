"""
Generation backends for the AI mentor features.

Each backend wraps one external LLM provider behind the same ``generate``
capability. Every failure mode (missing key, network error, bad status,
unexpected payload, timeout) surfaces as ``ProviderError`` so callers can
walk an ordered chain of backends without caring which provider failed how.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional

import httpx
from anthropic import AsyncAnthropic

from dataprosim.core.config import Settings

logger = logging.getLogger(__name__)


class ProviderName(str, Enum):
    """Supported generation providers."""
    OPENAI = "openai"
    GEMINI = "gemini"
    ANTHROPIC = "anthropic"


class ProviderError(Exception):
    """Raised when a provider cannot produce usable output."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        self.message = message
        super().__init__(f"{provider}: {message}")


class MalformedOutputError(ProviderError):
    """Provider answered, but the payload could not be decoded."""


@dataclass
class GenerationPrompt:
    """System instruction plus the learner-facing request."""
    system: str
    user: str

    def combined(self) -> str:
        """Single prompt string for providers without a system role."""
        return f"{self.system}\n\nUser Question: {self.user}"


@dataclass
class GenerationOptions:
    max_tokens: int = 500
    temperature: float = 0.7
    json_output: bool = False


class GenerationBackend(ABC):
    """Base class for a single provider in a fallback chain."""

    name: str = "base"

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 8.0,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def generate(self, prompt: GenerationPrompt, options: GenerationOptions) -> str:
        """
        Generate text for the prompt.

        Returns:
            Non-empty response text.

        Raises:
            ProviderError: on any failure, including timeout and empty output.
        """
        if not self.is_configured:
            raise ProviderError(self.name, "API key not configured")

        try:
            text = await asyncio.wait_for(
                self._generate(prompt, options),
                timeout=self.timeout,
            )
        except ProviderError:
            raise
        except asyncio.TimeoutError as e:
            raise ProviderError(self.name, f"timed out after {self.timeout}s") from e
        except Exception as e:
            raise ProviderError(self.name, str(e) or type(e).__name__) from e

        if not text or not text.strip():
            raise ProviderError(self.name, "empty response")

        logger.debug(f"[AI] {self.name} returned {len(text)} chars")
        return text

    @abstractmethod
    async def _generate(self, prompt: GenerationPrompt, options: GenerationOptions) -> str:
        """Provider-specific call. May raise any exception."""

    async def close(self) -> None:
        """Release network resources."""


class HttpGenerationBackend(GenerationBackend):
    """Backend talking to a REST API through a shared httpx client."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str,
        timeout: float = 8.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(api_key=api_key, model=model, timeout=timeout)
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None
        self._client_lock = asyncio.Lock()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client. Concurrent callers share one client."""
        async with self._client_lock:
            if self._client is None or self._client.is_closed:
                self._client = httpx.AsyncClient(timeout=self.timeout)
                self._owns_client = True
            return self._client

    async def close(self) -> None:
        """Close the HTTP client if this backend created it."""
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()

    def _raise_for_error(self, response: httpx.Response) -> None:
        if response.status_code == 200:
            return
        try:
            error_data = response.json()
        except ValueError:
            error_data = {}
        error = error_data.get("error") if isinstance(error_data, dict) else None
        if isinstance(error, dict):
            error_msg = error.get("message", response.text)
        else:
            error_msg = response.text
        raise ProviderError(self.name, f"HTTP {response.status_code}: {error_msg[:300]}")


class OpenAIBackend(HttpGenerationBackend):
    """OpenAI Chat Completions API."""

    name = ProviderName.OPENAI.value

    async def _generate(self, prompt: GenerationPrompt, options: GenerationOptions) -> str:
        client = await self._get_client()

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": prompt.system},
                {"role": "user", "content": prompt.user},
            ],
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
        }
        if options.json_output:
            payload["response_format"] = {"type": "json_object"}

        try:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )
        except httpx.RequestError as e:
            raise ProviderError(self.name, f"Network error: {e}") from e

        self._raise_for_error(response)

        data = response.json()
        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(self.name, f"Unexpected response shape: {e}") from e


class GeminiBackend(HttpGenerationBackend):
    """Google Gemini generateContent API. Has no separate system channel."""

    name = ProviderName.GEMINI.value

    async def _generate(self, prompt: GenerationPrompt, options: GenerationOptions) -> str:
        client = await self._get_client()

        generation_config = {
            "temperature": options.temperature,
            "maxOutputTokens": options.max_tokens,
        }
        if options.json_output:
            generation_config["responseMimeType"] = "application/json"

        try:
            response = await client.post(
                f"{self.base_url}/models/{self.model}:generateContent",
                headers={
                    "x-goog-api-key": self.api_key,
                    "Content-Type": "application/json",
                },
                json={
                    "contents": [{"parts": [{"text": prompt.combined()}]}],
                    "generationConfig": generation_config,
                },
            )
        except httpx.RequestError as e:
            raise ProviderError(self.name, f"Network error: {e}") from e

        self._raise_for_error(response)

        data = response.json()
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(self.name, f"No candidates in response: {e}") from e
        return "".join(part.get("text", "") for part in parts)


class AnthropicBackend(GenerationBackend):
    """Anthropic Messages API through the official SDK."""

    name = ProviderName.ANTHROPIC.value

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 8.0,
        client: Optional[AsyncAnthropic] = None,
    ):
        super().__init__(api_key=api_key, model=model, timeout=timeout)
        self._client = client

    def _get_client(self) -> AsyncAnthropic:
        if self._client is None:
            self._client = AsyncAnthropic(api_key=self.api_key, max_retries=0)
        return self._client

    async def _generate(self, prompt: GenerationPrompt, options: GenerationOptions) -> str:
        system = prompt.system
        if options.json_output:
            system += "\n\nRespond with valid JSON only, no surrounding prose."

        response = await self._get_client().messages.create(
            model=self.model,
            max_tokens=options.max_tokens,
            temperature=options.temperature,
            system=system,
            messages=[{"role": "user", "content": prompt.user}],
        )
        return "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()


class ProviderRegistry:
    """Holds one backend per provider and hands out ordered chains."""

    def __init__(self, backends: Iterable[GenerationBackend]):
        self._backends: Dict[str, GenerationBackend] = {b.name: b for b in backends}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "ProviderRegistry":
        timeout = settings.provider_timeout_seconds
        return cls([
            OpenAIBackend(
                api_key=settings.openai_api_key,
                model=settings.openai_model,
                base_url=settings.openai_base_url,
                timeout=timeout,
                client=http_client,
            ),
            GeminiBackend(
                api_key=settings.gemini_api_key,
                model=settings.gemini_model,
                base_url=settings.gemini_base_url,
                timeout=timeout,
                client=http_client,
            ),
            AnthropicBackend(
                api_key=settings.anthropic_api_key,
                model=settings.anthropic_model,
                timeout=timeout,
            ),
        ])

    def get(self, name: str) -> Optional[GenerationBackend]:
        return self._backends.get(name)

    def chain(self, names: Iterable[str]) -> List[GenerationBackend]:
        """Backends for the given names, in order. Unknown names are skipped."""
        chain = []
        for name in names:
            backend = self._backends.get(name)
            if backend is None:
                logger.warning(f"[AI] Unknown provider '{name}' in chain, skipping")
                continue
            chain.append(backend)
        return chain

    async def close(self) -> None:
        for backend in self._backends.values():
            try:
                await backend.close()
            except Exception as e:
                logger.warning(f"[AI] Failed to close {backend.name} backend: {e}")
