"""LLM clients: the provider seam behind the model-call boundary."""
import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp
from navconfig.logging import logging
from pydantic import BaseModel, Field

from ..conf import (
    KB_LLM_MAX_TOKENS,
    KB_LLM_MODEL,
    KB_LLM_TEMPERATURE,
    KB_LLM_TIMEOUT,
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
)
from ..exceptions import ConfigError, LLMError


class LLMResponse(BaseModel):
    """Raw completion returned by a client."""
    output: str = ""
    model: Optional[str] = None
    finish_reason: Optional[str] = None
    usage: Dict[str, Any] = Field(default_factory=dict)


class AbstractClient(ABC):
    """Base class for chat-completion providers.

    Subclasses only need to implement :meth:`ask`; everything above this
    seam (retries, JSON extraction) lives in the adapter.
    """
    client_type: str = "abstract"
    _default_model: str = KB_LLM_MODEL

    def __init__(self, model: Optional[str] = None, **kwargs):
        self.default_model = model or self._default_model
        self.logger = logging.getLogger(f"kbindex.llm.{self.client_type}")
        self.kwargs = kwargs

    @abstractmethod
    async def ask(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        system_prompt: Optional[str] = None,
    ) -> LLMResponse:
        """Send one prompt and return the provider's completion."""


class OpenAIClient(AbstractClient):
    """Client for any OpenAI-compatible ``/chat/completions`` endpoint.

    Args:
        api_key: API key. Falls back to ``OPENAI_API_KEY``.
        base_url: API root. Falls back to ``OPENAI_BASE_URL``.
        model: Default model name.
        timeout: Total request timeout in seconds.

    Example:
        >>> client = OpenAIClient(model="gpt-4o-mini")
        >>> response = await client.ask("Hello!", system_prompt="Be brief.")
    """
    client_type: str = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: int = KB_LLM_TIMEOUT,
        **kwargs
    ):
        super().__init__(model=model, **kwargs)
        self.api_key = api_key or OPENAI_API_KEY
        self.base_url = (base_url or OPENAI_BASE_URL).rstrip('/')
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise ConfigError("OPENAI_API_KEY is not set")
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    async def ask(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        system_prompt: Optional[str] = None,
    ) -> LLMResponse:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        payload = {
            "model": model or self.default_model,
            "messages": messages,
            "temperature": KB_LLM_TEMPERATURE if temperature is None else temperature,
            "max_tokens": max_tokens or KB_LLM_MAX_TOKENS,
        }
        url = f"{self.base_url}/chat/completions"
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, headers=self._headers(), json=payload) as response:
                    if response.status != 200:
                        error = await response.text()
                        self.logger.error(
                            "LLM API error: %s - %s", response.status, error[:500]
                        )
                        raise LLMError(
                            f"LLM API error: {response.status}",
                            status=response.status,
                            payload=error,
                        )
                    data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise LLMError(f"LLM request failed: {exc}") from exc

        choices = data.get("choices") or [{}]
        choice = choices[0]
        return LLMResponse(
            output=(choice.get("message") or {}).get("content") or "",
            model=data.get("model", payload["model"]),
            finish_reason=choice.get("finish_reason"),
            usage=data.get("usage") or {},
        )
