"""LLM adapter: wraps any AbstractClient behind the model-call boundary."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from pydantic import BaseModel

from ..conf import KB_LLM_MAX_RETRIES
from ..exceptions import ConfigError, LLMError, ParserError
from .client import AbstractClient
from .parsing import Parsed, extract_json, parse_json_value

logger = logging.getLogger("kbindex.llm")


class LLMAdapter:
    """Wraps an :class:`AbstractClient` for engine-level model calls.

    Retries transient failures with a linear backoff and offers the
    ``call_model(prompt, context)`` contract used by every component:
    ``prompt`` is the instruction (system prompt), ``context`` the user
    message the instruction applies to.
    """

    def __init__(
        self,
        client: AbstractClient,
        model: Optional[str] = None,
        max_retries: int = KB_LLM_MAX_RETRIES,
        retry_delay: float = 1.0,
    ):
        self.client = client
        self.model = model or getattr(client, "default_model", None)
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay

    async def ask(
        self,
        prompt: str,
        temperature: Optional[float] = None,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
        model: Optional[str] = None,
    ) -> str:
        """Send a prompt and return the raw text response.

        Raises:
            LLMError: when every attempt failed.
            ConfigError: when the client is not configured (not retried).
        """
        for attempt in range(self.max_retries):
            try:
                response = await self.client.ask(
                    prompt=prompt,
                    model=model or self.model,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    system_prompt=system_prompt,
                )
                return response.output or ""
            except ConfigError:
                raise
            except Exception as e:
                logger.warning(
                    "LLM call attempt %d/%d failed: %s",
                    attempt + 1,
                    self.max_retries,
                    e,
                )
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(self.retry_delay * (attempt + 1))
                else:
                    logger.error("Max retries reached")
                    if isinstance(e, LLMError):
                        raise
                    raise LLMError(f"LLM call failed: {e}") from e
        # max_retries >= 1, the loop always returns or raises
        raise LLMError("LLM call failed")

    async def call_model(
        self,
        prompt: str,
        context: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        model: Optional[str] = None,
    ) -> str:
        """The model-call boundary: instruction plus the text it applies to."""
        return await self.ask(
            prompt=context,
            system_prompt=prompt,
            temperature=temperature,
            max_tokens=max_tokens,
            model=model,
        )

    async def ask_json(
        self,
        prompt: str,
        context: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Any:
        """Call the model and return parsed JSON (dict or list), ``{}`` if none."""
        raw = await self.call_model(
            prompt,
            context,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return extract_json(raw)

    async def ask_structured(
        self,
        prompt: str,
        context: str,
        output_type: type[BaseModel],
        temperature: Optional[float] = None,
    ) -> BaseModel:
        """Call the model and validate the first JSON object into ``output_type``.

        Raises:
            ParserError: when the reply holds no object matching ``output_type``.
        """
        raw = await self.call_model(prompt, context, temperature=temperature)
        outcome = parse_json_value(raw, expect=dict, start_chars="{")
        if not isinstance(outcome, Parsed):
            raise ParserError(outcome.reason, payload=outcome.raw)
        try:
            return output_type.model_validate(outcome.value)
        except ValueError as exc:
            raise ParserError(
                f"Reply does not match {output_type.__name__}",
                payload=outcome.value,
            ) from exc
