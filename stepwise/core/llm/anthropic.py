"""Anthropic LLM provider."""

from __future__ import annotations

import asyncio
import random
from typing import Any

from anthropic import AsyncAnthropic, APIError, RateLimitError

from stepwise.config import LLMConfig
from stepwise.core.llm.base import LLMProvider
from stepwise.core.llm.types import LLMMessage, LLMResponse
from stepwise.utils.logging import get_logger

log = get_logger(__name__)


class AnthropicProvider(LLMProvider):
    def __init__(self, config: LLMConfig) -> None:
        self._config = config
        self._client = AsyncAnthropic(api_key=config.api_key or None)
        self._model = config.model

    async def complete(
        self,
        messages: list[LLMMessage],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        kwargs = self._build_kwargs(messages, system, temperature, max_tokens)
        response = await self._call_with_retry(kwargs)
        return self._parse_response(response)

    async def close(self) -> None:
        await self._client.close()

    def _build_kwargs(
        self,
        messages: list[LLMMessage],
        system: str | None,
        temperature: float | None,
        max_tokens: int | None,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "max_tokens": max_tokens or self._config.max_tokens,
            "temperature": temperature if temperature is not None else self._config.temperature,
        }
        if system:
            kwargs["system"] = system
        return kwargs

    async def _call_with_retry(
        self, kwargs: dict[str, Any], max_retries: int = 3
    ) -> Any:
        for attempt in range(max_retries + 1):
            try:
                return await self._client.messages.create(**kwargs)
            except RateLimitError:
                if attempt == max_retries:
                    raise
                wait = (2 ** attempt) + random.uniform(0, 1)
                log.warning("rate_limited", attempt=attempt, wait=wait)
                await asyncio.sleep(wait)
            except APIError as e:
                status = getattr(e, "status_code", None)
                if attempt == max_retries or status is None or status < 500:
                    raise
                wait = (2 ** attempt) + random.uniform(0, 1)
                log.warning("api_error_retry", status=status, attempt=attempt)
                await asyncio.sleep(wait)
        raise RuntimeError("Unreachable")

    def _parse_response(self, response: Any) -> LLMResponse:
        result = LLMResponse(
            stop_reason=response.stop_reason,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        for block in response.content:
            if block.type == "text":
                result.content += block.text
        return result
