"""Local (OpenAI-compatible) LLM provider."""

from __future__ import annotations

import asyncio
import random
from typing import Any

import httpx

from stepwise.config import LLMConfig
from stepwise.core.llm.base import LLMProvider
from stepwise.core.llm.types import LLMMessage, LLMResponse
from stepwise.utils.logging import get_logger

log = get_logger(__name__)


class LocalProvider(LLMProvider):
    """OpenAI-compatible local model provider (ollama, llama.cpp, vllm, etc.)."""

    def __init__(self, config: LLMConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._endpoint = config.base_url.rstrip("/")
        self._model = config.model
        self._client = client or httpx.AsyncClient(timeout=120, base_url=self._endpoint)

    async def complete(
        self,
        messages: list[LLMMessage],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        api_messages: list[dict[str, Any]] = []
        if system:
            api_messages.append({"role": "system", "content": system})
        api_messages.extend({"role": m.role, "content": m.content} for m in messages)

        body: dict[str, Any] = {
            "model": self._model,
            "messages": api_messages,
            "max_tokens": max_tokens or self._config.max_tokens,
            "temperature": temperature if temperature is not None else self._config.temperature,
        }

        resp = await self._post_with_retry("/chat/completions", body)
        data = resp.json()

        choice = data["choices"][0]
        usage = data.get("usage", {})
        return LLMResponse(
            content=choice["message"].get("content", "") or "",
            stop_reason=choice.get("finish_reason"),
            input_tokens=usage.get("prompt_tokens", 0),
            output_tokens=usage.get("completion_tokens", 0),
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _post_with_retry(
        self, path: str, body: dict[str, Any], max_retries: int = 2
    ) -> httpx.Response:
        for attempt in range(max_retries + 1):
            try:
                resp = await self._client.post(path, json=body)
                resp.raise_for_status()
                return resp
            except httpx.HTTPStatusError as e:
                if attempt == max_retries or e.response.status_code < 500:
                    raise
                wait = (2 ** attempt) + random.uniform(0, 1)
                log.warning("local_llm_retry", status=e.response.status_code, attempt=attempt)
                await asyncio.sleep(wait)
            except httpx.ConnectError:
                if attempt == max_retries:
                    raise
                wait = (2 ** attempt) + random.uniform(0, 1)
                log.warning("local_llm_connect_retry", attempt=attempt)
                await asyncio.sleep(wait)
        raise RuntimeError("Unreachable")
