"""LLM provider abstract base class."""

from __future__ import annotations

from abc import ABC, abstractmethod

from stepwise.core.llm.types import LLMMessage, LLMResponse


class LLMProvider(ABC):
    @abstractmethod
    async def complete(
        self,
        messages: list[LLMMessage],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse: ...

    async def close(self) -> None:
        """Clean up resources. Override if needed."""
