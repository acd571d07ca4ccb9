"""LLM provider subpackage."""

from stepwise.core.llm.types import LLMMessage, LLMResponse
from stepwise.core.llm.base import LLMProvider
from stepwise.core.llm.anthropic import AnthropicProvider
from stepwise.core.llm.local import LocalProvider
from stepwise.config import LLMConfig

__all__ = [
    "LLMMessage",
    "LLMResponse",
    "LLMProvider",
    "AnthropicProvider",
    "LocalProvider",
    "create_provider",
]


def create_provider(config: LLMConfig) -> LLMProvider:
    """Factory to create the appropriate LLM provider from config."""
    if config.provider == "local":
        return LocalProvider(config)
    return AnthropicProvider(config)
