"""LLM providers package for Mimir - embedding and chat backends."""

from .anthropic_provider import AnthropicProvider
from .openai_provider import OpenAIProvider

__all__ = [
    "AnthropicProvider",
    "OpenAIProvider",
]
