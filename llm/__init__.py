"""LLM provider clients."""

from llm.base import CompletionError, LLMClient
from llm.openai_client import OpenAIClient
from llm.openrouter import OpenRouterClient

__all__ = ["LLMClient", "CompletionError", "OpenAIClient", "OpenRouterClient", "build_client"]


def build_client(settings) -> LLMClient:
    """Return the client selected by settings.provider."""
    client_cls = OpenRouterClient if settings.provider == "openrouter" else OpenAIClient
    return client_cls(settings.model, temperature=settings.temperature, max_tokens=settings.max_tokens)
