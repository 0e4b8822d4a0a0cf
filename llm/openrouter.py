"""OpenRouter LLM client.

OpenRouter is a unified proxy that provides access to models from Anthropic,
Google, OpenAI, and others through a single OpenAI-compatible API and one
API key. Function calling works the same way as against OpenAI, so this
client only changes where requests go and which key it reads.

Required environment variable:
    OPENROUTER_API_KEY: Your OpenRouter API key. Add to .env and never commit.
"""

from llm.openai_client import OpenAIClient


class OpenRouterClient(OpenAIClient):
    """OpenAIClient pointed at the OpenRouter base URL.

    Model routing is just a string — pass an OpenRouter model ID such as
    "anthropic/claude-sonnet-4.5" or "openai/gpt-4o" at construction time.
    """

    api_key_env = "OPENROUTER_API_KEY"
    base_url = "https://openrouter.ai/api/v1"
