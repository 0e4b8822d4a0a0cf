"""OpenAI LLM client.

Talks to the OpenAI chat-completions API with function calling enabled.
Every request carries the full conversation, the tool schema, tool_choice
"auto", and the configured temperature and token budget.

Required environment variable:
    OPENAI_API_KEY: Your OpenAI API key. Add to .env and never commit.
"""

import json
import logging
import os

import openai

from llm.base import CompletionError, LLMClient
from schemas.conversation import AssistantMessage, Message, SystemMessage, ToolInvocation, ToolMessage

logger = logging.getLogger(__name__)

# Model families that reject max_tokens and require max_completion_tokens.
_COMPLETION_TOKENS_MODELS = ("gpt-4o", "gpt-5", "o1")


class OpenAIClient(LLMClient):
    """LLMClient implementation backed by the OpenAI SDK.

    Example usage:
        llm = OpenAIClient("gpt-4o", temperature=0.3, max_tokens=4000)
        agent = RCAAgent(llm=llm, executor=executor, settings=settings)

    Attributes:
        model: Model identifier passed to the API.
        temperature: Sampling temperature for every request.
        max_tokens: Token budget per response.
        client: The underlying async OpenAI client.
    """

    api_key_env = "OPENAI_API_KEY"
    base_url: str | None = None

    def __init__(self, model: str, temperature: float = 0.3, max_tokens: int = 4000):
        """Initialize the client for a specific model.

        Args:
            model: Model ID string. No default — always be explicit about
                which model an agent is using.
            temperature: Sampling temperature.
            max_tokens: Token budget per completion.

        Raises:
            KeyError: If the API key variable is not set in the environment
                or .env file. Fails immediately at construction rather than
                at the first API call.
        """
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.client = openai.AsyncOpenAI(
            base_url=self.base_url,
            api_key=os.environ[self.api_key_env],
        )

    async def complete(self, messages: list[Message], tools: list[dict]) -> AssistantMessage:
        """Request one proposal from the model.

        Raises:
            CompletionError: If the API call fails or the response has no
                message in it.
        """
        try:
            response = await self.client.chat.completions.create(**self.build_request(messages, tools))
        except openai.OpenAIError as exc:
            raise CompletionError(f"Completion request failed: {exc}") from exc

        if not response.choices:
            raise CompletionError("Completion response contained no choices.")
        return from_openai_message(response.choices[0].message)

    def build_request(self, messages: list[Message], tools: list[dict]) -> dict:
        """Build the keyword arguments for chat.completions.create()."""
        params = {
            "model": self.model,
            "messages": [to_openai_message(m) for m in messages],
            "tools": tools,
            "tool_choice": "auto",
            "temperature": self.temperature,
        }
        if any(family in self.model for family in _COMPLETION_TOKENS_MODELS):
            params["max_completion_tokens"] = self.max_tokens
        else:
            params["max_tokens"] = self.max_tokens
        return params


def to_openai_message(message: Message) -> dict:
    """Translate a conversation message into the chat-completions wire format."""
    if isinstance(message, SystemMessage):
        return {"role": "system", "content": message.content}

    if isinstance(message, ToolMessage):
        return {
            "role": "tool",
            "tool_call_id": message.tool_call_id,
            "content": message.content,
        }

    payload: dict = {"role": "assistant", "content": message.content}
    if message.tool_calls:
        payload["tool_calls"] = [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.name, "arguments": call.arguments},
            }
            for call in message.tool_calls
        ]
    return payload


def from_openai_message(message) -> AssistantMessage:
    """Translate an SDK response message into an AssistantMessage.

    Raises:
        CompletionError: If a tool call is missing its id or function name.
    """
    calls = []
    for raw in message.tool_calls or []:
        function = getattr(raw, "function", None)
        if not getattr(raw, "id", None) or function is None or not function.name:
            raise CompletionError(f"Malformed tool call in completion response: {raw!r}")
        arguments = function.arguments
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments or {})
        calls.append(ToolInvocation(id=raw.id, name=function.name, arguments=arguments or "{}"))

    return AssistantMessage(content=message.content, tool_calls=calls)
