"""LLM client tests.

TestLLMClientAbstract  — no API key needed, runs in CI
TestOpenAIClient       — wire-format translation against a faked SDK client
TestOpenRouterClient   — the real API call test is skipped if OPENROUTER_API_KEY
                         is not set in the environment or .env file
"""

import json
import os
from types import SimpleNamespace

import openai
import pytest

from core.config import Settings
from llm import build_client
from llm.base import CompletionError, LLMClient
from llm.openai_client import OpenAIClient, from_openai_message, to_openai_message
from llm.openrouter import OpenRouterClient
from schemas.conversation import AssistantMessage, SystemMessage, ToolInvocation, ToolMessage


def sdk_message(content=None, tool_calls=None):
    return SimpleNamespace(content=content, tool_calls=tool_calls)


def sdk_call(call_id, name, arguments):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


def fake_sdk(create):
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


# ── LLMClient (abstract) ──────────────────────────────────────────────────────

class TestLLMClientAbstract:
    def test_cannot_instantiate_directly(self):
        """LLMClient is abstract — instantiating it directly must raise."""
        with pytest.raises(TypeError, match="abstract"):
            LLMClient()

    def test_subclass_without_complete_raises(self):
        class IncompleteClient(LLMClient):
            pass

        with pytest.raises(TypeError, match="abstract"):
            IncompleteClient()


# ── OpenAIClient ──────────────────────────────────────────────────────────────

class TestOpenAIClient:
    @pytest.fixture
    def client(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        return OpenAIClient("gpt-4-turbo-preview", temperature=0.2, max_tokens=123)

    def test_raises_immediately_if_api_key_missing(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(KeyError):
            OpenAIClient("gpt-4-turbo-preview")

    def test_request_carries_tools_and_budget(self, client):
        tools = [{"type": "function", "function": {"name": "exec"}}]
        params = client.build_request([SystemMessage(content="sys")], tools)
        assert params["tools"] == tools
        assert params["tool_choice"] == "auto"
        assert params["temperature"] == 0.2
        assert params["max_tokens"] == 123
        assert "max_completion_tokens" not in params

    def test_newer_models_use_max_completion_tokens(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        params = OpenAIClient("gpt-4o-mini", max_tokens=50).build_request([], [])
        assert params["max_completion_tokens"] == 50
        assert "max_tokens" not in params

    async def test_complete_translates_response(self, client):
        seen = {}

        async def create(**kwargs):
            seen.update(kwargs)
            message = sdk_message("Looking.", [sdk_call("c1", "read_file", '{"file_path": "a.py"}')])
            return SimpleNamespace(choices=[SimpleNamespace(message=message)])

        client.client = fake_sdk(create)
        result = await client.complete([SystemMessage(content="sys")], [])

        assert result.content == "Looking."
        assert result.tool_calls == [ToolInvocation(id="c1", name="read_file", arguments='{"file_path": "a.py"}')]
        assert seen["messages"] == [{"role": "system", "content": "sys"}]

    async def test_sdk_error_becomes_completion_error(self, client):
        async def create(**kwargs):
            raise openai.OpenAIError("rate limited")

        client.client = fake_sdk(create)
        with pytest.raises(CompletionError, match="rate limited"):
            await client.complete([SystemMessage(content="sys")], [])

    async def test_empty_choices_is_an_error(self, client):
        async def create(**kwargs):
            return SimpleNamespace(choices=[])

        client.client = fake_sdk(create)
        with pytest.raises(CompletionError):
            await client.complete([SystemMessage(content="sys")], [])


class TestWireFormat:
    def test_tool_message(self):
        wire = to_openai_message(ToolMessage(tool_call_id="c1", name="exec", content='{"stdout": ""}'))
        assert wire == {"role": "tool", "tool_call_id": "c1", "content": '{"stdout": ""}'}

    def test_assistant_with_calls(self):
        message = AssistantMessage(tool_calls=[ToolInvocation(id="c1", name="exec", arguments='{"command": "ls"}')])
        wire = to_openai_message(message)
        assert wire["content"] is None
        assert wire["tool_calls"][0]["function"] == {"name": "exec", "arguments": '{"command": "ls"}'}

    def test_assistant_text_only_has_no_tool_calls_key(self):
        assert "tool_calls" not in to_openai_message(AssistantMessage(content="hi"))

    def test_dict_arguments_are_reserialised(self):
        message = from_openai_message(sdk_message(tool_calls=[sdk_call("c1", "exec", {"command": "ls"})]))
        assert json.loads(message.tool_calls[0].arguments) == {"command": "ls"}

    def test_missing_arguments_become_empty_object(self):
        message = from_openai_message(sdk_message(tool_calls=[sdk_call("c1", "list_directory", None)]))
        assert message.tool_calls[0].arguments == "{}"

    def test_call_without_id_is_malformed(self):
        with pytest.raises(CompletionError, match="Malformed"):
            from_openai_message(sdk_message(tool_calls=[sdk_call(None, "exec", "{}")]))


# ── OpenRouterClient ──────────────────────────────────────────────────────────

class TestOpenRouterClient:
    def test_raises_immediately_if_api_key_missing(self, monkeypatch):
        """Missing key must raise KeyError at construction, not at first call."""
        monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
        with pytest.raises(KeyError):
            OpenRouterClient(model="google/gemini-2.0-flash-001")

    def test_build_client_selects_provider(self, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "or-test")
        client = build_client(Settings(provider="openrouter", model="openai/gpt-4o"))
        assert isinstance(client, OpenRouterClient)
        assert client.model == "openai/gpt-4o"

    @pytest.mark.skipif(
        not os.getenv("OPENROUTER_API_KEY"),
        reason="OPENROUTER_API_KEY not set — skipping live API call",
    )
    @pytest.mark.live
    async def test_real_api_call_returns_message(self):
        """Make a real call to OpenRouter and verify we get an answer back."""
        client = OpenRouterClient(model="google/gemini-2.0-flash-001")
        response = await client.complete(
            [SystemMessage(content="Reply with one word only, no punctuation. Say the word pong.")],
            [],
        )
        assert isinstance(response, AssistantMessage)
        assert (response.content or "").strip() or response.tool_calls
