"""Shared fixtures: a small on-disk repository, settings pointed at it, and
a scripted LLM client that replays canned responses instead of calling an
API."""

import json
import pathlib
import shutil

import pytest

from core.config import Settings
from core.executor import SandboxExecutor
from llm.base import CompletionError, LLMClient
from schemas.conversation import AssistantMessage, Message, ToolInvocation


class ScriptedLLM(LLMClient):
    """Returns pre-built AssistantMessages in order and records every request.

    When the script runs out it repeats `then`, so budget tests can script
    one exploratory turn and let it loop.
    """

    def __init__(self, *responses: AssistantMessage, then: AssistantMessage | None = None):
        self.responses = list(responses)
        self.then = then
        self.requests: list[list[Message]] = []
        self.tools_seen: list[list[dict]] = []

    async def complete(self, messages: list[Message], tools: list[dict]) -> AssistantMessage:
        self.requests.append(messages)
        self.tools_seen.append(tools)
        if self.responses:
            return self.responses.pop(0)
        if self.then is not None:
            return self.then
        raise CompletionError("script exhausted")

    @property
    def calls(self) -> int:
        return len(self.requests)


_call_counter = iter(range(1, 1_000_000))


def tool_call(name: str, arguments: dict | str | None = None, call_id: str | None = None) -> ToolInvocation:
    raw = arguments if isinstance(arguments, str) else json.dumps(arguments or {})
    return ToolInvocation(id=call_id or f"call_{next(_call_counter)}", name=name, arguments=raw)


def reply(*calls: ToolInvocation, text: str | None = None) -> AssistantMessage:
    return AssistantMessage(content=text, tool_calls=list(calls))


RCA_FINISH = {
    "summary": "Login button does nothing because the click handler is never bound.",
    "root_cause": "`src/auth/login.js` registers the handler on a misspelled element id.",
    "recommended_fix": "1. Fix the element id in `src/auth/login.js`.",
}

TEST_CASE_FINISH = {
    "test_cases": [
        {
            "title": "Login button submits credentials",
            "type": "unit_test",
            "target": "bindLoginButton",
            "description": "Clicking the button calls submitLogin.",
            "test_steps": ["Render the form", "Click the login button"],
            "expected_result": "submitLogin is called once",
            "priority": "high",
            "related_files": ["src/auth/login.js"],
        },
    ],
    "summary": "One unit test for the login binding.",
    "test_coverage": "Login button binding",
}


@pytest.fixture
def repo(tmp_path: pathlib.Path) -> pathlib.Path:
    root = tmp_path / "repo"
    (root / "src" / "auth").mkdir(parents=True)
    (root / "src" / "ui").mkdir(parents=True)
    (root / "node_modules" / "lib").mkdir(parents=True)
    (root / "src" / "auth" / "login.js").write_text(
        "export function bindLoginButton() {\n"
        "  document.getElementById('login-buton').onclick = submitLogin;\n"
        "}\n"
    )
    (root / "src" / "ui" / "button.js").write_text("export const button = () => '<button/>';\n")
    (root / "src" / "ui" / "theme.css").write_text(".primary { color: blue; }\n")
    (root / "README.md").write_text("# Demo app\n")
    (root / "node_modules" / "lib" / "login.js").write_text("// login vendored\n")
    (root / "logo.png").write_bytes(b"\x89PNG login")
    return root


@pytest.fixture
def settings(repo: pathlib.Path) -> Settings:
    return Settings(
        repo_path=str(repo),
        default_repository="acme/web",
        rca_max_iterations=6,
        test_case_max_iterations=4,
        text_min_iterations=2,
        exec_timeout_seconds=5.0,
    )


@pytest.fixture
def executor(repo: pathlib.Path) -> SandboxExecutor:
    return SandboxExecutor(repo)


@pytest.fixture
def requires_shell_tools():
    if not (shutil.which("find") and shutil.which("grep") and shutil.which("sort")):
        pytest.skip("find/grep/sort not available")
