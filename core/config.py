"""Process-wide configuration record.

Settings is built exactly once at process start (main.py or cli.py) and
passed by reference into every component that needs it. Nothing below the
entry points reads environment variables for tuning values — the only
exception is API keys, which the LLM clients read at construction so they
fail fast when a key is missing.
"""

import os
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_MODEL = "gpt-4-turbo-preview"
DEFAULT_REPO_PATH = "/app/repo"


class Settings(BaseModel):
    """Immutable configuration shared by the workflow, agents and tools.

    Attributes:
        repo_path: Sandbox root. Every file read, directory listing and shell
            command is confined to (or rooted at) this directory.
        default_repository: Repository identifier used when the producer
            does not supply one (e.g. "owner/repo").
        notify_webhook_url: Incoming-webhook URL progress messages are
            posted to. Unset means progress is only logged.
        provider: Which completion service to talk to.
        model: Model identifier sent with every completion request.
        temperature: Sampling temperature for every completion request.
        max_tokens: Token budget per completion response.
        rca_max_iterations: Iteration budget for the RCA agent.
        test_case_max_iterations: Iteration budget for the test-case agent.
        text_min_iterations: A free-text-only response is only inspected
            for labelled sections once more than this many iterations have
            run. Keeps exploratory commentary from ending a run early.
        exec_timeout_seconds: Wall-clock limit for model-issued commands.
        grep_timeout_seconds: Per-file limit for discovery grep checks.
        max_relevant_files: Cap on the discovery output.
        max_candidate_files: Cap on files grepped per keyword.
        max_keywords: Cap on keywords searched per issue.
        max_tool_output_chars: Tool payloads longer than this are cut
            before they enter the conversation.
    """

    model_config = {"frozen": True}

    repo_path: str = DEFAULT_REPO_PATH
    default_repository: str | None = None
    notify_webhook_url: str | None = None
    provider: Literal["openai", "openrouter"] = "openai"
    model: str = DEFAULT_MODEL
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    max_tokens: int = Field(default=4000, gt=0)

    rca_max_iterations: int = Field(default=30, gt=0)
    test_case_max_iterations: int = Field(default=20, gt=0)
    text_min_iterations: int = Field(default=5, ge=0)

    exec_timeout_seconds: float = Field(default=10.0, gt=0)
    grep_timeout_seconds: float = Field(default=2.0, gt=0)

    max_relevant_files: int = Field(default=50, gt=0)
    max_candidate_files: int = Field(default=100, gt=0)
    max_keywords: int = Field(default=10, gt=0)
    max_tool_output_chars: int = Field(default=100_000, gt=0)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the environment (and .env, if present).

        Unset variables fall back to the field defaults above.

        Raises:
            pydantic.ValidationError: If a variable is set to a value that
                does not fit its field (e.g. RCA_MAX_ITERATIONS=abc).
        """
        load_dotenv()

        env_map = {
            "repo_path": "GITHUB_REPO_PATH",
            "default_repository": "GITHUB_REPO",
            "notify_webhook_url": "NOTIFY_WEBHOOK_URL",
            "provider": "LLM_PROVIDER",
            "model": "OPENAI_MODEL",
            "rca_max_iterations": "RCA_MAX_ITERATIONS",
            "test_case_max_iterations": "TEST_CASE_MAX_ITERATIONS",
            "text_min_iterations": "TEXT_MIN_ITERATIONS",
            "exec_timeout_seconds": "EXEC_TIMEOUT_SECONDS",
        }
        values = {
            field: os.environ[var]
            for field, var in env_map.items()
            if os.environ.get(var)
        }
        if "default_repository" not in values and os.environ.get("BACKEND_REPO_URL"):
            values["default_repository"] = os.environ["BACKEND_REPO_URL"]

        return cls.model_validate(values)
