"""Tool schemas and typed tool calls.

Two views of the same closed tool set live here:

- The JSON schemas sent to the completion service so the model knows which
  tools exist (READ_FILE_TOOL, EXEC_TOOL, LIST_DIRECTORY_TOOL, plus a
  per-agent finish tool built with finish_tool()).
- The typed ToolCall union the agent loop dispatches on. A raw invocation
  is validated into exactly one variant, and the loop matches on the
  variant type. Adding a tool means adding a variant here and a branch in
  the loop's match statement.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter

READ_FILE = "read_file"
EXEC = "exec"
LIST_DIRECTORY = "list_directory"
FINISH = "finish"

TOOL_NAMES = (READ_FILE, EXEC, LIST_DIRECTORY, FINISH)


# ── Typed tool calls ──────────────────────────────────────────────────────────

class ReadFileCall(BaseModel):
    name: Literal["read_file"] = READ_FILE
    file_path: str = Field(min_length=1)


class ExecCall(BaseModel):
    name: Literal["exec"] = EXEC
    command: str = Field(min_length=1)


class ListDirectoryCall(BaseModel):
    name: Literal["list_directory"] = LIST_DIRECTORY
    dir_path: str = "."


class FinishCall(BaseModel):
    """The terminal tool. Its payload shape differs per agent, so it is kept
    as a plain mapping here and validated by the owning agent."""

    name: Literal["finish"] = FINISH
    payload: dict[str, Any] = Field(default_factory=dict)


ToolCall = Annotated[
    ReadFileCall | ExecCall | ListDirectoryCall | FinishCall,
    Field(discriminator="name"),
]

_TOOL_CALL_ADAPTER: TypeAdapter = TypeAdapter(ToolCall)


def to_tool_call(name: str, arguments: dict[str, Any]) -> ReadFileCall | ExecCall | ListDirectoryCall | FinishCall:
    """Validate a model-proposed invocation into a typed ToolCall.

    Args:
        name: Tool name the model chose.
        arguments: Parsed JSON arguments.

    Returns:
        One ToolCall variant.

    Raises:
        pydantic.ValidationError: If the name is not one of TOOL_NAMES or the
            arguments do not match the variant's fields.
    """
    if name == FINISH:
        return _TOOL_CALL_ADAPTER.validate_python({"name": FINISH, "payload": arguments})
    return _TOOL_CALL_ADAPTER.validate_python({**arguments, "name": name})


# ── Schemas exposed to the completion service ─────────────────────────────────

def _function(name: str, description: str, properties: dict, required: list[str]) -> dict:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        },
    }


READ_FILE_TOOL = _function(
    READ_FILE,
    "Read the contents of a source code file or config file. Returns the full file content.",
    {
        "file_path": {
            "type": "string",
            "description": (
                'Relative path to the file from repository root '
                '(e.g., "src/auth/login.js" or "app/models/user.rb")'
            ),
        },
    },
    ["file_path"],
)

EXEC_TOOL = _function(
    EXEC,
    (
        "Execute shell commands like ls, grep, cat, find, etc. Useful for exploring "
        "directory structure, searching for patterns, or reading files. Runs from the "
        "repository root and has a {timeout} second timeout."
    ),
    {
        "command": {
            "type": "string",
            "description": (
                'Shell command to execute (e.g., "ls src/", '
                '"grep -rn \\"login\\" app/", "cat package.json")'
            ),
        },
    },
    ["command"],
)

LIST_DIRECTORY_TOOL = _function(
    LIST_DIRECTORY,
    (
        "List files and directories in a given path. Returns array of items with "
        "name, type (file/directory), and path."
    ),
    {
        "dir_path": {
            "type": "string",
            "description": 'Relative path to directory from repository root (e.g., "src/" or "backend/src/auth/")',
        },
    },
    ["dir_path"],
)


def exploration_tools(exec_timeout_seconds: float) -> list[dict]:
    """Return the read-only exploration tool schemas shared by every agent."""
    exec_tool = {
        "type": "function",
        "function": {
            **EXEC_TOOL["function"],
            "description": EXEC_TOOL["function"]["description"].format(
                timeout=f"{exec_timeout_seconds:g}",
            ),
        },
    }
    return [READ_FILE_TOOL, exec_tool, LIST_DIRECTORY_TOOL]


def finish_tool(description: str, properties: dict, required: list[str]) -> dict:
    """Build the schema for an agent's terminal tool."""
    return _function(FINISH, description, properties, required)
