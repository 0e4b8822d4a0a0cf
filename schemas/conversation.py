"""Conversation message schemas.

A conversation is the ordered record of one agent-loop run: one system
message, then alternating assistant proposals and tool results. These
models are provider-neutral. The LLM client translates them into whatever
wire format its SDK expects.
"""

from typing import Literal

from pydantic import BaseModel, Field


class ToolInvocation(BaseModel):
    """A tool call proposed by the model.

    Attributes:
        id: Opaque identifier assigned by the completion service. Unique
            within the conversation; the matching ToolMessage echoes it.
        name: Tool name as the model wrote it. Not yet validated — the loop
            checks it against the closed set of tools before dispatch.
        arguments: Raw JSON argument string exactly as the model produced it.
    """

    id: str
    name: str
    arguments: str = "{}"


class SystemMessage(BaseModel):
    role: Literal["system"] = "system"
    content: str


class AssistantMessage(BaseModel):
    """One model response: optional free text plus zero or more tool calls."""

    role: Literal["assistant"] = "assistant"
    content: str | None = None
    tool_calls: list[ToolInvocation] = Field(default_factory=list)


class ToolMessage(BaseModel):
    """The result of executing one ToolInvocation.

    Attributes:
        tool_call_id: Id of the invocation this result answers.
        name: Tool name, echoed for readability in logs and fallbacks.
        content: JSON-encoded payload. Success payloads are tool-specific;
            failures are always {"error": "<message>"}.
        is_error: True when content carries an error payload.
    """

    role: Literal["tool"] = "tool"
    tool_call_id: str
    name: str
    content: str
    is_error: bool = False


Message = SystemMessage | AssistantMessage | ToolMessage
