"""Conversation memory for a single agent-loop run.

Conversation is the typed, append-only store that lives for the duration of
one agent run. It is created with the system prompt, appended to after every
completion and every tool execution, and read by the completion client and
by the fallback extraction when a run exhausts its budget.

It is not a database. It does not persist between runs. No disk, no network.
When the run returns, the conversation is discarded with it.
"""

import json

from schemas.conversation import AssistantMessage, Message, SystemMessage, ToolMessage


class Conversation:
    """Ordered, append-only message log for one agent run.

    Messages can be appended but never removed, replaced or reordered. This
    guarantees that:
    - The completion service always sees the run exactly as it happened
    - Every tool result stays attached to the proposal that requested it
    - Fallback extraction reads the same history the model saw

    Attributes:
        _messages: Internal list of messages in append order.
    """

    def __init__(self, system_prompt: str) -> None:
        """Start a conversation with exactly one system message."""
        self._messages: list[Message] = [SystemMessage(content=system_prompt)]

    def append(self, message: Message) -> None:
        """Append one message to the end of the conversation."""
        self._messages.append(message)

    def get_messages(self) -> list[Message]:
        """Return all messages in append order.

        Returns a copy so callers cannot mutate the internal list.
        """
        return list(self._messages)

    def assistant_texts(self) -> list[str]:
        """Return the non-empty free text of every assistant message, in order."""
        return [
            m.content
            for m in self._messages
            if isinstance(m, AssistantMessage) and m.content and m.content.strip()
        ]

    def tool_names(self) -> list[str]:
        """Return the tool name of every tool result, in order."""
        return [m.name for m in self._messages if isinstance(m, ToolMessage)]

    def pending_tool_call_ids(self) -> set[str]:
        """Return ids of tool calls on the last assistant message that have
        no result yet. Empty once every proposed call has been answered."""
        last_assistant = None
        answered: set[str] = set()
        for message in self._messages:
            if isinstance(message, AssistantMessage):
                last_assistant = message
                answered = set()
            elif isinstance(message, ToolMessage):
                answered.add(message.tool_call_id)
        if last_assistant is None:
            return set()
        return {call.id for call in last_assistant.tool_calls} - answered

    def tail(self, count: int) -> list[Message]:
        """Return the last `count` messages."""
        return list(self._messages[-count:]) if count > 0 else []

    def to_json(self) -> str:
        """Serialise the whole conversation, for debugging and audit logs."""
        return json.dumps([m.model_dump() for m in self._messages], indent=2)

    def __len__(self) -> int:
        return len(self._messages)
