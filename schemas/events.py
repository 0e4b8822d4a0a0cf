"""Agent event schema.

Events are emitted by the agent loop during a run so the display layer can
update its live panels in real time. The loop and the display layer are
deliberately decoupled — a run behaves identically whether or not anything
is listening to these events.
"""

from enum import Enum

from pydantic import BaseModel


class EventType(str, Enum):
    """The lifecycle stages an agent can emit events for.

    Extends str so values serialize to plain strings ("started", "complete")
    rather than "EventType.STARTED" — cleaner for logging and display output.

    Values:
        STARTED: The run has begun and the system prompt is in place.
        ITERATION: A completion round trip is about to be made.
        TOOL_CALL: A tool invocation has been executed.
        COMPLETE: The run produced a terminal result.
        ERROR: The run failed or exhausted its budget.
    """

    STARTED = "started"
    ITERATION = "iteration"
    TOOL_CALL = "tool_call"
    COMPLETE = "complete"
    ERROR = "error"


class AgentEvent(BaseModel):
    """A single runtime event emitted during an agent run.

    Attributes:
        agent_name: Name of the agent that emitted this event. Maps to
            the panel heading in the Rich display layout.
        event_type: Lifecycle stage this event represents.
        message: Human-readable description of what happened
            (e.g. "iteration 3/30", "read_file(app/models/user.rb)").
        timestamp_ms: Milliseconds since the start of the run.
    """

    agent_name: str
    event_type: EventType
    message: str
    timestamp_ms: float
