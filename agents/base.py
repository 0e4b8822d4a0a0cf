"""Base agent definition.

Defines the iterative tool-calling loop every investigation agent runs. An
agent is handed an InvestigationContext, builds a system prompt from it, and
then alternates between asking the completion service for the next step and
executing the tools the model chose, until the model submits a terminal
result through its `finish` tool or the iteration budget runs out.

Agents are deliberately narrow workers:
- They do not call other agents
- They do not store state between runs
- They only touch the repository through SandboxExecutor

What is specific to one agent (prompt, finish schema, how a finish payload
becomes a typed result, how to read a result out of free text) lives on the
subclass. Everything else — dispatch, error handling, budgets, events —
lives here once.
"""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import ValidationError

from core.config import Settings
from core.executor import SandboxError, SandboxExecutor
from core.memory import Conversation
from llm.base import CompletionError, LLMClient
from schemas.conversation import AssistantMessage, ToolInvocation, ToolMessage
from schemas.events import AgentEvent, EventType
from schemas.tools import (
    ExecCall,
    FinishCall,
    ListDirectoryCall,
    ReadFileCall,
    exploration_tools,
    to_tool_call,
)
from utils.extract import extract_section
from utils.parse import ToolArgumentsError, parse_tool_arguments

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT")


@dataclass
class InvestigationContext:
    """Everything an agent knows about the issue before its first step.

    Built by the workflow after relevant-file discovery. This is a
    dataclass rather than a Pydantic model because it is an internal
    runtime object that never crosses a system boundary.

    Attributes:
        issue_description: The reported problem, verbatim.
        repository: Repository identifier (e.g. "owner/repo").
        repo_path: Sandbox root. Never changes during a run.
        relevant_files: Ranked relevant-file list from discovery.
        workflow_id: Correlation id used in log lines and events.
    """

    issue_description: str
    repository: str
    repo_path: str
    relevant_files: list[str] = field(default_factory=list)
    workflow_id: str = "unknown"


class LoopState(str, Enum):
    RUNNING = "running"
    TERMINATED_SUCCESS = "terminated_success"
    TERMINATED_EXHAUSTED = "terminated_exhausted"


@dataclass
class LoopOutcome(Generic[ResultT]):
    """What run_loop() hands back to the concrete agent.

    Attributes:
        state: TERMINATED_SUCCESS or TERMINATED_EXHAUSTED.
        result: The terminal result. None when the budget ran out.
        iterations: Completion round trips made.
        conversation: The full conversation, for fallback extraction.
    """

    state: LoopState
    result: ResultT | None
    iterations: int
    conversation: Conversation


class FinishRejected(Exception):
    """Raised by validate_finish() when a finish payload is not acceptable.

    The message is returned to the model as the tool result so it can fix
    the payload and call finish again.
    """


class ToolCallingAgent(ABC, Generic[ResultT]):
    """Abstract base class for tool-calling investigation agents.

    Concrete agents declare name, finish_tool and required_sections, and
    implement validate_finish() and result_from_text(). required_sections
    are the `## Heading` labels a free-text answer must carry before
    result_from_text() is consulted at all. The loop itself is
    run_loop(); subclasses expose a domain-specific entry point that builds
    the system prompt, calls run_loop() and decides what exhaustion means.

    The LLM client and executor are injected at construction time so tests
    can script the model and point the sandbox at a temporary directory
    without touching agent logic.

    Example:
        class RCAAgent(ToolCallingAgent[RCAResult]):
            name = "rca_agent"
            finish_tool = RCA_FINISH_TOOL
            required_sections = ("Summary", "Root Cause", "Recommended Fix")

            def validate_finish(self, payload): ...
            def result_from_text(self, text): ...

    Attributes:
        llm: Completion client.
        executor: Sandbox every tool call runs through.
        settings: Process-wide configuration.
        max_iterations: Completion-call budget for one run.
    """

    name: str = "agent"
    finish_tool: dict = {}
    required_sections: tuple[str, ...] = ()

    def __init__(
        self,
        llm: LLMClient,
        executor: SandboxExecutor,
        settings: Settings,
        max_iterations: int,
    ) -> None:
        self.llm = llm
        self.executor = executor
        self.settings = settings
        self.max_iterations = max_iterations

    @property
    def tools(self) -> list[dict]:
        """Tool schemas offered to the model on every completion call."""
        return exploration_tools(self.settings.exec_timeout_seconds) + [self.finish_tool]

    @abstractmethod
    def validate_finish(self, payload: dict[str, Any]) -> ResultT:
        """Turn a finish payload into a terminal result.

        Raises:
            FinishRejected: If the payload is missing or has bad fields.
        """
        ...

    @abstractmethod
    def result_from_text(self, text: str) -> ResultT | None:
        """Read a terminal result out of free text, or return None."""
        ...

    # ── The loop ──────────────────────────────────────────────────────────────

    async def run_loop(
        self,
        system_prompt: str,
        workflow_id: str = "unknown",
        event_queue: asyncio.Queue | None = None,
    ) -> LoopOutcome[ResultT]:
        """Drive the model until it finishes or the budget is spent.

        Each iteration makes exactly one completion call. Every tool call in
        a response is executed in the order proposed and answered with
        exactly one tool message before the next completion call. The first
        finish call that passes validation wins; the loop stops once the
        remaining calls of that turn have results.

        A response with free text and no tool calls is inspected with
        result_from_text() only after more than text_min_iterations
        iterations, and only when every required section is present, so
        early exploratory commentary never ends a run.

        Args:
            system_prompt: The only message the conversation starts with.
            workflow_id: Correlation id for logs and events.
            event_queue: Optional asyncio.Queue to emit AgentEvents into.
                If None, events are skipped — the loop behaves the same.

        Returns:
            A LoopOutcome. State is TERMINATED_EXHAUSTED (result None) when
            max_iterations completion calls produced no terminal result.

        Raises:
            CompletionError: If the completion service fails. Never retried.
        """
        start = time.perf_counter()

        async def emit(event_type: EventType, message: str) -> None:
            if event_queue is not None:
                await event_queue.put(AgentEvent(
                    agent_name=self.name,
                    event_type=event_type,
                    message=message,
                    timestamp_ms=(time.perf_counter() - start) * 1000,
                ))

        conversation = Conversation(system_prompt)
        state = LoopState.RUNNING
        result: ResultT | None = None
        iteration = 0

        logger.info("[%s] %s: starting (budget %d iterations).", workflow_id, self.name, self.max_iterations)
        await emit(EventType.STARTED, "investigating...")

        while state is LoopState.RUNNING and iteration < self.max_iterations:
            iteration += 1
            await emit(EventType.ITERATION, f"iteration {iteration}/{self.max_iterations}")
            logger.debug("[%s] %s: iteration %d/%d.", workflow_id, self.name, iteration, self.max_iterations)

            unanswered = conversation.pending_tool_call_ids()
            if unanswered:
                raise RuntimeError(f"Tool calls left without a result: {sorted(unanswered)}")

            try:
                reply = await self.llm.complete(conversation.get_messages(), self.tools)
            except CompletionError as exc:
                logger.error("[%s] %s: completion failed at iteration %d: %s", workflow_id, self.name, iteration, exc)
                await emit(EventType.ERROR, f"completion failed: {exc}")
                raise

            conversation.append(reply)

            if reply.tool_calls:
                for invocation in reply.tool_calls:
                    message, finished = await self._dispatch(invocation, workflow_id, accept_finish=result is None)
                    conversation.append(message)
                    await emit(EventType.TOOL_CALL, _describe(invocation))
                    if finished is not None:
                        result = finished
                if result is not None:
                    state = LoopState.TERMINATED_SUCCESS
                continue

            if (
                reply.content
                and iteration > self.settings.text_min_iterations
                and self._has_required_sections(reply.content)
            ):
                from_text = self.result_from_text(reply.content)
                if from_text is not None:
                    logger.info("[%s] %s: result taken from free text at iteration %d.", workflow_id, self.name, iteration)
                    result = from_text
                    state = LoopState.TERMINATED_SUCCESS

        if state is LoopState.TERMINATED_SUCCESS:
            logger.info("[%s] %s: finished in %d iterations.", workflow_id, self.name, iteration)
            await emit(EventType.COMPLETE, f"finished in {iteration} iterations")
        else:
            state = LoopState.TERMINATED_EXHAUSTED
            logger.warning("[%s] %s: reached max iterations (%d) without a result.", workflow_id, self.name, iteration)
            await emit(EventType.ERROR, f"no result after {iteration} iterations")

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("[%s] %s: conversation:\n%s", workflow_id, self.name, conversation.to_json())

        return LoopOutcome(state=state, result=result, iterations=iteration, conversation=conversation)

    # ── Private helpers ───────────────────────────────────────────────────────

    async def _dispatch(
        self,
        invocation: ToolInvocation,
        workflow_id: str,
        accept_finish: bool,
    ) -> tuple[ToolMessage, ResultT | None]:
        """Execute one tool call. Never raises for tool-level failures.

        Returns:
            The tool message to append, and the terminal result if this was
            an accepted finish call.
        """
        try:
            arguments = parse_tool_arguments(invocation.arguments)
            call = to_tool_call(invocation.name, arguments)
        except ToolArgumentsError as exc:
            logger.warning("[%s] %s: bad arguments for %s: %r", workflow_id, self.name, invocation.name, exc.raw)
            return self._error(invocation, f"Invalid tool arguments: {exc}"), None
        except ValidationError as exc:
            logger.warning("[%s] %s: rejected call to %s: %s", workflow_id, self.name, invocation.name, exc)
            return self._error(invocation, _validation_message(invocation.name, exc)), None

        try:
            match call:
                case ReadFileCall(file_path=file_path):
                    content = await self.executor.read(file_path)
                    payload = {"content": content, "file_path": file_path}
                case ExecCall(command=command):
                    outcome = await self.executor.run(command, self.settings.exec_timeout_seconds)
                    payload = {"stdout": outcome.stdout, "stderr": outcome.stderr, "success": outcome.succeeded}
                case ListDirectoryCall(dir_path=dir_path):
                    entries = await self.executor.list(dir_path)
                    payload = {"items": [{"name": e.name, "type": e.kind, "path": e.path} for e in entries]}
                case FinishCall(payload=finish_payload):
                    if not accept_finish:
                        return self._result(invocation, {"acknowledged": True}), None
                    try:
                        finished = self.validate_finish(finish_payload)
                    except FinishRejected as exc:
                        logger.info("[%s] %s: finish rejected: %s", workflow_id, self.name, exc)
                        return self._error(invocation, str(exc)), None
                    return self._result(invocation, finish_payload), finished
        except (SandboxError, OSError) as exc:
            logger.debug("[%s] %s: %s failed: %s", workflow_id, self.name, invocation.name, exc)
            return self._error(invocation, str(exc)), None

        return self._result(invocation, payload), None

    def _result(self, invocation: ToolInvocation, payload: dict) -> ToolMessage:
        return ToolMessage(
            tool_call_id=invocation.id,
            name=invocation.name,
            content=self._serialise(payload),
        )

    def _error(self, invocation: ToolInvocation, message: str) -> ToolMessage:
        return ToolMessage(
            tool_call_id=invocation.id,
            name=invocation.name,
            content=json.dumps({"error": message}),
            is_error=True,
        )

    def _serialise(self, payload: dict) -> str:
        """JSON-encode a payload, holding each field to the output cap.

        Long strings are cut and marked "[truncated]". Long lists keep as
        many leading items as fit and report the rest as omitted_items.
        """
        cap = self.settings.max_tool_output_chars
        trimmed: dict[str, Any] = {}
        for key, value in payload.items():
            if isinstance(value, str) and len(value) > cap:
                trimmed[key] = value[:cap] + "\n[truncated]"
            elif isinstance(value, list):
                kept = _leading_items(value, cap)
                trimmed[key] = kept
                if len(kept) < len(value):
                    trimmed["omitted_items"] = len(value) - len(kept)
            else:
                trimmed[key] = value
        return json.dumps(trimmed, default=str)


def _leading_items(items: list, cap: int) -> list:
    """The longest prefix of items whose JSON encoding stays within cap."""
    size = 2
    for index, item in enumerate(items):
        size += len(json.dumps(item, default=str)) + 2
        if size > cap:
            return items[:index]
    return items


def _describe(invocation: ToolInvocation) -> str:
    """Short label for the live display, e.g. "read_file(app/user.rb)"."""
    try:
        arguments = parse_tool_arguments(invocation.arguments)
    except ToolArgumentsError:
        return invocation.name
    detail = arguments.get("file_path") or arguments.get("command") or arguments.get("dir_path") or ""
    return f"{invocation.name}({str(detail)[:60]})" if detail else invocation.name


def _validation_message(name: str, exc: ValidationError) -> str:
    if any(err["type"] == "union_tag_invalid" for err in exc.errors()):
        return f"Unknown tool: {name}"
    fields = ", ".join(".".join(str(p) for p in err["loc"][1:]) or "arguments" for err in exc.errors())
    return f"Invalid arguments for {name}: {fields}"
