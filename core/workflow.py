"""Investigation workflow — the top-level pipeline orchestrator.

InvestigationWorkflow is the single entry point for the whole system. It is
built once with its collaborators, then run() is called with an IssueInput
as many times as needed. Each call is fully independent: fresh workflow id,
fresh conversations, fresh results.

Pipeline order inside run():
    1. Resolve the repository identifier
    2. Discover relevant files (keyword grep over the sandbox)
    3. Create a ticket for the issue
    4. Run the RCA agent
    5. Post the RCA to the ticket
    6. Run the test-case agent (failure is not fatal)
    7. Post the test cases to the ticket

The chat platform and the issue tracker are reached only through the
Notifier and IssueTracker protocols. Notifier failures are logged and never
block the pipeline.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Protocol

from agents.base import InvestigationContext
from core.config import Settings
from core.executor import SandboxExecutor
from discovery.file_finder import RelevantFileFinder
from display.markdown import render_rca_failure, render_rca_markdown, render_test_cases_markdown
from llm.base import LLMClient
from schemas.issue import IssueInput
from schemas.result import RCAResult, TestCaseReport
from sre.agents.rca_agent import RCAAgent
from sre.agents.test_case_agent import TestCaseAgent

logger = logging.getLogger(__name__)

TICKET_SUMMARY_CHARS = 200


class WorkflowError(Exception):
    """Raised when the workflow cannot start or a fatal step fails."""


@dataclass(frozen=True)
class TicketRef:
    key: str
    url: str


class Notifier(Protocol):
    """Where progress messages go (e.g. the chat thread the issue came from)."""

    async def notify(self, text: str) -> None:
        ...


class IssueTracker(Protocol):
    """Ticket system the results are posted to."""

    async def create_ticket(self, issue: IssueInput, summary: str, description: str, workflow_id: str) -> TicketRef:
        ...

    async def post_comment(self, key: str, markdown: str, workflow_id: str) -> None:
        ...


@dataclass
class WorkflowResult:
    """Everything one run produced.

    Attributes:
        workflow_id: Correlation id used in every log line of the run.
        repository: Repository identifier the run analysed.
        relevant_files: Discovery output.
        ticket: Ticket created for the issue.
        rca: The root-cause analysis. Possibly incomplete.
        test_cases: The test-case report, or None if generation failed.
        rca_posted: False when the RCA comment could not be posted. The run
            stops there and test cases are not generated.
        elapsed_seconds: Wall-clock duration of the run.
    """

    workflow_id: str
    repository: str
    relevant_files: list[str]
    ticket: TicketRef
    rca: RCAResult
    test_cases: TestCaseReport | None = None
    rca_posted: bool = True
    elapsed_seconds: float = 0.0


class InvestigationWorkflow:
    """Runs discovery, RCA and test-case generation for one issue at a time.

    Attributes:
        _settings: Process-wide configuration.
        _executor: Sandbox shared by discovery and both agents.
        _finder: Relevant-file discovery.
        _rca_agent: Root-cause-analysis agent.
        _test_case_agent: Test-case agent.
        _tracker: Issue tracker collaborator.
        _notifier: Progress notifier collaborator.
    """

    def __init__(
        self,
        settings: Settings,
        llm: LLMClient,
        tracker: IssueTracker,
        notifier: Notifier,
        executor: SandboxExecutor | None = None,
    ) -> None:
        self._settings = settings
        self._executor = executor or SandboxExecutor(settings.repo_path)
        self._finder = RelevantFileFinder(
            self._executor,
            max_files=settings.max_relevant_files,
            max_candidates=settings.max_candidate_files,
            max_keywords=settings.max_keywords,
            grep_timeout_seconds=settings.grep_timeout_seconds,
        )
        self._rca_agent = RCAAgent(llm, self._executor, settings)
        self._test_case_agent = TestCaseAgent(llm, self._executor, settings)
        self._tracker = tracker
        self._notifier = notifier

    @property
    def agent_names(self) -> list[str]:
        return [self._rca_agent.name, self._test_case_agent.name]

    async def run(
        self,
        issue: IssueInput,
        workflow_id: str | None = None,
        event_queue: asyncio.Queue | None = None,
    ) -> WorkflowResult:
        """Run the full pipeline for one issue.

        Args:
            issue: The validated issue. Its repository falls back to
                settings.default_repository.
            workflow_id: Optional correlation id. Generated if omitted.
            event_queue: Optional queue the agents emit AgentEvents into.

        Returns:
            A WorkflowResult. rca_posted is False when the RCA comment
            failed to post; test_cases is None when generation failed.

        Raises:
            WorkflowError: If no repository identifier is available.
            RepositoryNotFoundError: If the sandbox root is missing or empty.
            CompletionError: If the completion service fails during RCA.
            Exception: Whatever the tracker raised creating the ticket.
        """
        workflow_id = workflow_id or f"workflow-{uuid.uuid4().hex[:12]}"
        start = time.perf_counter()

        # Step 1: repository.
        repository = issue.repository or self._settings.default_repository
        if not repository:
            logger.error("[%s] Repository identifier missing, cannot proceed.", workflow_id)
            await self._notify(
                workflow_id,
                "⚠️ A repository is required but was not provided.\n\n"
                "Please name the repository in your message, or set GITHUB_REPO in the environment.",
            )
            raise WorkflowError("Repository identifier is required but was not provided")

        logger.info("[%s] Workflow started for %s. Issue: %s", workflow_id, repository, issue.description)
        await self._notify(workflow_id, f"📋 Issue: {issue.description}\n🔍 Analyzing repository...\n📝 Creating ticket...")

        # Step 2: relevant files.
        try:
            relevant_files = await self._finder.find(issue.description, workflow_id)
        except Exception as exc:
            logger.error("[%s] File search failed: %s", workflow_id, exc)
            await self._notify(workflow_id, f"❌ Failed to search repository: {exc}")
            raise

        # Step 3: ticket.
        try:
            ticket = await self._tracker.create_ticket(
                issue,
                summary=_ticket_summary(issue.description),
                description=_ticket_description(issue),
                workflow_id=workflow_id,
            )
        except Exception as exc:
            logger.error("[%s] Ticket creation failed: %s", workflow_id, exc)
            await self._notify(workflow_id, f"❌ Failed to create ticket: {exc}")
            raise
        logger.info("[%s] Ticket created: %s (%s)", workflow_id, ticket.key, ticket.url)
        await self._notify(workflow_id, f"✅ Ticket created: {ticket.key} {ticket.url}\n🔬 Running RCA analysis on the issue...")

        context = InvestigationContext(
            issue_description=issue.description,
            repository=repository,
            repo_path=str(self._executor.root),
            relevant_files=relevant_files,
            workflow_id=workflow_id,
        )

        # Step 4: RCA.
        try:
            rca = await self._rca_agent.investigate(context, event_queue)
        except Exception as exc:
            logger.error("[%s] RCA analysis failed: %s", workflow_id, exc)
            await self._notify(workflow_id, f"❌ Failed to perform RCA analysis: {exc}")
            try:
                await self._tracker.post_comment(ticket.key, render_rca_failure(str(exc)), workflow_id)
            except Exception as post_exc:
                logger.error("[%s] Failed to post RCA failure to ticket: %s", workflow_id, post_exc)
            raise

        result = WorkflowResult(
            workflow_id=workflow_id,
            repository=repository,
            relevant_files=relevant_files,
            ticket=ticket,
            rca=rca,
        )

        # Step 5: post RCA.
        try:
            await self._tracker.post_comment(ticket.key, render_rca_markdown(rca), workflow_id)
        except Exception as exc:
            logger.error("[%s] Failed to post RCA results: %s", workflow_id, exc)
            await self._notify(workflow_id, f"⚠️ RCA analysis completed but failed to post to ticket: {exc}")
            result.rca_posted = False
            result.elapsed_seconds = time.perf_counter() - start
            return result
        logger.info("[%s] RCA results posted to %s%s.", workflow_id, ticket.key, " (incomplete)" if rca.incomplete else "")

        # Step 6: test cases. Failure here never unwinds the RCA.
        try:
            result.test_cases = await self._test_case_agent.generate(context, rca, event_queue)
        except Exception as exc:
            logger.error("[%s] Test case generation failed: %s", workflow_id, exc)
            await self._notify(workflow_id, f"⚠️ Test case generation failed: {exc}")

        # Step 7: post test cases.
        if result.test_cases is not None and result.test_cases.test_cases:
            try:
                await self._tracker.post_comment(
                    ticket.key, render_test_cases_markdown(result.test_cases), workflow_id,
                )
            except Exception as exc:
                logger.error("[%s] Failed to post test cases: %s", workflow_id, exc)
                await self._notify(workflow_id, f"⚠️ Test cases generated but failed to post to ticket: {exc}")
        else:
            logger.info("[%s] No test cases generated, skipping ticket post.", workflow_id)

        count = len(result.test_cases.test_cases) if result.test_cases else 0
        await self._notify(
            workflow_id,
            f"✅ RCA analysis completed and posted to {ticket.key}"
            + (f"\n🧪 Generated {count} test cases" if count else ""),
        )
        result.elapsed_seconds = time.perf_counter() - start
        logger.info("[%s] Workflow completed in %.2fs.", workflow_id, result.elapsed_seconds)
        return result

    # ── Private helpers ───────────────────────────────────────────────────────

    async def _notify(self, workflow_id: str, text: str) -> None:
        """Send a progress message. Never raises."""
        try:
            await self._notifier.notify(text)
        except Exception as exc:
            logger.warning("[%s] Failed to send notification (non-blocking): %s", workflow_id, exc)


def _ticket_summary(description: str) -> str:
    if len(description) > TICKET_SUMMARY_CHARS:
        return description[: TICKET_SUMMARY_CHARS - 3] + "..."
    return description


def _ticket_description(issue: IssueInput) -> str:
    text = f"Issue: {issue.description}\n\nAnalyzing codebase for root cause analysis."
    if issue.attachments:
        text += f"\n\n**Attachments**: {len(issue.attachments)} file(s) attached"
    return text
