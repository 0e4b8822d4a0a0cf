"""Workflow tests — scripted model, real sandbox, in-memory tracker."""

import pytest

from core.executor import SandboxExecutor
from core.workflow import InvestigationWorkflow, WorkflowError
from discovery.file_finder import RepositoryNotFoundError
from llm.base import CompletionError
from schemas.issue import Attachment, IssueInput
from sre.integrations.tracker import InMemoryTracker

from conftest import RCA_FINISH, TEST_CASE_FINISH, ScriptedLLM, reply, tool_call


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.messages: list[str] = []
        self.fail = fail

    async def notify(self, text: str) -> None:
        self.messages.append(text)
        if self.fail:
            raise RuntimeError("chat is down")


class FlakyTracker(InMemoryTracker):
    """Fails post_comment for the comment numbers listed in fail_on (1-based)."""

    def __init__(self, fail_on=(), fail_create=False):
        super().__init__()
        self.fail_on = set(fail_on)
        self.fail_create = fail_create
        self._posts = 0

    async def create_ticket(self, issue, summary, description, workflow_id):
        if self.fail_create:
            raise RuntimeError("tracker unavailable")
        return await super().create_ticket(issue, summary, description, workflow_id)

    async def post_comment(self, key, markdown, workflow_id):
        self._posts += 1
        if self._posts in self.fail_on:
            raise RuntimeError("comment rejected")
        await super().post_comment(key, markdown, workflow_id)


def happy_llm():
    return ScriptedLLM(
        reply(tool_call("read_file", {"file_path": "src/auth/login.js"})),
        reply(tool_call("finish", RCA_FINISH)),
        reply(tool_call("finish", TEST_CASE_FINISH)),
    )


def make_workflow(settings, llm, tracker=None, notifier=None):
    return InvestigationWorkflow(
        settings,
        llm,
        tracker if tracker is not None else InMemoryTracker(),
        notifier if notifier is not None else RecordingNotifier(),
    )


ISSUE = IssueInput(description="The login button is broken")


@pytest.mark.usefixtures("requires_shell_tools")
class TestInvestigationWorkflow:
    async def test_happy_path_posts_rca_then_test_cases(self, settings):
        tracker = InMemoryTracker()
        notifier = RecordingNotifier()
        result = await make_workflow(settings, happy_llm(), tracker, notifier).run(ISSUE, workflow_id="wf-1")

        assert result.repository == "acme/web"
        assert result.relevant_files == ["src/auth/login.js", "src/ui/button.js"]
        assert result.rca.incomplete is False
        assert len(result.test_cases.test_cases) == 1

        ticket = tracker.tickets[result.ticket.key]
        assert ticket.summary == ISSUE.description
        rca_comment, tests_comment = ticket.comments
        assert rca_comment.startswith("## Automated RCA Analysis")
        assert "### 1. Login button submits credentials" in tests_comment
        assert "Generated 1 test cases" in notifier.messages[-1]

    async def test_missing_repository_raises(self, settings):
        no_default = settings.model_copy(update={"default_repository": None})
        notifier = RecordingNotifier()
        with pytest.raises(WorkflowError):
            await make_workflow(no_default, happy_llm(), notifier=notifier).run(ISSUE)
        assert "repository is required" in notifier.messages[0]

    async def test_issue_repository_overrides_default(self, settings):
        issue = IssueInput(description="login broken", repository="acme/other")
        result = await make_workflow(settings, happy_llm()).run(issue)
        assert result.repository == "acme/other"

    async def test_missing_checkout_is_fatal(self, settings, tmp_path):
        gone = settings.model_copy(update={"repo_path": str(tmp_path / "absent")})
        tracker = InMemoryTracker()
        with pytest.raises(RepositoryNotFoundError):
            await make_workflow(gone, happy_llm(), tracker).run(ISSUE)
        assert tracker.tickets == {}

    async def test_ticket_failure_is_fatal(self, settings):
        llm = happy_llm()
        with pytest.raises(RuntimeError, match="tracker unavailable"):
            await make_workflow(settings, llm, FlakyTracker(fail_create=True)).run(ISSUE)
        assert llm.calls == 0

    async def test_rca_failure_posts_failure_comment_and_raises(self, settings):
        tracker = InMemoryTracker()
        with pytest.raises(CompletionError):
            await make_workflow(settings, ScriptedLLM(), tracker).run(ISSUE)
        [ticket] = tracker.tickets.values()
        assert ticket.comments[0].startswith("RCA Analysis Failed:")

    async def test_rca_comment_failure_returns_partial_result(self, settings):
        llm = happy_llm()
        notifier = RecordingNotifier()
        result = await make_workflow(settings, llm, FlakyTracker(fail_on={1}), notifier).run(ISSUE)
        assert result.rca_posted is False
        assert result.test_cases is None
        assert llm.calls == 2
        assert "failed to post" in notifier.messages[-1]

    async def test_test_case_failure_is_not_fatal(self, settings):
        llm = ScriptedLLM(
            reply(tool_call("finish", RCA_FINISH)),
            then=reply(tool_call("exec", {"command": "ls"})),
        )
        tracker = InMemoryTracker()
        notifier = RecordingNotifier()
        result = await make_workflow(settings, llm, tracker, notifier).run(ISSUE)

        assert result.test_cases is None
        assert result.rca_posted is True
        assert len(tracker.tickets[result.ticket.key].comments) == 1
        assert any("Test case generation failed" in m for m in notifier.messages)

    async def test_test_case_comment_failure_only_notifies(self, settings):
        notifier = RecordingNotifier()
        result = await make_workflow(settings, happy_llm(), FlakyTracker(fail_on={2}), notifier).run(ISSUE)
        assert result.test_cases is not None
        assert any("Test cases generated but failed to post" in m for m in notifier.messages)

    async def test_notifier_failures_never_block(self, settings):
        result = await make_workflow(settings, happy_llm(), notifier=RecordingNotifier(fail=True)).run(ISSUE)
        assert result.test_cases is not None

    async def test_attachments_forwarded_to_ticket(self, settings):
        issue = IssueInput(
            description="login broken",
            attachments=[Attachment(name="trace.txt", url="https://files.example/trace.txt")],
        )
        tracker = InMemoryTracker()
        result = await make_workflow(settings, happy_llm(), tracker).run(issue)
        ticket = tracker.tickets[result.ticket.key]
        assert ticket.attachments == ["trace.txt"]
        assert "1 file(s) attached" in ticket.description


async def test_shared_executor_is_used(settings, repo):
    executor = SandboxExecutor(repo)
    workflow = InvestigationWorkflow(settings, happy_llm(), InMemoryTracker(), RecordingNotifier(), executor=executor)
    assert workflow.agent_names == ["rca_agent", "test_case_agent"]
