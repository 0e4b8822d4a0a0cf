"""RCA Agent — investigates the repository and explains why an issue happens."""

import asyncio
import logging
import pathlib
from typing import Any

from agents.base import FinishRejected, InvestigationContext, LoopState, ToolCallingAgent
from core.config import Settings
from core.executor import SandboxExecutor
from judge.judge import JudgeLayer
from llm.base import LLMClient
from schemas.result import RCAResult
from schemas.tools import finish_tool
from utils.extract import RCA_SECTIONS, fallback_rca, rca_from_text

logger = logging.getLogger(__name__)

_PROMPT_FILE = pathlib.Path(__file__).parent.parent / "prompts" / "rca_agent.txt"
_FILES_IN_PROMPT = 10

RCA_FINISH_TOOL = finish_tool(
    "Submit the final RCA report with markdown formatting.",
    {
        "summary": {
            "type": "string",
            "description": "Brief summary of the issue. Use **bold** for key terms and `backticks` for code.",
        },
        "root_cause": {
            "type": "string",
            "description": (
                "Root cause explanation with file locations. Use **bold**, `backticks` "
                "for files, and ```code blocks."
            ),
        },
        "recommended_fix": {
            "type": "string",
            "description": "Recommended solutions with code examples in ```code blocks.",
        },
        "analysis_details": {
            "type": "string",
            "description": "Optional additional technical details.",
        },
    },
    ["summary", "root_cause", "recommended_fix"],
)


class RCAAgent(ToolCallingAgent[RCAResult]):
    """Explores the repository until it can name a root cause and a fix.

    Never fails for lack of budget: when the iteration budget runs out, a
    best-effort result is synthesised from the conversation and flagged
    incomplete=True.
    """

    name = "rca_agent"
    finish_tool = RCA_FINISH_TOOL
    required_sections = tuple(RCA_SECTIONS.values())

    def __init__(self, llm: LLMClient, executor: SandboxExecutor, settings: Settings) -> None:
        super().__init__(llm, executor, settings, max_iterations=settings.rca_max_iterations)
        self._prompt_template = _PROMPT_FILE.read_text()
        self._judge = JudgeLayer()

    async def investigate(
        self,
        context: InvestigationContext,
        event_queue: asyncio.Queue | None = None,
    ) -> RCAResult:
        """Run the investigation and return a root-cause analysis.

        Raises:
            CompletionError: If the completion service fails.
        """
        logger.info(
            "[%s] Starting RCA investigation. Relevant files: %d. Repository: %s",
            context.workflow_id,
            len(context.relevant_files),
            context.repo_path,
        )
        outcome = await self.run_loop(self.build_prompt(context), context.workflow_id, event_queue)

        if outcome.state is LoopState.TERMINATED_EXHAUSTED:
            logger.warning(
                "[%s] Max iterations reached, generating best plausible RCA from investigation so far.",
                context.workflow_id,
            )
            return fallback_rca(outcome.conversation, iterations=outcome.iterations)

        return outcome.result.model_copy(update={"iterations": outcome.iterations})

    def build_prompt(self, context: InvestigationContext) -> str:
        shown = ", ".join(context.relevant_files[:_FILES_IN_PROMPT])
        if len(context.relevant_files) > _FILES_IN_PROMPT:
            shown += "..."
        return self._prompt_template.format(
            issue=context.issue_description,
            repository=context.repository,
            relevant_files=shown or "(none found)",
            max_iterations=self.max_iterations,
        )

    def validate_finish(self, payload: dict[str, Any]) -> RCAResult:
        verdict = self._judge.validate_rca(payload)
        if not verdict.valid:
            raise FinishRejected(verdict.rejection_reason)
        return RCAResult(**verdict.payload)

    def result_from_text(self, text: str) -> RCAResult | None:
        return rca_from_text(text)
