"""Result schemas.

Defines the terminal results of the two agents (RCAResult, TestCaseReport)
and the record type for a single generated test case. These are the only
objects the workflow hands to the consuming collaborator — rendering them
into a ticket comment is the consumer's job (see display/markdown.py for
the default Markdown rendering).

All result models are frozen: once an agent produces one it is never
modified downstream.
"""

from enum import Enum

from pydantic import BaseModel, Field


class TestCaseType(str, Enum):
    """Kind of test a generated test case describes.

    Extends str so values serialize to plain strings ("unit", "end-to-end").
    """

    __test__ = False

    UNIT = "unit"
    INTEGRATION = "integration"
    CONTROLLER = "controller"
    JOB = "job"
    WORKFLOW = "workflow"
    END_TO_END = "end-to-end"


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TestCase(BaseModel):
    """One structured test case proposed by the test-case agent.

    No uniqueness constraint applies across test cases — two cases with the
    same title are both kept.

    Attributes:
        title: Short name of the test case.
        type: Kind of test (unit, integration, ...).
        target: What is under test (e.g. "UserController#login").
        description: What the test validates.
        test_steps: Ordered steps or assertions. Order is preserved exactly
            as the model supplied it.
        expected_result: Expected outcome.
        priority: critical / high / medium / low.
        related_files: Repository paths the test case touches. Optional.
    """

    __test__ = False  # keep pytest from collecting this as a test class

    model_config = {"frozen": True}

    title: str
    type: TestCaseType
    target: str
    description: str
    test_steps: list[str] = Field(default_factory=list)
    expected_result: str = ""
    priority: Priority = Priority.MEDIUM
    related_files: list[str] = Field(default_factory=list)


class RCAResult(BaseModel):
    """Terminal result of the root-cause-analysis agent.

    Attributes:
        summary: Two or three sentence summary of the issue.
        root_cause: Root cause explanation with file locations.
        recommended_fix: Recommended changes, with code examples.
        analysis_details: Optional extra detail. For incomplete results this
            carries the tail of the model's reasoning for human audit.
        incomplete: True when the agent ran out of iterations and this
            result was synthesised from the conversation instead of
            submitted through the finish tool.
        iterations: Completion round trips the run used.
    """

    model_config = {"frozen": True}

    summary: str
    root_cause: str
    recommended_fix: str
    analysis_details: str = ""
    incomplete: bool = False
    iterations: int = Field(default=0, ge=0)


class TestCaseReport(BaseModel):
    """Terminal result of the test-case agent.

    Attributes:
        test_cases: Generated test cases in the order the model listed them.
        summary: Brief summary of what was generated.
        test_coverage: Which areas the test cases cover.
        iterations: Completion round trips the run used.
    """

    __test__ = False

    model_config = {"frozen": True}

    test_cases: list[TestCase]
    summary: str = ""
    test_coverage: str = ""
    iterations: int = Field(default=0, ge=0)
