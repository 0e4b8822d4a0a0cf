"""Markdown rendering of terminal results.

These are the comment bodies the workflow posts to the issue tracker and
the text the CLI prints. Rendering lives here, not on the result models,
so the models stay plain data.
"""

from schemas.result import RCAResult, TestCaseReport

INCOMPLETE_BANNER = (
    "> **⚠️ Incomplete Analysis**\n"
    "> This RCA analysis reached the maximum iteration limit ({iterations} iterations) "
    "and may be incomplete. The findings below represent the best plausible analysis "
    "based on the investigation performed so far.\n\n"
)


def render_rca_markdown(rca: RCAResult) -> str:
    """Render an RCAResult as a ticket comment, with a banner if incomplete."""
    banner = INCOMPLETE_BANNER.format(iterations=rca.iterations) if rca.incomplete else ""
    text = (
        f"{banner}## Automated RCA Analysis\n\n{rca.summary}\n\n"
        f"### Root Cause\n\n{rca.root_cause}\n\n"
        f"### Recommended Fix\n\n{rca.recommended_fix}"
    )
    if rca.analysis_details:
        text += f"\n\n### Analysis Details\n\n{rca.analysis_details}"
    return text


def render_rca_failure(message: str) -> str:
    return f"RCA Analysis Failed: {message}"


def render_test_cases_markdown(report: TestCaseReport) -> str:
    """Render a TestCaseReport as numbered `### N. Title` blocks."""
    lines = [
        f"## Test Cases Summary\n\n{report.summary}\n",
        f"## Test Coverage\n\n{report.test_coverage}\n",
        "## Generated Test Cases\n",
    ]
    for index, case in enumerate(report.test_cases, start=1):
        lines.append(f"### {index}. {case.title}\n")
        lines.append(f"**Type:** {case.type.value}")
        lines.append(f"**Target:** {case.target}")
        lines.append(f"**Priority:** {case.priority.value}")
        lines.append(f"**Description:** {case.description}\n")
        if case.test_steps:
            lines.append("**Test Steps:**")
            lines.extend(f"{n}. {step}" for n, step in enumerate(case.test_steps, start=1))
            lines.append("")
        lines.append(f"**Expected Result:** {case.expected_result}\n")
        if case.related_files:
            lines.append(f"**Related Files:** {', '.join(case.related_files)}\n")
        lines.append("---\n")
    return "\n".join(lines)
