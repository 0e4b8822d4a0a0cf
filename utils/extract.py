"""Best-effort structured extraction from free text.

When a model answers in prose instead of calling its finish tool, the agent
loop still needs a structured result. Everything that reads labelled
Markdown sections out of model text lives here, behind a small set of total
functions: given arbitrary text they never raise. They return either a
fully populated value, None (nothing usable found), or — for fallback_rca —
a result explicitly flagged incomplete=True.

Recognised labels are second-level Markdown headings:

    ## Summary
    ...
    ## Root Cause
    ...
"""

import re

from core.memory import Conversation
from schemas.result import RCAResult

FIELD_CAP = 500
TOOL_STEPS_SHOWN = 10
DETAIL_TAIL_MESSAGES = 5

RCA_SECTIONS = {
    "summary": "Summary",
    "root_cause": "Root Cause",
    "recommended_fix": "Recommended Fix",
}

FALLBACK_SUMMARY = "Investigation reached maximum iterations. Based on the analysis performed:"
FALLBACK_ROOT_CAUSE = (
    "Root cause analysis incomplete. The investigation examined multiple aspects of the "
    "codebase but did not converge on a definitive root cause within the iteration limit."
)
FALLBACK_FIX = (
    "Further investigation recommended. Review the investigation details and consider:\n"
    "- Extending the analysis with more specific search terms\n"
    "- Manual code review of the identified areas\n"
    "- Additional logging or debugging"
)
FALLBACK_NOTE = "**Note:** This RCA was incomplete due to reaching the maximum iteration limit."

# A heading line with exactly two hashes ends the current section.
_SECTION_END = r"(?=^##(?!#)|\Z)"


def extract_section(text: str | None, header: str) -> str | None:
    """Return the body of the `## <header>` section, or None.

    The body runs until the next `##` heading or the end of the text.
    Deeper headings (`###`) stay inside the section. Matching is
    case-insensitive. An empty body counts as absent.
    """
    if not text:
        return None
    pattern = rf"^##(?!#)[ \t]*{re.escape(header)}[ \t]*:?[ \t]*\n(.*?){_SECTION_END}"
    match = re.search(pattern, text, re.IGNORECASE | re.MULTILINE | re.DOTALL)
    if not match:
        return None
    body = match.group(1).strip()
    return body or None


def extract_sections(text: str | None, headers: dict[str, str]) -> dict[str, str] | None:
    """Return every requested section, or None if any one is missing.

    Args:
        text: Arbitrary model text.
        headers: Mapping of result key to heading label,
            e.g. {"summary": "Summary"}.

    Returns:
        {key: body} for all keys, or None.
    """
    found = {key: extract_section(text, label) for key, label in headers.items()}
    if any(body is None for body in found.values()):
        return None
    return found


def extract_labelled(text: str | None, label: str, cap: int = FIELD_CAP) -> str | None:
    """Looser extraction: a `## <label>` section or a `<label> ...:` phrase.

    Only the first paragraph after the label is taken, cut to `cap`
    characters.
    """
    if not text:
        return None
    escaped = re.escape(label)
    pattern = (
        rf"(?:^##(?!#)[ \t]*{escaped}[^\n]*\n|{escaped}[^\n:]*:)[ \t]*\n?"
        rf"(.*?)(?=^##(?!#)|\n[ \t]*\n|\Z)"
    )
    match = re.search(pattern, text, re.IGNORECASE | re.MULTILINE | re.DOTALL)
    if not match:
        return None
    body = match.group(1).strip()[:cap].strip()
    return body or None


def rca_from_text(text: str | None, iterations: int = 0) -> RCAResult | None:
    """Build a complete RCAResult from labelled sections, or return None.

    All three of Summary, Root Cause and Recommended Fix must be present.
    The whole text is kept as analysis_details.
    """
    sections = extract_sections(text, RCA_SECTIONS)
    if sections is None:
        return None
    return RCAResult(
        summary=sections["summary"],
        root_cause=sections["root_cause"],
        recommended_fix=sections["recommended_fix"],
        analysis_details=text.strip(),
        iterations=iterations,
    )


def fallback_rca(conversation: Conversation, iterations: int = 0) -> RCAResult:
    """Synthesise a best-effort RCAResult from an exhausted conversation.

    Never raises. The result always has incomplete=True and four non-empty
    narrative fields, even if the model never wrote any free text.

    - summary: the `## Summary` section from all assistant text, else a
      fixed sentence listing the tools the run invoked (first ten).
    - root_cause / recommended_fix: labelled section or colon phrase,
      capped at 500 characters, else placeholder text.
    - analysis_details: an incomplete-run note plus the assistant text
      among the last few messages, each capped at 500 characters.
    """
    transcript = "\n\n".join(conversation.assistant_texts())

    summary = extract_section(transcript, RCA_SECTIONS["summary"])
    if summary is None:
        summary = FALLBACK_SUMMARY + _steps_taken(conversation.tool_names())

    root_cause = extract_labelled(transcript, "Root Cause") or FALLBACK_ROOT_CAUSE
    recommended_fix = extract_labelled(transcript, "Recommended Fix") or FALLBACK_FIX

    details = FALLBACK_NOTE + "\n\n**Investigation Context:**\n"
    recent = [
        m.content[:FIELD_CAP]
        for m in conversation.tail(DETAIL_TAIL_MESSAGES)
        if getattr(m, "role", None) == "assistant" and m.content and m.content.strip()
    ]
    if recent:
        details += "\n\n---\n\n".join(recent)
    else:
        details += "No assistant commentary was recorded during the investigation."

    return RCAResult(
        summary=summary,
        root_cause=root_cause,
        recommended_fix=recommended_fix,
        analysis_details=details,
        incomplete=True,
        iterations=iterations,
    )


def parse_test_cases_markdown(text: str | None) -> list[dict]:
    """Parse numbered `### N. Title` blocks into raw test-case dicts.

    Missing fields get the same defaults the structured path uses
    (type "unit", priority "medium", the title as description). Never raises.
    """
    if not text:
        return []

    cases = []
    blocks = re.finditer(
        r"^#{2,3}[ \t]*\d+\.[ \t]*(.+?)(?=^#{2,3}[ \t]*\d+\.|^##(?!#)|\Z)",
        text,
        re.MULTILINE | re.DOTALL,
    )
    for block in blocks:
        body = block.group(1).strip()
        title = body.splitlines()[0].strip() if body else ""
        if not title:
            continue
        cases.append({
            "title": title,
            "type": _field(body, "Type") or "unit",
            "target": _field(body, "Target") or "Unknown",
            "description": _field(body, "Description") or title,
            "test_steps": _steps(body),
            "expected_result": _field(body, "Expected Result") or "",
            "priority": _field(body, "Priority") or "medium",
            "related_files": [],
        })
    return cases


# ── Private helpers ────────────────────────────────────────────────────────────

def _steps_taken(tool_names: list[str]) -> str:
    if not tool_names:
        return ""
    shown = tool_names[:TOOL_STEPS_SHOWN]
    lines = "\n".join(f"{i}. {name}" for i, name in enumerate(shown, start=1))
    text = f"\n\n**Investigation Steps Taken:**\n{lines}"
    if len(tool_names) > TOOL_STEPS_SHOWN:
        text += f"\n... and {len(tool_names) - TOOL_STEPS_SHOWN} more steps"
    return text


def _field(body: str, label: str) -> str | None:
    match = re.search(rf"\*\*{re.escape(label)}:\*\*[ \t]*(.+?)[ \t]*$", body, re.MULTILINE)
    return match.group(1).strip() if match else None


def _steps(body: str) -> list[str]:
    """Numbered lines after a **Test Steps:** label."""
    match = re.search(r"\*\*Test Steps:\*\*[ \t]*\n((?:[ \t]*\d+\.[^\n]*\n?)+)", body)
    if not match:
        return []
    return [
        re.sub(r"^\s*\d+\.\s*", "", line).strip()
        for line in match.group(1).splitlines()
        if line.strip()
    ]
