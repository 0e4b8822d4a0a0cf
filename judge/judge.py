"""Judge layer.

The judge validates the arguments of a `finish` tool call before they are
accepted as an agent's terminal result. All checks are deterministic — same
payload always produces the same verdict. No LLM is involved, ever.

The judge reports verdicts. It does not decide what to do with them — that
is the agent loop's responsibility. A rejected payload is sent back to the
model as a failed tool result, and the run continues so the model can
correct itself.

Which fields are enforced here:
    RCA finish:        summary, root_cause, recommended_fix must be
                       non-empty strings. analysis_details defaults to "".
    Test-case finish:  test_cases must be a list. summary and
                       test_coverage default to "". Each test case needs a
                       non-empty title, type, target and description; the
                       remaining fields take their defaults.
    Text handling:     every accepted string (fields, test steps, related
                       file paths) has surrounding whitespace stripped and
                       is otherwise kept verbatim. Type and priority are
                       canonicalised to their enum values.
"""

from dataclasses import dataclass
from typing import Any

from schemas.result import Priority, TestCaseType

RCA_REQUIRED_FIELDS = ("summary", "root_cause", "recommended_fix")
TEST_CASE_REQUIRED_FIELDS = ("title", "type", "target", "description")

# Spellings models commonly use for the test-case type enum.
_TYPE_ALIASES = {
    "unit_test": TestCaseType.UNIT,
    "integration_test": TestCaseType.INTEGRATION,
    "controller_test": TestCaseType.CONTROLLER,
    "job_test": TestCaseType.JOB,
    "workflow_test": TestCaseType.WORKFLOW,
    "e2e_test": TestCaseType.END_TO_END,
    "e2e": TestCaseType.END_TO_END,
    "end_to_end": TestCaseType.END_TO_END,
    "end-to-end_test": TestCaseType.END_TO_END,
}


@dataclass
class Verdict:
    """The judge's decision for one finish payload.

    A dataclass rather than a Pydantic model because it is an internal
    object — it never crosses a system boundary.

    Attributes:
        valid: True if the payload passed every check.
        payload: The normalised payload (defaults filled in, enums
            canonicalised). Only meaningful when valid is True.
        rejection_reason: Human-readable description of the first check
            that failed. None if valid is True.
    """

    valid: bool
    payload: dict[str, Any]
    rejection_reason: str | None = None


class JudgeLayer:
    """Validates finish payloads for both agents.

    Fails fast — the first failing check produces a rejection immediately
    without running the rest. Stateless.
    """

    def validate_rca(self, payload: dict[str, Any]) -> Verdict:
        """Check an RCA finish payload."""
        for field in RCA_REQUIRED_FIELDS:
            reason = _required_text(payload, field)
            if reason:
                return Verdict(valid=False, payload=payload, rejection_reason=reason)

        details = payload.get("analysis_details") or ""
        if not isinstance(details, str):
            return Verdict(
                valid=False,
                payload=payload,
                rejection_reason="Field 'analysis_details' must be a string.",
            )

        return Verdict(valid=True, payload={
            "summary": payload["summary"].strip(),
            "root_cause": payload["root_cause"].strip(),
            "recommended_fix": payload["recommended_fix"].strip(),
            "analysis_details": details.strip(),
        })

    def validate_test_cases(self, payload: dict[str, Any]) -> Verdict:
        """Check a test-case finish payload."""
        cases = payload.get("test_cases")
        if not isinstance(cases, list):
            return Verdict(
                valid=False,
                payload=payload,
                rejection_reason="Field 'test_cases' is required and must be an array.",
            )

        for name in ("summary", "test_coverage"):
            if not isinstance(payload.get(name) or "", str):
                return Verdict(valid=False, payload=payload, rejection_reason=f"Field '{name}' must be a string.")

        normalised = []
        for index, case in enumerate(cases, start=1):
            if not isinstance(case, dict):
                return Verdict(
                    valid=False,
                    payload=payload,
                    rejection_reason=f"Test case {index} must be an object.",
                )
            normalised_case, reason = self._normalise_case(case)
            if reason:
                return Verdict(
                    valid=False,
                    payload=payload,
                    rejection_reason=f"Test case {index}: {reason}",
                )
            normalised.append(normalised_case)

        return Verdict(valid=True, payload={
            "test_cases": normalised,
            "summary": (payload.get("summary") or "").strip(),
            "test_coverage": (payload.get("test_coverage") or "").strip(),
        })

    # ── Private helpers ───────────────────────────────────────────────────────

    def _normalise_case(self, case: dict[str, Any]) -> tuple[dict[str, Any], str | None]:
        for field in TEST_CASE_REQUIRED_FIELDS:
            reason = _required_text(case, field)
            if reason:
                return case, reason

        case_type = normalise_type(case["type"])
        if case_type is None:
            allowed = ", ".join(t.value for t in TestCaseType)
            return case, f"unknown type '{case['type']}' (expected one of: {allowed})."

        priority = normalise_priority(case.get("priority") or Priority.MEDIUM.value)
        if priority is None:
            allowed = ", ".join(p.value for p in Priority)
            return case, f"unknown priority '{case.get('priority')}' (expected one of: {allowed})."

        steps = case.get("test_steps") or []
        files = case.get("related_files") or []
        if not isinstance(steps, list) or not isinstance(files, list):
            return case, "'test_steps' and 'related_files' must be arrays."

        return {
            "title": case["title"].strip(),
            "type": case_type,
            "target": case["target"].strip(),
            "description": case["description"].strip(),
            "test_steps": [str(step).strip() for step in steps],
            "expected_result": str(case.get("expected_result") or "").strip(),
            "priority": priority,
            "related_files": [str(path).strip() for path in files],
        }, None


def normalise_type(value: Any) -> TestCaseType | None:
    """Map a model-supplied test type onto TestCaseType, or None."""
    if not isinstance(value, str):
        return None
    key = value.strip().lower().replace(" ", "_")
    if key in _TYPE_ALIASES:
        return _TYPE_ALIASES[key]
    try:
        return TestCaseType(key.replace("_", "-"))
    except ValueError:
        return None


def normalise_priority(value: Any) -> Priority | None:
    """Map a model-supplied priority onto Priority, or None."""
    if not isinstance(value, str):
        return None
    try:
        return Priority(value.strip().lower())
    except ValueError:
        return None


def _required_text(payload: dict[str, Any], field: str) -> str | None:
    value = payload.get(field)
    if not isinstance(value, str) or not value.strip():
        return f"Field '{field}' is required and must be a non-empty string."
    return None
