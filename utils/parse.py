"""Tool-argument parser utility.

The agent loop uses this to turn the raw argument string of a model-proposed
tool call into a dict. Handles the common failure modes:
- Arguments wrapped in markdown code blocks (```json ... ```)
- Commentary before or after the JSON object
- An empty string where "{}" was meant
"""

import json
import re


class ToolArgumentsError(Exception):
    """Raised when tool-call arguments cannot be parsed into a JSON object.

    Includes the raw arguments so callers can log them for debugging without
    having to catch and re-wrap the original exception themselves.
    """

    def __init__(self, message: str, raw: str):
        super().__init__(message)
        self.raw = raw


def parse_tool_arguments(raw: str | None) -> dict:
    """Parse a tool call's argument string into a dict.

    Tries three extraction strategies in order, stopping at the first that
    produces a JSON object:
        1. Parse the string directly (the normal case).
        2. Strip markdown code fences and parse the remainder.
        3. Extract the first {...} block via regex (handles commentary).

    Args:
        raw: Argument string exactly as the model produced it.

    Returns:
        The parsed arguments. Empty or whitespace-only input yields {}.

    Raises:
        ToolArgumentsError: If no JSON object can be recovered. The .raw
            attribute contains the original string.
    """
    if raw is None or not raw.strip():
        return {}

    data = _try_parse(raw)
    if data is None:
        cleaned = _strip_code_fences(raw)
        data = _try_parse(cleaned)
        if data is None:
            data = _extract_json_object(cleaned)
    if data is None:
        raise ToolArgumentsError("Tool arguments are not a valid JSON object", raw=raw)
    return data


# ── Private helpers ────────────────────────────────────────────────────────────

def _strip_code_fences(text: str) -> str:
    """Remove ```json ... ``` or ``` ... ``` wrappers."""
    text = re.sub(r"```(?:json)?\s*", "", text)
    text = re.sub(r"```", "", text)
    return text.strip()


def _try_parse(text: str) -> dict | None:
    """Attempt a direct json.loads(); return None on failure."""
    try:
        result = json.loads(text)
        return result if isinstance(result, dict) else None
    except json.JSONDecodeError:
        return None


def _extract_json_object(text: str) -> dict | None:
    """Find the first {...} block in text and parse it."""
    match = re.search(r"\{.*\}", text, re.DOTALL)
    if not match:
        return None
    return _try_parse(match.group(0))
