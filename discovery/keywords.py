"""Keyword extraction — deterministic search terms from an issue description.

Turns free text like "The login button is broken on Safari" into the
ordered keyword list ["login", "button", "broken", "safari"] that relevant-
file discovery greps for.

No LLM involved. Same input always produces the same output.
"""

import re

MIN_KEYWORD_LENGTH = 3

# Common English function words plus filler that shows up in almost every
# issue report without saying anything about the code.
STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
    "is", "are", "was", "were", "be", "been", "being", "have", "has", "had", "do", "does", "did",
    "will", "would", "should", "could", "may", "might", "must", "can",
    "this", "that", "these", "those", "i", "you", "he", "she", "it", "we", "they",
    "not", "no", "when", "where", "what", "which", "who", "how", "why",
    "issue", "problem", "error", "bug", "fix", "create", "ticket",
})

_NON_WORD = re.compile(r"[^\w\s]")


def extract_keywords(text: str | None) -> list[str]:
    """Extract deduplicated search keywords from an issue description.

    Steps: lower-case, replace punctuation with spaces, split on whitespace,
    drop tokens shorter than three characters and stop words, then dedupe
    keeping the first occurrence.

    Args:
        text: Free-text issue description. None or empty yields [].

    Returns:
        Keywords in order of first appearance.
    """
    if not text:
        return []

    words = _NON_WORD.sub(" ", text.lower()).split()
    kept = (w for w in words if len(w) >= MIN_KEYWORD_LENGTH and w not in STOP_WORDS)
    return list(dict.fromkeys(kept))
