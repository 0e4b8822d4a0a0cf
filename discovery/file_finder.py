"""Relevant-file finder — seeds the agent prompt with plausible files.

This is the only class the workflow calls for discovery. It:
1. Checks the repository checkout exists and is not empty
2. Extracts keywords from the issue description
3. Enumerates allow-listed source/config files through the sandbox shell
4. Greps each candidate for each keyword (literal, case-sensitive)
5. Returns the union of matches in discovery order, capped

The filter is recall-biased on purpose: a false positive costs the agent
one read, a false negative can cost the whole investigation. The candidate
and keyword caps only bound wall-clock cost on large repositories.
"""

import logging
import shlex

from core.executor import SandboxExecutor
from discovery.keywords import extract_keywords

logger = logging.getLogger(__name__)

CODE_EXTENSIONS = (
    ".js", ".jsx", ".ts", ".tsx", ".py", ".java", ".cpp", ".c", ".h",
    ".go", ".rs", ".rb", ".php", ".swift", ".kt", ".scala", ".sh",
    ".yaml", ".yml", ".json", ".xml", ".html", ".css", ".scss",
    ".vue", ".svelte", ".dart", ".lua", ".sql", ".md",
)

EXCLUDED_DIRS = ("node_modules", ".git", "dist", "build", ".next", ".cache")

# Enumerating files with `find` can take a while on a large checkout.
ENUMERATION_TIMEOUT_SECONDS = 30.0


class RepositoryNotFoundError(Exception):
    """Raised when the sandbox root is missing or empty."""


class RelevantFileFinder:
    """Finds files whose contents mention keywords from an issue.

    Attributes:
        executor: Sandbox used for every filesystem and shell operation.
        max_files: Cap on the returned list.
        max_candidates: Cap on files grepped per keyword.
        max_keywords: Cap on keywords searched.
        grep_timeout_seconds: Per-file deadline for each containment check.
    """

    def __init__(
        self,
        executor: SandboxExecutor,
        max_files: int = 50,
        max_candidates: int = 100,
        max_keywords: int = 10,
        grep_timeout_seconds: float = 2.0,
    ) -> None:
        self.executor = executor
        self.max_files = max_files
        self.max_candidates = max_candidates
        self.max_keywords = max_keywords
        self.grep_timeout_seconds = grep_timeout_seconds

    async def find(self, issue_description: str, workflow_id: str = "unknown") -> list[str]:
        """Return repository-relative paths likely related to the issue.

        With no usable keywords this falls back to the first allow-listed
        files (unranked). Otherwise it returns every candidate that
        literally contains at least one keyword, in keyword-then-candidate
        order. No ranking by match count.

        Args:
            issue_description: Free-text issue description.
            workflow_id: Prefix for log lines.

        Returns:
            At most max_files relative paths.

        Raises:
            RepositoryNotFoundError: If the sandbox root does not exist or
                has no entries.
        """
        self._check_repository(workflow_id)

        keywords = extract_keywords(issue_description)[: self.max_keywords]
        logger.info("[%s] Extracted keywords: %s", workflow_id, ", ".join(keywords) or "(none)")

        if not keywords:
            files = await self._enumerate(self.max_files, workflow_id)
            logger.info("[%s] No keywords found, using first %d code files.", workflow_id, len(files))
            return files

        candidates = await self._enumerate(self.max_candidates, workflow_id)
        if not candidates:
            logger.warning("[%s] No code files found in repository.", workflow_id)
            return []

        relevant: dict[str, None] = {}
        for keyword in keywords:
            matches = [path for path in candidates if await self._contains(path, keyword)]
            relevant.update(dict.fromkeys(matches))
            logger.debug(
                "[%s] Keyword %r found in %d files: %s",
                workflow_id,
                keyword,
                len(matches),
                ", ".join(matches[:10]),
            )

        files = list(relevant)[: self.max_files]
        logger.info(
            "[%s] Relevant files found: %d (returning %d).",
            workflow_id,
            len(relevant),
            len(files),
        )
        return files

    # ── Private helpers ───────────────────────────────────────────────────────

    def _check_repository(self, workflow_id: str) -> None:
        """Fail fast if there is nothing to search."""
        root = self.executor.root
        if not root.is_dir():
            logger.error("[%s] Repository does not exist at %s.", workflow_id, root)
            raise RepositoryNotFoundError(f"Repository not found at {root}")
        if not any(root.iterdir()):
            logger.error("[%s] Repository at %s is empty.", workflow_id, root)
            raise RepositoryNotFoundError(f"Repository at {root} appears to be empty")

    async def _enumerate(self, limit: int, workflow_id: str) -> list[str]:
        """List allow-listed files under the root, sorted, first `limit`."""
        result = await self.executor.run(find_command(limit), timeout_seconds=ENUMERATION_TIMEOUT_SECONDS)
        if not result.succeeded:
            logger.warning("[%s] Error finding files: %s", workflow_id, result.stderr.strip())
            return []
        return [_strip_dot(line) for line in result.stdout.splitlines() if line.strip()]

    async def _contains(self, path: str, keyword: str) -> bool:
        """Literal, case-sensitive containment test for one file."""
        command = f"grep -F -q -e {shlex.quote(keyword)} -- {shlex.quote(path)}"
        result = await self.executor.run(command, timeout_seconds=self.grep_timeout_seconds)
        return result.succeeded


def find_command(limit: int) -> str:
    """Build the `find` pipeline that enumerates allow-listed files."""
    names = " -o ".join(f"-name '*{ext}'" for ext in CODE_EXTENSIONS)
    excludes = " ".join(f"! -path '*/{d}/*'" for d in EXCLUDED_DIRS)
    return f"find . -type f \\( {names} \\) {excludes} 2>/dev/null | sort | head -n {int(limit)}"


def _strip_dot(line: str) -> str:
    line = line.strip()
    return line[2:] if line.startswith("./") else line
