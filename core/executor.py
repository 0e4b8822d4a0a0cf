"""Sandboxed tool executor.

SandboxExecutor is the only way the agents touch the filesystem or a shell.
It exposes three primitives — read a file, list a directory, run a shell
command — and confines file access to one configured root directory.

The key guarantees:
- read() and list() never touch a path that resolves outside the root.
- run() never raises for a failing or hanging command. Nonzero exit and
  timeout both come back as succeeded=False so the calling agent can see
  the failure and adapt.
"""

import asyncio
import logging
import os
import pathlib
import signal
import time
from dataclasses import dataclass
from typing import Literal

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class SandboxError(Exception):
    """Base class for failures of a sandboxed file operation."""


class OutOfSandboxError(SandboxError):
    """Raised when a path resolves outside the sandbox root."""


class NotFoundError(SandboxError):
    """Raised when a path inside the sandbox does not exist."""


class InvalidPathError(SandboxError):
    """Raised when a path cannot be resolved at all (e.g. an embedded NUL)."""


@dataclass(frozen=True)
class DirectoryEntry:
    """One item returned by SandboxExecutor.list().

    Attributes:
        name: Entry name without any directory part.
        kind: "file" or "directory".
        path: Path relative to the sandbox root, POSIX separators.
    """

    name: str
    kind: Literal["file", "directory"]
    path: str


@dataclass(frozen=True)
class CommandResult:
    """Outcome of SandboxExecutor.run().

    Attributes:
        stdout: Captured standard output (empty on timeout).
        stderr: Captured standard error, or a timeout/launch message.
        succeeded: True only when the command exited with status 0
            before the deadline.
    """

    stdout: str
    stderr: str
    succeeded: bool


class SandboxExecutor:
    """Runs file and shell operations confined to a single root directory.

    The root is canonicalised once at construction. Every read() and list()
    resolves its argument (relative paths are joined to the root, symlinks
    are followed) and refuses anything that does not land on the root or
    below it.

    run() is not path-sandboxed: the command string is passed to the shell
    as-is with the root as its working directory. Callers are trusted to
    issue read-only commands.

    Attributes:
        root: Canonical absolute path of the sandbox root.
    """

    def __init__(self, root: str | os.PathLike) -> None:
        """Initialise the executor.

        Args:
            root: Sandbox root directory. It does not have to exist yet —
                operations against a missing root fail with NotFoundError.
        """
        self.root = pathlib.Path(root).resolve()

    # ── Path confinement ──────────────────────────────────────────────────────

    def resolve(self, path: str | os.PathLike) -> pathlib.Path:
        """Resolve a path against the root and enforce confinement.

        Args:
            path: Relative (to the root) or absolute path.

        Returns:
            The canonical absolute path.

        Raises:
            OutOfSandboxError: If the canonical path is not the root or a
                descendant of it.
            InvalidPathError: If the path cannot be resolved.
        """
        try:
            resolved = (self.root / path).resolve()
        except ValueError as exc:
            raise InvalidPathError(f"Invalid path {str(path)!r}: {exc}") from exc
        if not self.contains(resolved):
            raise OutOfSandboxError(f"Path outside repository: {path}")
        return resolved

    def contains(self, resolved: pathlib.Path) -> bool:
        """Return True if an already-canonical path is the root or below it."""
        root = str(self.root)
        candidate = str(resolved)
        # Compare against root + separator so "/repo2" is not inside "/repo".
        return candidate == root or candidate.startswith(root.rstrip(os.sep) + os.sep)

    def relative(self, resolved: pathlib.Path) -> str:
        """Return a canonical path relative to the root, POSIX style."""
        return resolved.relative_to(self.root).as_posix()

    # ── Primitives ────────────────────────────────────────────────────────────

    async def read(self, path: str) -> str:
        """Return the full text of a file inside the sandbox.

        Undecodable bytes are replaced rather than failing the read. The
        content is never truncated here — truncation is a caller policy.

        Raises:
            OutOfSandboxError: If the path escapes the root.
            NotFoundError: If the file does not exist.
            OSError: If the path is a directory or cannot be read.
        """
        resolved = self.resolve(path)
        if not resolved.exists():
            raise NotFoundError(f"File not found: {path}")

        logger.debug("Reading file %s (%s).", path, resolved)
        content = await asyncio.to_thread(resolved.read_text, encoding="utf-8", errors="replace")
        logger.debug("Read %d characters from %s.", len(content), path)
        return content

    async def list(self, path: str = ".") -> list[DirectoryEntry]:
        """List a directory inside the sandbox, sorted by name.

        Raises:
            OutOfSandboxError: If the path escapes the root.
            NotFoundError: If the directory does not exist.
            OSError: If the path is not a directory or cannot be read.
        """
        resolved = self.resolve(path)
        if not resolved.exists():
            raise NotFoundError(f"Directory not found: {path}")

        children = await asyncio.to_thread(lambda: sorted(resolved.iterdir(), key=lambda p: p.name))
        entries = [
            DirectoryEntry(
                name=child.name,
                kind="directory" if child.is_dir() else "file",
                path=(resolved.relative_to(self.root) / child.name).as_posix(),
            )
            for child in children
        ]
        logger.debug("Listed %s: %d entries.", path, len(entries))
        return entries

    async def run(self, command: str, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> CommandResult:
        """Run a shell command rooted at the sandbox directory.

        The command runs in its own process group. If it is still running
        when the deadline passes, the whole group is killed and reaped so
        no orphaned children are left behind.

        This method never raises for command failure. Nonzero exit,
        timeout and launch failure all return succeeded=False with an
        explanatory stderr.

        Args:
            command: Shell command string.
            timeout_seconds: Hard wall-clock limit.

        Returns:
            A CommandResult with captured output.
        """
        start = time.perf_counter()
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                cwd=self.root,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except (OSError, ValueError) as exc:
            logger.error("Failed to launch command %r: %s", command, exc)
            return CommandResult(stdout="", stderr=str(exc), succeeded=False)

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout_seconds)
        except asyncio.TimeoutError:
            await self._kill(process)
            logger.warning(
                "Command timed out after %.1fs (limit: %gs): %s",
                time.perf_counter() - start,
                timeout_seconds,
                command,
            )
            return CommandResult(
                stdout="",
                stderr=f"Command timed out after {timeout_seconds:g}s",
                succeeded=False,
            )

        result = CommandResult(
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            succeeded=process.returncode == 0,
        )
        logger.debug(
            "Command exited %s in %.0fms (stdout %d chars, stderr %d chars): %s",
            process.returncode,
            (time.perf_counter() - start) * 1000,
            len(result.stdout),
            len(result.stderr),
            command,
        )
        return result

    # ── Private helpers ───────────────────────────────────────────────────────

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        """Kill the command's whole process group and wait for it to exit."""
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        await process.wait()
