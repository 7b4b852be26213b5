"""Minimal git helpers.

The helpers below provide just enough structure to list tracked files, cut a
work branch, commit the working tree and push it for review.
"""

from __future__ import annotations

import subprocess
import time
from pathlib import Path
from typing import List, Sequence

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


class GitError(RuntimeError):
    """Raised when a git command fails or the repository cannot be used."""


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: List[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def work_branch_name(head_sha: str, *, prefix: str = "gpt/", now: float | None = None) -> str:
    """Return ``<prefix><sha7>-<base36 millis>`` for a fresh work branch."""
    millis = int((time.time() if now is None else now) * 1000)
    short_sha = (head_sha or "unknown")[:7]
    return f"{prefix}{short_sha}-{_to_base36(millis)}"


class GitRepository:
    """Lightweight wrapper around ``git`` commands."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()
        if not (self.root / ".git").exists():
            raise GitError(f"Not a git repository: {self.root}")

    @classmethod
    def discover(cls, start: Path | str | None = None) -> "GitRepository":
        """Locate the nearest git repository starting from ``start``."""

        path = Path(start or Path.cwd()).resolve()
        for candidate in (path, *path.parents):
            if (candidate / ".git").exists():
                return cls(candidate)
        raise GitError(f"Unable to locate a git repository from {path}")

    # ------------------------------------------------------------------ git IO
    def _run_git(self, args: Sequence[str], *, check: bool = True) -> subprocess.CompletedProcess[str]:
        command = ["git", *args]
        try:
            process = subprocess.run(
                command,
                cwd=self.root,
                capture_output=True,
                text=False,
                check=False,
            )
        except OSError as error:
            raise GitError(f"Unable to run git: {error}") from error
        stdout = process.stdout.decode("utf-8", errors="replace") if process.stdout else ""
        stderr = process.stderr.decode("utf-8", errors="replace") if process.stderr else ""
        result = subprocess.CompletedProcess(process.args, process.returncode, stdout, stderr)
        if check and result.returncode != 0:
            message = result.stderr.strip() or result.stdout.strip() or "unknown git error"
            raise GitError(f"git {' '.join(args)} failed: {message}")
        return result

    def list_tracked_paths(self) -> List[Path]:
        """Return every tracked path, relative to the repository root."""

        result = self._run_git(["ls-files", "-z"], check=False)
        if result.returncode != 0:
            message = result.stderr.strip() or result.stdout.strip() or "unable to list tracked paths"
            raise GitError(f"git ls-files failed: {message}")

        entries = [entry for entry in result.stdout.split("\0") if entry]
        return [Path(entry) for entry in entries]

    def configure_identity(self, name: str, email: str) -> None:
        """Set the committer identity used for bot commits in this repository."""

        self._run_git(["config", "user.name", name])
        self._run_git(["config", "user.email", email])

    # -------------------------------------------------------------- branches
    def create_branch(self, name: str) -> None:
        """Create ``name`` from the current ``HEAD`` and switch to it.

        Uncommitted working-tree changes are carried onto the new branch.
        """

        self._run_git(["checkout", "-b", name])

    # -------------------------------------------------------------- remotes
    def push(self, remote: str, branch: str, *, set_upstream: bool = False) -> None:
        """Push ``branch`` to ``remote``, optionally recording it as upstream."""

        args: List[str] = ["push"]
        if set_upstream:
            args.append("--set-upstream")
        args.extend([remote, branch])
        self._run_git(args, check=True)

    def commit_all(self, message: str) -> str | None:
        """Add all changes to the index and create a commit.

        Returns the new commit SHA when a commit was created.  Returns ``None`` when
        there were no changes to commit.
        """

        self._run_git(["add", "--all"], check=True)

        commit = self._run_git(["commit", "-m", message], check=False)
        if commit.returncode != 0:
            output = commit.stderr.strip() or commit.stdout.strip() or ""
            if "nothing to commit" in output.lower():
                return None
            raise GitError(f"git commit failed: {output}")

        rev = self._run_git(["rev-parse", "HEAD"], check=True)
        return rev.stdout.strip()


__all__ = ["GitError", "GitRepository", "work_branch_name"]
