from __future__ import annotations

import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from prbot.tools.github import ChangeRequest  # noqa: E402


@dataclass(slots=True)
class StaticPlanSource:
    """Inference collaborator that replays a fixed model response."""

    response: str
    calls: list[dict[str, str]] = field(default_factory=list)

    def propose_plan(self, task: str, *, actor: str, context: str) -> str:
        self.calls.append({"task": task, "actor": actor, "context": context})
        return self.response


@dataclass(slots=True)
class RecordingVersionControl:
    """Version-control collaborator that records every call."""

    number: int = 42
    fail_on: str | None = None
    calls: list[tuple[str, Any]] = field(default_factory=list)

    def _record(self, name: str, payload: Any) -> None:
        self.calls.append((name, payload))
        if self.fail_on == name:
            from prbot.tools.vcs import GitError

            raise GitError(f"{name} exploded")

    def create_branch(self, name: str) -> None:
        self._record("create_branch", name)

    def commit_all(self, message: str) -> str:
        self._record("commit_all", message)
        return "f" * 40

    def push(self, branch: str) -> None:
        self._record("push", branch)

    def open_change_request(self, *, head: str, base: str, title: str, body: str) -> ChangeRequest:
        self._record("open_change_request", {"head": head, "base": base, "title": title, "body": body})
        return ChangeRequest(number=self.number, url=f"https://example.test/pull/{self.number}")

    def post_comment(self, conversation_id: int, body: str) -> None:
        self._record("post_comment", {"conversation_id": conversation_id, "body": body})

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def comments(self) -> list[str]:
        return [payload["body"] for name, payload in self.calls if name == "post_comment"]


@pytest.fixture()
def workspace(tmp_path: Path) -> Path:
    """A plain directory standing in for the checked-out working tree."""

    root = tmp_path / "work"
    root.mkdir()
    (root / "README.md").write_text("# Demo\n", encoding="utf-8")
    return root


@pytest.fixture()
def git_workspace(tmp_path: Path) -> Path:
    """A git repository with one committed README and a bare ``origin`` remote."""

    remote = tmp_path / "origin.git"
    root = tmp_path / "repo"
    root.mkdir()

    def run_git(cwd: Path, *cmd: str) -> None:
        subprocess.run(["git", *cmd], cwd=cwd, check=True, capture_output=True, text=True)

    run_git(tmp_path, "init", "--bare", str(remote))
    run_git(root, "init")
    run_git(root, "config", "user.email", "agent@example.com")
    run_git(root, "config", "user.name", "Test Bot")
    (root / "README.md").write_text("# Demo\n", encoding="utf-8")
    (root / "src").mkdir()
    (root / "src" / "app.py").write_text("print('hi')\n", encoding="utf-8")
    (root / "package-lock.json").write_text("{}\n", encoding="utf-8")
    run_git(root, "add", ".")
    run_git(root, "commit", "-m", "Initial commit")
    run_git(root, "remote", "add", "origin", str(remote))
    return root


@pytest.fixture()
def version_control() -> RecordingVersionControl:
    return RecordingVersionControl()


@pytest.fixture()
def plan_source():
    """Factory for inference collaborators replaying ``response``."""

    def factory(response: str) -> StaticPlanSource:
        return StaticPlanSource(response=response)

    return factory
