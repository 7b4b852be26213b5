"""Sample a bounded slice of the repository for the planning prompt."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, List

from .vcs import GitRepository

LOGGER = logging.getLogger(__name__)

_EXCLUDED_PATH_RE = re.compile(r"(^\.|node_modules|dist|build|lock)")


def select_context_files(paths: Iterable[str], *, max_sample_files: int = 12) -> List[str]:
    """Pick the first ``max_sample_files`` paths that are worth showing the model.

    Dotfiles, vendored dependencies, build output and lockfiles are skipped.
    """
    picks = [path for path in paths if not _EXCLUDED_PATH_RE.search(path)]
    return picks[:max_sample_files]


def render_file_head(repo_root: Path, relative: str, *, head_lines: int = 30) -> str | None:
    """Return the ``--- path ---`` block for one file, or ``None`` if unreadable."""
    try:
        text = (repo_root / relative).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as error:
        LOGGER.debug("Skipping %s in context sample: %s", relative, error)
        return None
    head = "\n".join(text.split("\n")[:head_lines])
    return f"--- {relative} ---\n{head}\n"


def sample_repository_context(
    repository: GitRepository,
    *,
    max_files: int = 200,
    max_sample_files: int = 12,
    head_lines: int = 30,
) -> str:
    """Render the heads of a few tracked files as prompt context."""
    tracked = [path.as_posix() for path in repository.list_tracked_paths()][:max_files]
    blocks = [
        block
        for block in (
            render_file_head(repository.root, relative, head_lines=head_lines)
            for relative in select_context_files(tracked, max_sample_files=max_sample_files)
        )
        if block is not None
    ]
    return "\n".join(blocks)


__all__ = ["render_file_head", "sample_repository_context", "select_context_files"]
