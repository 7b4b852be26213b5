"""Prompt templates and command parsing for the pull-request edit bot."""

from __future__ import annotations

import re

COMMAND_PREFIX = "/gpt"

_COMMAND_RE = re.compile(r"^\s*/gpt(?:\s+|$)", re.IGNORECASE)

JSON_RESPONSE_INSTRUCTION = "Return ONLY JSON."


def extract_task(comment: str | None) -> str:
    """Strip the ``/gpt`` command prefix from a comment and return the task.

    Comments that do not start with the command are returned trimmed, matching
    workflows that already filter on the prefix before invoking the bot.
    """
    text = comment or ""
    return _COMMAND_RE.sub("", text, count=1).strip()


def render_system_prompt(*, max_files: int, max_lines: int) -> str:
    """Render the editing rules given to the model as the system message."""
    return (
        'You are a careful repo editor. Output STRICT JSON with a "changes" array.\n'
        "Each change is:\n"
        '{ "path": "<relative path>", "operation": "append|replace|create",\n'
        '  "find": "<exact text to replace (for replace)>",\n'
        '  "content": "<text to insert/append or replacement>",\n'
        '  "why": "<1 sentence rationale>" }\n'
        "Rules:\n"
        f"- Edit max {max_files} files, max {max_lines} lines total.\n"
        "- Never touch lockfiles or secrets.\n"
        "- Be surgical; small diffs."
    )


def render_user_prompt(task: str, *, actor: str, context: str) -> str:
    """Render the task and sampled repository context as the user message."""
    return (
        f"Task from @{actor}: {task}\n\n"
        "Repository context (partial):\n"
        f"{context}\n\n"
        f"{JSON_RESPONSE_INSTRUCTION}"
    )


__all__ = [
    "COMMAND_PREFIX",
    "JSON_RESPONSE_INSTRUCTION",
    "extract_task",
    "render_system_prompt",
    "render_user_prompt",
]
