"""Human-readable text produced for commits, pull requests and comments."""

from __future__ import annotations

import json
import re
from typing import Any, Mapping, Sequence

from .tools.apply import ApplyRecord

COMMIT_SUBJECT_LIMIT = 72
TITLE_LIMIT = 60
TITLE_PREFIX = "gpt: "

EMPTY_PLAN_COMMENT = "No safe changes proposed. (Ambiguous or no-op.)"
NO_APPLICABLE_EDITS_COMMENT = "Plan produced no applicable edits."


def truncate(text: str, limit: int) -> str:
    """Clip ``text`` to ``limit`` characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[: max(limit - 1, 0)] + "…"


def render_commit_message(task: str) -> str:
    return f"{TITLE_PREFIX}{truncate(task, COMMIT_SUBJECT_LIMIT)}"


def render_change_request_title(task: str) -> str:
    return f"{TITLE_PREFIX}{truncate(task, TITLE_LIMIT)}"


def _record_line(record: ApplyRecord) -> str:
    line = f"- `{record.path}` ({record.kind.value})"
    if record.rationale:
        line = f"{line} — {record.rationale}"
    return line


def render_change_request_body(
    task: str,
    records: Sequence[ApplyRecord],
    raw_plan: Mapping[str, Any],
) -> str:
    """List every applied record, any skipped ones, and the raw plan for audit."""
    applied = [record for record in records if record.applied]
    skipped = [record for record in records if not record.applied]

    lines = [f"Task: {task}", "", "Applied changes:"]
    lines.extend(_record_line(record) for record in applied)
    if skipped:
        lines.extend(["", "Skipped changes:"])
        lines.extend(f"{_record_line(record)} [skipped: {record.reason}]" for record in skipped)
    rendered_plan = json.dumps(raw_plan, indent=2, ensure_ascii=False)
    fence = _fence_for(rendered_plan)
    lines.extend(
        [
            "",
            "<details><summary>Raw plan</summary>",
            "",
            f"{fence}json",
            rendered_plan,
            fence,
            "</details>",
        ]
    )
    return "\n".join(lines)


def _fence_for(text: str) -> str:
    """Return a backtick fence longer than any backtick run inside ``text``."""
    longest = max((len(run) for run in re.findall(r"`+", text)), default=0)
    return "`" * max(3, longest + 1)


def render_malformed_plan_comment(raw_output: str) -> str:
    """Diagnostic comment that quotes the unparseable model output verbatim."""
    fence = _fence_for(raw_output)
    return f"I couldn't parse a valid plan.\n\n{fence}json\n{raw_output}\n{fence}"


def render_applied_comment(number: int, applied_count: int) -> str:
    return (
        f"Created helper PR #{number} with {applied_count} change(s). "
        "Review & merge into your PR."
    )


__all__ = [
    "COMMIT_SUBJECT_LIMIT",
    "EMPTY_PLAN_COMMENT",
    "NO_APPLICABLE_EDITS_COMMENT",
    "TITLE_LIMIT",
    "render_applied_comment",
    "render_change_request_body",
    "render_change_request_title",
    "render_commit_message",
    "render_malformed_plan_comment",
    "truncate",
]
