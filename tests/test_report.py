from __future__ import annotations

import pytest

from prbot.plan import OperationKind
from prbot.prompts import extract_task, render_system_prompt
from prbot.report import (
    render_applied_comment,
    render_change_request_body,
    render_change_request_title,
    render_commit_message,
    render_malformed_plan_comment,
    truncate,
)
from prbot.tools.apply import ApplyRecord


@pytest.mark.parametrize(
    ("comment", "task"),
    [
        ("/gpt Add a greeting", "Add a greeting"),
        ("  /GPT   tidy up\n", "tidy up"),
        ("/gpt", ""),
        ("/gpt   ", ""),
        ("please /gpt fix", "please /gpt fix"),
        (None, ""),
    ],
)
def test_extract_task(comment: str | None, task: str) -> None:
    assert extract_task(comment) == task


def test_extract_task_requires_word_boundary() -> None:
    assert extract_task("/gpters unite") == "/gpters unite"


def test_system_prompt_states_limits() -> None:
    prompt = render_system_prompt(max_files=5, max_lines=500)

    assert 'STRICT JSON with a "changes" array' in prompt
    assert "Edit max 5 files, max 500 lines total." in prompt


def test_truncate_marks_cut() -> None:
    assert truncate("short", 10) == "short"
    assert truncate("x" * 10, 10) == "x" * 10
    assert truncate("x" * 11, 10) == "x" * 9 + "…"


def test_commit_and_title_prefixes() -> None:
    assert render_commit_message("Fix typo") == "gpt: Fix typo"
    assert render_change_request_title("Fix typo") == "gpt: Fix typo"


def test_change_request_body_lists_records_and_raw_plan() -> None:
    records = [
        ApplyRecord(path="README.md", kind=OperationKind.APPEND, rationale="greet", applied=True),
        ApplyRecord(
            path="gone.md",
            kind=OperationKind.REPLACE,
            rationale="",
            applied=False,
            reason="file does not exist",
        ),
    ]
    raw = {"changes": [{"path": "README.md", "operation": "append", "content": "Hi", "why": "greet"}]}

    body = render_change_request_body("Say hi", records, raw)

    assert body.startswith("Task: Say hi\n\nApplied changes:\n- `README.md` (append) — greet")
    assert "Skipped changes:\n- `gone.md` (replace) [skipped: file does not exist]" in body
    assert '"why": "greet"' in body
    assert body.endswith("```\n</details>")


def test_body_without_skipped_records_has_no_skipped_section() -> None:
    records = [ApplyRecord(path="a.md", kind=OperationKind.CREATE, rationale="", applied=True)]

    body = render_change_request_body("task", records, {"changes": []})

    assert "Skipped changes" not in body
    assert "- `a.md` (create)\n" in body


def test_malformed_comment_fence_outlasts_backticks_in_output() -> None:
    raw = "Sure!\n```json\n{\"changes\": [\n```\nDone."

    comment = render_malformed_plan_comment(raw)

    assert comment == f"I couldn't parse a valid plan.\n\n````json\n{raw}\n````"


def test_raw_plan_fence_outlasts_backticks_in_content() -> None:
    records = [ApplyRecord(path="a.md", kind=OperationKind.CREATE, rationale="", applied=True)]
    raw = {"changes": [{"path": "a.md", "operation": "create", "content": "`````py\nx\n`````"}]}

    body = render_change_request_body("task", records, raw)

    assert "\n``````json\n" in body
    assert body.endswith("\n``````\n</details>")


def test_comment_texts() -> None:
    assert render_malformed_plan_comment("oops") == "I couldn't parse a valid plan.\n\n```json\noops\n```"
    assert render_applied_comment(12, 3) == (
        "Created helper PR #12 with 3 change(s). Review & merge into your PR."
    )
