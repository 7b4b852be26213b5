"""End-to-end run: plan, validate, apply, report.

One :class:`RunCoordinator` handles one command comment. The pipeline is
strictly sequential and stateless across runs. File mutations are best effort
and **not atomic**: once application starts, a later failure (including a
version-control failure) leaves the already-applied edits on disk.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Protocol

from .models.llm_client import LLMClientError
from .plan import DEFAULT_LIMITS, Plan, PlanFormatError, PlanLimits, parse_plan
from .report import (
    EMPTY_PLAN_COMMENT,
    NO_APPLICABLE_EDITS_COMMENT,
    render_applied_comment,
    render_change_request_body,
    render_change_request_title,
    render_commit_message,
    render_malformed_plan_comment,
)
from .tools.apply import ApplyRecord, applied_records, apply_operation
from .tools.github import ChangeRequest, GitHubError
from .tools.vcs import GitError, work_branch_name

LOGGER = logging.getLogger(__name__)

COLLABORATOR_ERRORS = (LLMClientError, GitError, GitHubError)


class PlanSource(Protocol):
    """Inference collaborator: returns untrusted plan text for a task."""

    def propose_plan(self, task: str, *, actor: str, context: str) -> str: ...


class VersionControl(Protocol):
    """Version-control collaborator that materialises and reports a change."""

    def create_branch(self, name: str) -> None: ...

    def commit_all(self, message: str) -> str: ...

    def push(self, branch: str) -> None: ...

    def open_change_request(self, *, head: str, base: str, title: str, body: str) -> ChangeRequest: ...

    def post_comment(self, conversation_id: int, body: str) -> None: ...


class RunStatus(str, Enum):
    """Terminal classification of a run."""

    MALFORMED_PLAN = "malformed_plan"
    EMPTY_PLAN = "empty_plan"
    NO_APPLICABLE_EDITS = "no_applicable_edits"
    APPLIED = "applied"
    FAILED = "failed"


@dataclass(slots=True)
class RunConfig:
    """Everything a run needs; nothing is read from the process environment."""

    task: str
    actor: str
    inference_client: PlanSource
    version_control: VersionControl
    conversation_id: int = 0
    base_branch: str = "main"
    head_sha: str = ""
    branch_prefix: str = "gpt/"
    repo_root: Path = field(default_factory=Path.cwd)
    limits: PlanLimits = DEFAULT_LIMITS
    context_sampler: Optional[Callable[[], str]] = None


@dataclass(slots=True)
class RunResult:
    """Outcome of one run together with its audit trail."""

    status: RunStatus
    raw_output: str | None = None
    plan: Plan | None = None
    records: List[ApplyRecord] = field(default_factory=list)
    branch: str | None = None
    commit_sha: str | None = None
    change_request: ChangeRequest | None = None
    comment: str | None = None
    error: str | None = None

    @property
    def applied(self) -> List[ApplyRecord]:
        return applied_records(self.records)

    @property
    def ok(self) -> bool:
        return self.status is not RunStatus.FAILED


class RunCoordinator:
    """Drive one command comment from task text to a reported outcome."""

    def __init__(self, config: RunConfig) -> None:
        self._config = config

    @property
    def config(self) -> RunConfig:
        return self._config

    def run(self) -> RunResult:
        """Execute the pipeline. Collaborator failures are logged, never raised.

        A ``FAILED`` result may still carry ``applied`` records: edits already
        written to the working tree are not undone.
        """
        result = RunResult(status=RunStatus.FAILED)
        try:
            self._run(result)
        except COLLABORATOR_ERRORS as error:
            LOGGER.error("Run failed: %s", error, exc_info=True)
            result.status = RunStatus.FAILED
            result.error = str(error)
        except OSError as error:
            LOGGER.error("Run failed with an I/O error: %s", error, exc_info=True)
            result.status = RunStatus.FAILED
            result.error = str(error)
        LOGGER.info(
            "Run finished: %s (%d applied, %d skipped)",
            result.status.value,
            len(result.applied),
            len(result.records) - len(result.applied),
        )
        return result

    def _sample_context(self) -> str:
        sampler = self._config.context_sampler
        if sampler is None:
            return ""
        return sampler()

    def _report(self, result: RunResult, status: RunStatus, comment: str) -> None:
        result.status = status
        result.comment = comment
        self._config.version_control.post_comment(self._config.conversation_id, comment)

    def _run(self, result: RunResult) -> None:
        config = self._config

        context = self._sample_context()
        raw_output = config.inference_client.propose_plan(config.task, actor=config.actor, context=context)
        result.raw_output = raw_output

        try:
            plan = parse_plan(raw_output, config.limits)
        except PlanFormatError as error:
            LOGGER.warning("Model output is not a valid plan: %s", error)
            self._report(result, RunStatus.MALFORMED_PLAN, render_malformed_plan_comment(raw_output))
            return
        result.plan = plan

        if plan.is_empty:
            self._report(result, RunStatus.EMPTY_PLAN, EMPTY_PLAN_COMMENT)
            return

        for operation in plan.operations:
            result.records.append(apply_operation(operation, config.repo_root))

        applied = result.applied
        if not applied:
            self._report(result, RunStatus.NO_APPLICABLE_EDITS, NO_APPLICABLE_EDITS_COMMENT)
            return

        vcs = config.version_control
        branch = work_branch_name(config.head_sha, prefix=config.branch_prefix)
        vcs.create_branch(branch)
        result.branch = branch
        result.commit_sha = vcs.commit_all(render_commit_message(config.task))
        vcs.push(branch)
        change_request = vcs.open_change_request(
            head=branch,
            base=config.base_branch,
            title=render_change_request_title(config.task),
            body=render_change_request_body(config.task, result.records, plan.raw),
        )
        result.change_request = change_request
        self._report(result, RunStatus.APPLIED, render_applied_comment(change_request.number, len(applied)))


__all__ = [
    "PlanSource",
    "RunConfig",
    "RunCoordinator",
    "RunResult",
    "RunStatus",
    "VersionControl",
]
