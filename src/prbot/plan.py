"""Edit-plan schema and admission policy.

A plan is untrusted model output: a JSON object whose ``changes`` array lists
file operations. Everything in this module is a pure function of its inputs.
Decoding either yields a :class:`Plan` or raises :class:`PlanFormatError`;
individual entries that fail the admission policy are dropped with an
:class:`AdmissionVerdict` rather than failing the whole plan.

Admission happens in two stages:

``admit_operation``
    Per-entry checks (schema, path policy, operation kind, ``find`` for
    replacements). Each entry is judged on its own.

``apply_caps``
    Global limits over the surviving entries, taken in input order. The first
    entry that would push the plan past the distinct-file or content-line
    budget ends admission, so a truncated plan is always a prefix of the
    surviving entries.
"""

from __future__ import annotations

import fnmatch
import logging
import posixpath
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .models.llm_client import LLMResponseFormatError, parse_json_payload

LOGGER = logging.getLogger(__name__)

_WINDOWS_DRIVE_RE = re.compile(r"^[A-Za-z]:[\\/]")

_PROTECTED_BASENAMES: frozenset[str] = frozenset(
    {
        "package-lock.json",
        "npm-shrinkwrap.json",
        "pnpm-lock.yaml",
        "yarn.lock",
        "poetry.lock",
        "pipfile.lock",
        "cargo.lock",
        "composer.lock",
        "gemfile.lock",
        "go.sum",
        ".env",
        ".npmrc",
        ".pypirc",
        ".netrc",
    }
)

_PROTECTED_PATTERNS: tuple[str, ...] = (
    "*.lock",
    ".env.*",
    "*.pem",
    "*.key",
    "*.p12",
    "*.pfx",
    "id_rsa*",
    "id_ed25519*",
)


class PlanFormatError(ValueError):
    """Raised when model output does not decode to ``{"changes": [...]}``."""


class AdmissionError(ValueError):
    """Raised when a single change entry fails the admission policy."""


class OperationKind(str, Enum):
    """File operations a plan may request."""

    CREATE = "create"
    APPEND = "append"
    REPLACE = "replace"


@dataclass(frozen=True, slots=True)
class PlanLimits:
    """Admission limits applied to every plan."""

    max_files: int = 5
    max_lines: int = 500
    max_path_length: int = 200
    metadata_prefix: str = ".git"


DEFAULT_LIMITS = PlanLimits()


class ChangeEntry(BaseModel):
    """Wire shape of one entry in the ``changes`` array."""

    model_config = ConfigDict(extra="ignore", strict=True, frozen=True)

    path: Optional[str] = None
    operation: Optional[str] = None
    find: Optional[str] = None
    content: Optional[str] = None
    rationale: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("why", "rationale"),
    )


@dataclass(frozen=True, slots=True)
class EditOperation:
    """One admitted file mutation. Never modified after parsing."""

    path: str
    kind: OperationKind
    content: str = ""
    find: str | None = None
    rationale: str = ""

    @property
    def target_key(self) -> str:
        """Normalised path used to count distinct target files."""
        return posixpath.normpath(self.path)

    @property
    def line_count(self) -> int:
        """Number of inserted or replacement lines carried by the operation."""
        return len(self.content.splitlines())

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "path": self.path,
            "operation": self.kind.value,
            "content": self.content,
            "why": self.rationale,
        }
        if self.find is not None:
            payload["find"] = self.find
        return payload


@dataclass(frozen=True, slots=True)
class AdmissionVerdict:
    """Why the entry at ``index`` of the proposed plan was not admitted."""

    index: int
    path: str | None
    reason: str


@dataclass(frozen=True, slots=True)
class Plan:
    """Admitted operations in proposal order, plus the raw payload for audit."""

    operations: tuple[EditOperation, ...]
    raw: Mapping[str, Any] = field(default_factory=dict)
    proposed: int = 0
    rejected: tuple[AdmissionVerdict, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.operations

    @property
    def target_files(self) -> tuple[str, ...]:
        """Distinct target paths in first-seen order."""
        seen: dict[str, None] = {}
        for operation in self.operations:
            seen.setdefault(operation.target_key, None)
        return tuple(seen)

    @property
    def total_lines(self) -> int:
        return sum(operation.line_count for operation in self.operations)


def check_path(path: str, limits: PlanLimits = DEFAULT_LIMITS) -> str | None:
    """Return the reason ``path`` may not be edited, or ``None`` if it may."""
    if not path or not path.strip():
        return "path is empty"
    if len(path) > limits.max_path_length:
        return f"path exceeds {limits.max_path_length} characters"
    if "\x00" in path:
        return "path contains a NUL byte"
    if path.startswith(limits.metadata_prefix):
        return "path targets version-control metadata"
    if path.startswith(("/", "\\")) or _WINDOWS_DRIVE_RE.match(path):
        return "absolute paths are not permitted"
    parts = re.split(r"[\\/]", path)
    if any(part == ".." for part in parts):
        return "path escapes the repository"
    normalised = posixpath.normpath(path.replace("\\", "/"))
    if normalised in {".", ""}:
        return "path does not name a file"
    if normalised.startswith(limits.metadata_prefix):
        return "path targets version-control metadata"
    basename = posixpath.basename(normalised).lower()
    if basename in _PROTECTED_BASENAMES or any(
        fnmatch.fnmatchcase(basename, pattern) for pattern in _PROTECTED_PATTERNS
    ):
        return "path is a protected lockfile or secret"
    return None


def _parse_kind(value: str | None) -> OperationKind:
    if not value:
        raise AdmissionError("operation is missing")
    try:
        return OperationKind(value)
    except ValueError as error:
        raise AdmissionError(f"unsupported operation {value!r}") from error


def admit_operation(entry: Any, limits: PlanLimits = DEFAULT_LIMITS) -> EditOperation:
    """Validate one raw change entry and return the admitted operation.

    Raises :class:`AdmissionError` describing the first failed check.
    """
    try:
        change = ChangeEntry.model_validate(entry)
    except ValidationError as error:
        fields = sorted({str(item["loc"][0]) for item in error.errors() if item.get("loc")})
        detail = ", ".join(fields) if fields else "entry"
        raise AdmissionError(f"malformed change entry ({detail})") from error

    path = change.path or ""
    reason = check_path(path, limits)
    if reason is not None:
        raise AdmissionError(reason)

    kind = _parse_kind(change.operation)
    if kind is OperationKind.REPLACE and not change.find:
        raise AdmissionError("replace requires a non-empty find value")

    return EditOperation(
        path=path,
        kind=kind,
        content=change.content or "",
        find=change.find if kind is OperationKind.REPLACE else None,
        rationale=change.rationale or "",
    )


def apply_caps(
    operations: Sequence[EditOperation],
    limits: PlanLimits = DEFAULT_LIMITS,
) -> tuple[tuple[EditOperation, ...], tuple[EditOperation, ...]]:
    """Split ``operations`` into the admitted prefix and the dropped suffix."""
    files: set[str] = set()
    lines = 0
    for index, operation in enumerate(operations):
        next_files = files | {operation.target_key}
        next_lines = lines + operation.line_count
        if len(next_files) > limits.max_files or next_lines > limits.max_lines:
            LOGGER.info(
                "Plan caps reached at change %d (files=%d/%d, lines=%d/%d); dropping %d change(s)",
                index,
                len(next_files),
                limits.max_files,
                next_lines,
                limits.max_lines,
                len(operations) - index,
            )
            return tuple(operations[:index]), tuple(operations[index:])
        files = next_files
        lines = next_lines
    return tuple(operations), ()


def decode_plan_payload(raw: str) -> dict[str, Any]:
    """Decode model output into a mapping with a ``changes`` list."""
    try:
        payload = parse_json_payload(raw)
    except LLMResponseFormatError as error:
        raise PlanFormatError(str(error)) from error

    if not isinstance(payload, dict):
        raise PlanFormatError("Plan must be a JSON object.")
    changes = payload.get("changes")
    if not isinstance(changes, list):
        raise PlanFormatError('Plan does not contain a "changes" array.')
    return payload


def _entry_path(entry: Any) -> str | None:
    if isinstance(entry, Mapping):
        value = entry.get("path")
        if isinstance(value, str):
            return value
    return None


def parse_plan(raw: str, limits: PlanLimits = DEFAULT_LIMITS) -> Plan:
    """Decode, admit and cap-truncate a raw model response.

    Raises :class:`PlanFormatError` when the container itself is malformed. An
    empty ``changes`` array, or one where nothing survives admission, yields an
    empty plan.
    """
    payload = decode_plan_payload(raw)
    changes: list[Any] = payload["changes"]

    verdicts: list[AdmissionVerdict] = []
    candidates: list[tuple[int, EditOperation]] = []
    for index, entry in enumerate(changes):
        try:
            candidates.append((index, admit_operation(entry, limits)))
        except AdmissionError as error:
            verdicts.append(AdmissionVerdict(index=index, path=_entry_path(entry), reason=str(error)))

    admitted, _ = apply_caps([operation for _, operation in candidates], limits)
    for index, operation in candidates[len(admitted):]:
        verdicts.append(AdmissionVerdict(index=index, path=operation.path, reason="dropped by plan caps"))
    verdicts.sort(key=lambda verdict: verdict.index)

    for verdict in verdicts:
        LOGGER.info("Rejected change %d (%s): %s", verdict.index, verdict.path, verdict.reason)
    LOGGER.info("Admitted %d of %d proposed change(s)", len(admitted), len(changes))

    return Plan(
        operations=admitted,
        raw=payload,
        proposed=len(changes),
        rejected=tuple(verdicts),
    )


__all__ = [
    "DEFAULT_LIMITS",
    "AdmissionError",
    "AdmissionVerdict",
    "ChangeEntry",
    "EditOperation",
    "OperationKind",
    "Plan",
    "PlanFormatError",
    "PlanLimits",
    "admit_operation",
    "apply_caps",
    "check_path",
    "decode_plan_payload",
    "parse_plan",
]
