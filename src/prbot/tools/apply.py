"""Apply admitted edit operations to the working tree.

Operations run strictly in plan order and every write lands on disk before the
next operation starts, so a ``create`` followed by an ``append`` to the same
path behaves as written. The batch is **not atomic**: a failure part-way
through leaves earlier mutations in place and nothing is rolled back. Each
operation yields exactly one :class:`ApplyRecord`; the records with
``applied=True`` are exactly the mutations performed.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, List

from ..plan import EditOperation, OperationKind

LOGGER = logging.getLogger(__name__)
TELEMETRY_LOGGER = logging.getLogger("prbot.telemetry")


@dataclass(frozen=True, slots=True)
class ApplyRecord:
    """Audit-trail entry for one operation that reached the applier."""

    path: str
    kind: OperationKind
    rationale: str
    applied: bool
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "operation": self.kind.value,
            "why": self.rationale,
            "applied": self.applied,
            "reason": self.reason,
        }


def _emit_apply_event(record: ApplyRecord) -> None:
    """Log a structured telemetry event for an apply attempt."""
    payload = {
        "event": "operation_applied" if record.applied else "operation_skipped",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **record.to_dict(),
    }
    TELEMETRY_LOGGER.info(json.dumps(payload, separators=(",", ":"), ensure_ascii=True))


def _is_within(path: Path, parent: Path) -> bool:
    try:
        path.relative_to(parent)
    except ValueError:
        return False
    return True


def _resolve_target(repo_root: Path, relative: str) -> tuple[Path | None, str | None]:
    """Resolve ``relative`` under ``repo_root`` following symlinks.

    Returns ``(target, None)`` or ``(None, reason)`` when the resolved path
    cannot be computed, leaves the repository or lands in ``.git``.
    """
    root = repo_root.resolve()
    try:
        target = (root / relative).resolve()
    except (OSError, RuntimeError) as error:
        # Symlink loops raise RuntimeError on Python < 3.13.
        LOGGER.warning("Unable to resolve %s: %s", relative, error)
        return None, "path cannot be resolved"
    if not _is_within(target, root):
        return None, "path resolves outside the repository"
    if _is_within(target, root / ".git"):
        return None, "path resolves into version-control metadata"
    return target, None


def _read_text(path: Path) -> str:
    with path.open("r", encoding="utf-8", newline="") as handle:
        return handle.read()


def _write_text(path: Path, text: str, *, mode: str = "w") -> None:
    with path.open(mode, encoding="utf-8", newline="") as handle:
        handle.write(text)


def _create(target: Path, operation: EditOperation) -> str | None:
    # Overwrites an existing file without checking; see DESIGN.md.
    target.parent.mkdir(parents=True, exist_ok=True)
    _write_text(target, operation.content)
    return None


def _append(target: Path, operation: EditOperation) -> str | None:
    if not target.is_file():
        return "file does not exist"
    _write_text(target, "\n" + operation.content, mode="a")
    return None


def _replace(target: Path, operation: EditOperation) -> str | None:
    if not target.is_file():
        return "file does not exist"
    find = operation.find or ""
    original = _read_text(target)
    if find not in original:
        return "find text not present in file"
    _write_text(target, original.replace(find, operation.content, 1))
    return None


_HANDLERS = {
    OperationKind.CREATE: _create,
    OperationKind.APPEND: _append,
    OperationKind.REPLACE: _replace,
}


def apply_operation(operation: EditOperation, repo_root: Path | str = ".") -> ApplyRecord:
    """Attempt one mutation and return its audit record.

    Missing targets, absent ``find`` text and I/O errors are reported through
    ``applied=False`` rather than raised.
    """
    root = Path(repo_root)
    reason: str | None
    target, reason = _resolve_target(root, operation.path)
    if target is not None:
        handler = _HANDLERS[operation.kind]
        try:
            reason = handler(target, operation)
        except UnicodeDecodeError:
            reason = "file is not valid UTF-8 text"
        except OSError as error:
            LOGGER.warning("I/O error applying %s to %s: %s", operation.kind.value, operation.path, error)
            reason = f"I/O error: {error.strerror or error}"

    record = ApplyRecord(
        path=operation.path,
        kind=operation.kind,
        rationale=operation.rationale,
        applied=reason is None,
        reason=reason,
    )
    if record.applied:
        LOGGER.info("Applied %s to %s", operation.kind.value, operation.path)
    else:
        LOGGER.info("Skipped %s on %s: %s", operation.kind.value, operation.path, reason)
    _emit_apply_event(record)
    return record


def apply_operations(operations: Iterable[EditOperation], repo_root: Path | str = ".") -> List[ApplyRecord]:
    """Apply ``operations`` in order and return the audit trail.

    Not atomic: records already produced stay valid if a later step fails.
    """
    return [apply_operation(operation, repo_root) for operation in operations]


def applied_records(records: Iterable[ApplyRecord]) -> List[ApplyRecord]:
    """Return the records that mutated the working tree."""
    return [record for record in records if record.applied]


__all__ = [
    "ApplyRecord",
    "applied_records",
    "apply_operation",
    "apply_operations",
]
