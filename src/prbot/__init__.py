"""Pull-request edit bot: validate and safely apply model-proposed edit plans."""

from .coordinator import RunConfig, RunCoordinator, RunResult, RunStatus
from .plan import EditOperation, OperationKind, Plan, PlanFormatError, PlanLimits, parse_plan
from .tools.apply import ApplyRecord, apply_operation

__all__ = [
    "ApplyRecord",
    "EditOperation",
    "OperationKind",
    "Plan",
    "PlanFormatError",
    "PlanLimits",
    "RunConfig",
    "RunCoordinator",
    "RunResult",
    "RunStatus",
    "apply_operation",
    "parse_plan",
]
