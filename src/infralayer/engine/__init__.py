"""Planning and execution engine."""

from infralayer.engine.executor import Executor, apply
from infralayer.engine.models import ChangeKind, ChangeOp, ChangeSet
from infralayer.engine.outputs import evaluate_outputs
from infralayer.engine.planfile import SavedPlan, load_plan, save_plan
from infralayer.engine.planner import destroy_plan, plan
from infralayer.engine.refresh import RefreshResult, refresh
from infralayer.engine.results import ApplyReport, OperationResult
from infralayer.engine.retry import RetryPolicy, call_with_retry

__all__ = [
    "ApplyReport",
    "ChangeKind",
    "ChangeOp",
    "ChangeSet",
    "Executor",
    "OperationResult",
    "RefreshResult",
    "RetryPolicy",
    "SavedPlan",
    "apply",
    "call_with_retry",
    "destroy_plan",
    "evaluate_outputs",
    "load_plan",
    "plan",
    "refresh",
    "save_plan",
]
