"""Result types for apply runs."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from infralayer.engine.models import ChangeKind, ChangeOp
from infralayer.specs.models import ResourceIdentity

SUCCEEDED = "succeeded"
FAILED = "failed"
SKIPPED = "skipped"
CANCELLED = "cancelled"


@dataclass
class OperationResult:
    """Outcome of one ChangeOp."""

    identity: ResourceIdentity
    kind: ChangeKind
    status: str
    error: Optional[str] = None
    error_type: Optional[str] = None
    attempts: int = 0
    blocked_by: List[str] = field(default_factory=list)

    @property
    def address(self) -> str:
        return self.identity.address

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "resource": self.address,
            "operation": self.kind.value,
            "status": self.status,
        }
        if self.error is not None:
            data["error"] = self.error
            data["error_type"] = self.error_type
        if self.attempts:
            data["attempts"] = self.attempts
        if self.blocked_by:
            data["blocked_by"] = self.blocked_by
        return data


@dataclass
class ApplyReport:
    """Result of applying a ChangeSet. Always produced, even on partial failure."""

    results: List[OperationResult] = field(default_factory=list)
    duration_seconds: float = 0.0

    def _with_status(self, status: str) -> List[OperationResult]:
        return [result for result in self.results if result.status == status]

    @property
    def succeeded(self) -> List[OperationResult]:
        return self._with_status(SUCCEEDED)

    @property
    def failed(self) -> List[OperationResult]:
        return self._with_status(FAILED)

    @property
    def skipped(self) -> List[OperationResult]:
        """Operations not attempted because a dependency failed."""
        return self._with_status(SKIPPED)

    @property
    def cancelled(self) -> List[OperationResult]:
        return self._with_status(CANCELLED)

    @property
    def success(self) -> bool:
        """Whether every operation succeeded."""
        return all(result.status == SUCCEEDED for result in self.results)

    def status_of(self, identity: ResourceIdentity) -> Optional[str]:
        for result in self.results:
            if result.identity == identity:
                return result.status
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "duration_seconds": round(self.duration_seconds, 3),
            "succeeded": [r.address for r in self.succeeded],
            "failed": [r.to_dict() for r in self.failed],
            "skipped": [r.to_dict() for r in self.skipped],
            "cancelled": [r.address for r in self.cancelled],
        }


class ReportCollector:
    """Aggregates operation outcomes during execution, in completion order."""

    def __init__(self) -> None:
        self._report = ApplyReport()

    def record_success(self, op: ChangeOp, attempts: int) -> None:
        self._report.results.append(
            OperationResult(op.identity, op.kind, SUCCEEDED, attempts=attempts)
        )

    def record_failure(self, op: ChangeOp, error: BaseException, attempts: int) -> None:
        message = getattr(error, "message", None) or str(error) or type(error).__name__
        self._report.results.append(
            OperationResult(
                op.identity,
                op.kind,
                FAILED,
                error=message,
                error_type=type(error).__name__,
                attempts=attempts,
            )
        )

    def record_skip(self, op: ChangeOp, blocked_by: List[ResourceIdentity]) -> None:
        self._report.results.append(
            OperationResult(
                op.identity,
                op.kind,
                SKIPPED,
                blocked_by=sorted(identity.address for identity in blocked_by),
            )
        )

    def record_cancel(self, op: ChangeOp) -> None:
        self._report.results.append(OperationResult(op.identity, op.kind, CANCELLED))

    def finalize(self, duration: float) -> ApplyReport:
        """Return the final report with duration set."""
        self._report.duration_seconds = duration
        return self._report
