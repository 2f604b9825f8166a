"""
Unified error handling for InfraLayer.

Every error raised by the engine derives from InfraLayerError and carries
an exit code plus structured details (resource identity, operation kind,
cause) so the CLI can report it consistently.

Exit Codes:
- 0: Success
- 2: Blocked (apply declined by the user or cancelled)
- 3: Plan has no changes
- 10: Configuration error (cycle, unresolved reference, type mismatch)
- 11: Backend error (one or more operations failed during apply)
- 12: Validation / diff error
- 13: State error (state file unreadable or inconsistent)
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    BLOCKED = 2
    NO_CHANGES = 3
    CONFIG_ERROR = 10
    BACKEND_ERROR = 11
    VALIDATION_ERROR = 12
    STATE_ERROR = 13
    UNKNOWN_ERROR = 127


class InfraLayerError(Exception):
    """Base exception for InfraLayer errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(InfraLayerError):
    """Raised for configuration errors, always before any backend call."""

    exit_code = ExitCode.CONFIG_ERROR


class CycleError(ConfigurationError):
    """Raised when resource dependencies form a cycle."""

    def __init__(self, cycle: list[str]):
        path = " -> ".join(cycle)
        super().__init__(f"Dependency cycle detected: {path}", {"cycle": path})
        self.cycle = cycle


class UnresolvedReferenceError(ConfigurationError):
    """Raised when a reference or dependency names an undeclared resource."""

    def __init__(self, source: str, target: str, *, operation: str | None = None):
        details: dict[str, Any] = {"resource": source, "target": target}
        if operation:
            details["operation"] = operation
        super().__init__(f"{source} references undeclared resource {target}", details)
        self.source = source
        self.target = target


class DuplicateResourceError(ConfigurationError):
    """Raised when two resources share the same identity."""

    def __init__(self, address: str):
        super().__init__(f"Resource {address} is declared more than once", {"resource": address})


class DanglingReferenceError(ConfigurationError):
    """Raised when a resource scheduled for deletion is still referenced."""

    def __init__(self, deleted: str, referrers: list[str]):
        super().__init__(
            f"Cannot delete {deleted}: still referenced by {', '.join(referrers)}",
            {"resource": deleted, "operation": "delete", "referrers": ", ".join(referrers)},
        )


class TypeMismatchError(ConfigurationError):
    """Raised when a variable value does not match its declared type."""


class StalePlanError(ConfigurationError):
    """Raised when a saved plan no longer matches the current state."""


class DiffError(InfraLayerError):
    """Raised when prior state cannot be diffed against the desired graph."""

    exit_code = ExitCode.VALIDATION_ERROR


class BackendError(InfraLayerError):
    """Raised when the backend rejects or fails an operation."""

    exit_code = ExitCode.BACKEND_ERROR


class TransientBackendError(BackendError):
    """Retryable backend failure (rate limit, timeout, network)."""


class PermanentBackendError(BackendError):
    """Non-retryable backend failure (invalid spec, permission denied)."""


class StateCorruptionError(InfraLayerError):
    """Raised when the state file is unreadable or inconsistent."""

    exit_code = ExitCode.STATE_ERROR


class ApplyCancelled(InfraLayerError):
    """Raised when an apply is declined or cancelled before completion."""

    exit_code = ExitCode.BLOCKED


def is_transient(error: BaseException) -> bool:
    """Whether an error is eligible for retry."""
    return isinstance(error, TransientBackendError)


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI commands that provides unified error handling.

    Exit codes:
        - InfraLayerError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except InfraLayerError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=int(e.exit_code),
                        **e.details,
                    )
                from infralayer.cli.ux import error as print_error

                print_error(format_error_message(e))
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=int(ExitCode.UNKNOWN_ERROR),
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: InfraLayerError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
