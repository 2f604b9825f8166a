"""Core modules for InfraLayer - centralized definitions and utilities."""

from infralayer.core.errors import (
    ApplyCancelled,
    BackendError,
    ConfigurationError,
    CycleError,
    DanglingReferenceError,
    DiffError,
    DuplicateResourceError,
    ExitCode,
    InfraLayerError,
    PermanentBackendError,
    StalePlanError,
    StateCorruptionError,
    TransientBackendError,
    TypeMismatchError,
    UnresolvedReferenceError,
    format_error_message,
    is_transient,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "InfraLayerError",
    "ConfigurationError",
    "CycleError",
    "UnresolvedReferenceError",
    "DuplicateResourceError",
    "DanglingReferenceError",
    "TypeMismatchError",
    "StalePlanError",
    "DiffError",
    "BackendError",
    "TransientBackendError",
    "PermanentBackendError",
    "StateCorruptionError",
    "ApplyCancelled",
    "is_transient",
    "main_with_error_handling",
    "format_error_message",
]
