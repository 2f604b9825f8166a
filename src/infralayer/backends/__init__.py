"""Backend utilities and built-in registrations."""

# Import built-in backends for side effects (registration)
from infralayer.backends import http as _http  # noqa: F401
from infralayer.backends import local as _local  # noqa: F401
from infralayer.backends import memory as _memory  # noqa: F401
from infralayer.backends.base import Backend, BackendHealth
from infralayer.backends.registry import (
    create_backend,
    list_backends,
    register_backend,
)

__all__ = [
    "Backend",
    "BackendHealth",
    "create_backend",
    "list_backends",
    "register_backend",
]
