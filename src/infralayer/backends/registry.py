from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from infralayer.core.errors import ConfigurationError

BackendFactory = Callable[..., Any]


@dataclass(frozen=True)
class BackendSpec:
    """Metadata describing a registered backend."""

    name: str
    factory: BackendFactory
    description: str | None = None


class BackendRegistry:
    """Simple in-memory registry for InfraLayer backends."""

    def __init__(self) -> None:
        self._backends: Dict[str, BackendSpec] = {}

    def register(
        self,
        name: str,
        factory: BackendFactory,
        *,
        description: str | None = None,
    ) -> None:
        if not name:
            raise ValueError("Backend name is required")
        self._backends[name] = BackendSpec(name=name, factory=factory, description=description)

    def create(self, name: str, **kwargs: Any) -> Any:
        spec = self._backends.get(name)
        if spec is None:
            known = ", ".join(sorted(self._backends)) or "none"
            raise ConfigurationError(
                f"Backend '{name}' is not registered (available: {known})", {"backend": name}
            )
        return spec.factory(**kwargs)

    def list(self) -> List[BackendSpec]:
        return list(self._backends.values())


backend_registry = BackendRegistry()


def register_backend(
    name: str,
    factory: BackendFactory,
    *,
    description: str | None = None,
) -> None:
    backend_registry.register(name, factory, description=description)


def create_backend(name: str, **kwargs: Any) -> Any:
    return backend_registry.create(name, **kwargs)


def list_backends() -> List[BackendSpec]:
    return backend_registry.list()
