from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional, Protocol

from infralayer.specs.models import ResourceIdentity

Attributes = Dict[str, Any]


@dataclass(frozen=True)
class BackendHealth:
    status: Literal["healthy", "degraded", "unreachable"]
    details: str | None = None


class Backend(Protocol):
    """Capability the engine applies changes through.

    Implementations raise TransientBackendError for retryable failures and
    PermanentBackendError for everything else. Attributes passed in are fully
    resolved (no references); returned attributes are recorded verbatim and may
    include provider-assigned fields such as ``id``.
    """

    name: str

    async def create(self, identity: ResourceIdentity, attributes: Attributes) -> Attributes:
        ...

    async def update(self, identity: ResourceIdentity, attributes: Attributes) -> Attributes:
        ...

    async def delete(self, identity: ResourceIdentity) -> None:
        ...

    async def read(self, identity: ResourceIdentity) -> Optional[Attributes]:
        """Current attributes, or None if the resource no longer exists."""
        ...

    async def health_check(self) -> BackendHealth:
        ...
