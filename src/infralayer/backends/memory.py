from __future__ import annotations

import asyncio
import copy
import itertools
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from infralayer.backends.base import Attributes, BackendHealth
from infralayer.backends.registry import register_backend
from infralayer.core.errors import PermanentBackendError
from infralayer.specs.models import ResourceIdentity


@dataclass(frozen=True)
class BackendCall:
    operation: str
    identity: ResourceIdentity
    attributes: Optional[Attributes] = None


class InMemoryBackend:
    """Backend that keeps resources in a dict.

    Failures can be scripted per (operation, address): each scripted exception
    is raised once, in order, before the call is allowed to succeed.
    """

    name = "memory"

    def __init__(self, *, latency: float = 0.0) -> None:
        self.resources: Dict[ResourceIdentity, Attributes] = {}
        self.calls: List[BackendCall] = []
        self._latency = latency
        self._failures: Dict[Tuple[str, str], List[BaseException]] = {}
        self._ids = itertools.count(1)
        self._in_flight = 0
        self.max_in_flight = 0

    def fail(self, operation: str, address: str, *errors: BaseException) -> None:
        """Script errors for the next calls of ``operation`` on ``address``."""
        self._failures.setdefault((operation, address), []).extend(errors)

    def operations(self) -> List[Tuple[str, str]]:
        return [(call.operation, call.identity.address) for call in self.calls]

    async def _enter(
        self, operation: str, identity: ResourceIdentity, attributes: Any = None
    ) -> None:
        self.calls.append(BackendCall(operation, identity, copy.deepcopy(attributes)))
        self._in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self._in_flight)
        try:
            if self._latency:
                await asyncio.sleep(self._latency)
            scripted = self._failures.get((operation, identity.address))
            if scripted:
                raise scripted.pop(0)
        finally:
            self._in_flight -= 1

    async def create(self, identity: ResourceIdentity, attributes: Attributes) -> Attributes:
        await self._enter("create", identity, attributes)
        if identity in self.resources:
            raise PermanentBackendError(
                f"{identity} already exists", {"resource": identity.address, "operation": "create"}
            )
        record = copy.deepcopy(attributes)
        record["id"] = f"{identity.type}-{next(self._ids)}"
        self.resources[identity] = record
        return copy.deepcopy(record)

    async def update(self, identity: ResourceIdentity, attributes: Attributes) -> Attributes:
        await self._enter("update", identity, attributes)
        current = self.resources.get(identity)
        if current is None:
            raise PermanentBackendError(
                f"{identity} does not exist", {"resource": identity.address, "operation": "update"}
            )
        record = copy.deepcopy(attributes)
        record["id"] = current["id"]
        self.resources[identity] = record
        return copy.deepcopy(record)

    async def delete(self, identity: ResourceIdentity) -> None:
        await self._enter("delete", identity)
        self.resources.pop(identity, None)

    async def read(self, identity: ResourceIdentity) -> Optional[Attributes]:
        await self._enter("read", identity)
        current = self.resources.get(identity)
        return copy.deepcopy(current) if current is not None else None

    async def health_check(self) -> BackendHealth:
        return BackendHealth(status="healthy")


def _factory(**kwargs: Any) -> InMemoryBackend:
    return InMemoryBackend(latency=float(kwargs.get("latency", 0.0)))


register_backend(
    InMemoryBackend.name,
    _factory,
    description="Non-durable in-process backend (testing only)",
)

__all__ = ["BackendCall", "InMemoryBackend"]
