"""
Refresh (drift detection).

Reads every recorded resource from the backend and reconciles the state store
with what actually exists:

- resources deleted out-of-band are dropped from state, so the next plan
  recreates them
- recorded inputs that the backend now reports differently are overwritten
  with the live values, so the next plan corrects the drift
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import List

import structlog

from infralayer.backends.base import Backend
from infralayer.engine.normalize import changed_attributes
from infralayer.engine.retry import RetryPolicy, call_with_retry
from infralayer.specs.models import ResourceIdentity
from infralayer.state.models import StateRecord
from infralayer.state.store import StateStore

logger = structlog.get_logger()


@dataclass
class RefreshResult:
    drifted: List[ResourceIdentity] = field(default_factory=list)
    vanished: List[ResourceIdentity] = field(default_factory=list)

    @property
    def has_drift(self) -> bool:
        return bool(self.drifted or self.vanished)


async def refresh(
    store: StateStore,
    backend: Backend,
    *,
    policy: RetryPolicy | None = None,
    parallelism: int = 10,
) -> RefreshResult:
    """Reconcile recorded state with the backend."""
    policy = policy or RetryPolicy()
    semaphore = asyncio.Semaphore(parallelism)
    result = RefreshResult()

    async def refresh_one(record: StateRecord) -> None:
        identity = record.identity
        async with semaphore:
            current = await call_with_retry(
                lambda: backend.read(identity),
                policy,
                details={"resource": identity.address, "operation": "read"},
            )

        if current is None:
            logger.warning("refresh_resource_vanished", resource=identity.address)
            await store.delete(identity)
            result.vanished.append(identity)
            return

        inputs = {
            key: current[key] if key in current else value for key, value in record.inputs.items()
        }
        drift = changed_attributes(inputs, record.inputs)
        if drift:
            logger.warning("refresh_drift_detected", resource=identity.address, attributes=drift)
            result.drifted.append(identity)
        if drift or current != record.attributes:
            await store.write(
                identity,
                StateRecord(
                    identity=identity,
                    inputs=inputs,
                    attributes=dict(current),
                    dependencies=record.dependencies,
                ),
            )

    await asyncio.gather(*(refresh_one(record) for record in store.snapshot().values()))
    result.drifted.sort()
    result.vanished.sort()
    logger.info("refresh_finished", drifted=len(result.drifted), vanished=len(result.vanished))
    return result
