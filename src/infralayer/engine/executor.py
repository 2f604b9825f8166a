"""
Executor.

Applies a ChangeSet against a backend. Operations are dispatched in ChangeSet
order onto a bounded pool of asyncio tasks; each waits until every operation
it requires has finished. Independent branches run concurrently, dependency
chains run sequentially.

A failed operation causes everything depending on it (directly or
transitively) to be skipped, while independent branches carry on. The state
store is updated after every successful operation so an interrupted run
leaves state consistent with what actually happened.

Once cancelled, operations that have not started, including dependents of
operations that never ran, are reported as cancelled rather than skipped.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, Optional

import structlog

from infralayer.backends.base import Backend
from infralayer.core.errors import UnresolvedReferenceError
from infralayer.engine.models import ChangeKind, ChangeOp, ChangeSet
from infralayer.engine.results import (
    CANCELLED,
    FAILED,
    SKIPPED,
    SUCCEEDED,
    ApplyReport,
    ReportCollector,
)
from infralayer.engine.retry import RetryPolicy, call_with_retry
from infralayer.specs.expressions import iter_references, lookup_attribute, resolve
from infralayer.specs.models import Reference, ResourceIdentity, ResourceSpec
from infralayer.state.models import StateRecord
from infralayer.state.store import StateStore

logger = structlog.get_logger()

DEFAULT_PARALLELISM = 10


class Executor:
    """Runs ChangeOps against a backend, recording results in the state store."""

    def __init__(
        self,
        backend: Backend,
        store: StateStore,
        *,
        parallelism: int = DEFAULT_PARALLELISM,
        policy: RetryPolicy | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        if parallelism < 1:
            raise ValueError("parallelism must be at least 1")
        self._backend = backend
        self._store = store
        self._parallelism = parallelism
        self._policy = policy or RetryPolicy()
        self._cancel = cancel_event or asyncio.Event()

    def cancel(self) -> None:
        """Stop starting new operations; in-flight ones run to completion."""
        self._cancel.set()

    async def apply(self, changeset: ChangeSet) -> ApplyReport:
        started = time.monotonic()
        collector = ReportCollector()
        semaphore = asyncio.Semaphore(self._parallelism)
        finished: Dict[ResourceIdentity, asyncio.Event] = {
            op.identity: asyncio.Event() for op in changeset.ops
        }
        status: Dict[ResourceIdentity, str] = {}

        async def run(op: ChangeOp) -> None:
            try:
                for dep in op.requires:
                    if dep in finished:
                        await finished[dep].wait()
                blocked = [
                    dep for dep in op.requires if dep in finished and status.get(dep) != SUCCEEDED
                ]
                if blocked and (
                    self._cancel.is_set() or any(status.get(dep) == CANCELLED for dep in blocked)
                ):
                    collector.record_cancel(op)
                    status[op.identity] = CANCELLED
                    return
                if blocked:
                    logger.warning(
                        "apply_op_skipped",
                        resource=op.address,
                        operation=op.kind.value,
                        blocked_by=[dep.address for dep in blocked],
                    )
                    collector.record_skip(op, blocked)
                    status[op.identity] = SKIPPED
                    return
                async with semaphore:
                    if self._cancel.is_set():
                        collector.record_cancel(op)
                        status[op.identity] = CANCELLED
                        return
                    status[op.identity] = await self._run_op(op, collector)
            finally:
                finished[op.identity].set()

        logger.info("apply_started", operations=len(changeset.ops), parallelism=self._parallelism)
        tasks = [asyncio.create_task(run(op)) for op in changeset.ops]
        await asyncio.gather(*tasks)

        report = collector.finalize(time.monotonic() - started)
        logger.info(
            "apply_finished",
            succeeded=len(report.succeeded),
            failed=len(report.failed),
            skipped=len(report.skipped),
            cancelled=len(report.cancelled),
            duration_seconds=round(report.duration_seconds, 3),
        )
        return report

    async def _run_op(self, op: ChangeOp, collector: ReportCollector) -> str:
        log = logger.bind(resource=op.address, operation=op.kind.value)
        attempts = [0]

        def count(_: int) -> None:
            attempts[0] += 1

        log.info("apply_op_started")
        try:
            await self._execute(op, count)
        except Exception as e:
            log.error("apply_op_failed", error=str(e), error_type=type(e).__name__)
            collector.record_failure(op, e, attempts[0])
            return FAILED
        log.info("apply_op_succeeded", attempts=attempts[0])
        collector.record_success(op, attempts[0])
        return SUCCEEDED

    async def _execute(self, op: ChangeOp, on_attempt) -> None:
        identity = op.identity
        details = {"resource": identity.address, "operation": op.kind.value}

        async def backend_call(func):
            return await call_with_retry(
                func,
                self._policy,
                details=details,
                cancel_event=self._cancel,
                on_attempt=on_attempt,
            )

        if op.kind in (ChangeKind.DELETE, ChangeKind.REPLACE):
            await backend_call(lambda: self._backend.delete(identity))
            await self._store.delete(identity)
            if op.kind == ChangeKind.DELETE:
                return

        if op.kind in (ChangeKind.CREATE, ChangeKind.UPDATE, ChangeKind.REPLACE):
            spec = op.after
            if spec is None:
                raise ValueError(f"{op.kind.value} of {identity} has no desired spec")
            inputs = await self.resolve_attributes(spec, op.kind.value)
            if op.kind == ChangeKind.UPDATE:
                attributes = await backend_call(lambda: self._backend.update(identity, inputs))
            else:
                attributes = await backend_call(lambda: self._backend.create(identity, inputs))
            await self._store.write(
                identity,
                StateRecord(
                    identity=identity,
                    inputs=inputs,
                    attributes=dict(attributes or {}),
                    dependencies=spec.dependencies(),
                ),
            )
            return

        if op.kind != ChangeKind.NOOP:
            raise ValueError(f"Unsupported change kind: {op.kind}")

    async def resolve_attributes(self, spec: ResourceSpec, operation: str) -> Dict[str, Any]:
        """Substitute concrete values for references using applied state."""
        records: Dict[ResourceIdentity, Optional[StateRecord]] = {}
        for ref in iter_references(spec.attributes):
            if ref.target not in records:
                records[ref.target] = await self._store.read(ref.target)

        def lookup(ref: Reference) -> Any:
            record = records.get(ref.target)
            if record is None:
                raise UnresolvedReferenceError(spec.address, ref.expression, operation=operation)
            try:
                return lookup_attribute(record.attributes, ref.attribute)
            except KeyError:
                raise UnresolvedReferenceError(
                    spec.address, ref.expression, operation=operation
                ) from None

        return resolve(spec.attributes, lookup)


async def apply(
    changeset: ChangeSet,
    backend: Backend,
    store: StateStore,
    *,
    parallelism: int = DEFAULT_PARALLELISM,
    policy: RetryPolicy | None = None,
    cancel_event: asyncio.Event | None = None,
) -> ApplyReport:
    """Apply ``changeset`` and return the report."""
    executor = Executor(
        backend,
        store,
        parallelism=parallelism,
        policy=policy,
        cancel_event=cancel_event,
    )
    return await executor.apply(changeset)

