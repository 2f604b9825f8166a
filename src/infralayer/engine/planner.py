"""
Planner.

Diffs the desired resource graph against the last-applied state snapshot and
produces an ordered ChangeSet:

- in graph only      -> create
- in state only      -> delete
- in both, differing -> update (replace when a replace_on attribute differs)
- otherwise          -> no-op (listed in ChangeSet.unchanged)

Creates/updates/replaces are ordered topologically (declaration order breaks
ties) so dependencies apply first; deletions follow in reverse topological
order of the recorded dependencies so dependents are removed first.
"""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, List, Optional, Set

import structlog

from infralayer.core.errors import DanglingReferenceError, DiffError, UnresolvedReferenceError
from infralayer.engine.models import ChangeKind, ChangeOp, ChangeSet
from infralayer.engine.normalize import UNKNOWN, changed_attributes
from infralayer.graph.builder import Graph
from infralayer.graph.dag import find_cycle, topological_sort
from infralayer.specs.expressions import iter_references, lookup_attribute, resolve
from infralayer.specs.models import Reference, ResourceIdentity, ResourceSpec
from infralayer.state.store import StateSnapshot

logger = structlog.get_logger()


class _UnknownValue(Exception):
    """Raised during diff resolution when a referenced value is not yet known."""


def plan(
    graph: Graph,
    prior: StateSnapshot,
    *,
    destroy: bool = False,
    state_serial: Optional[int] = None,
) -> ChangeSet:
    """
    Compute the ChangeSet moving ``prior`` to the desired ``graph``.

    Args:
        graph: Desired resources (ignored when destroy is set)
        prior: Snapshot of the state store
        destroy: Plan deletion of every recorded resource
        state_serial: Serial of the snapshot, stored on the ChangeSet

    Raises:
        DiffError: If recorded dependencies are inconsistent
        DanglingReferenceError: If a resource to delete is still referenced
    """
    _check_prior(prior)
    planner = _Planner(graph, prior, destroy=destroy)
    changeset = planner.run()
    changeset.state_serial = state_serial
    logger.info("plan_computed", destroy=destroy, **changeset.summary())
    return changeset


def _check_prior(prior: StateSnapshot) -> None:
    for identity, record in prior.items():
        if record.identity != identity:
            raise DiffError(
                f"State record {record.address} is stored under {identity.address}",
                {"resource": identity.address, "operation": "plan"},
            )
    nodes = sorted(prior)
    deps = {identity: record.dependencies for identity, record in prior.items()}
    cycle = find_cycle(nodes, deps)
    if cycle is not None:
        path = " -> ".join(node.address for node in cycle)
        raise DiffError(
            f"Recorded dependencies form a cycle: {path}",
            {"resource": cycle[0].address, "operation": "plan", "cycle": path},
        )


class _Planner:
    def __init__(self, graph: Graph, prior: StateSnapshot, *, destroy: bool) -> None:
        self.graph = graph
        self.prior = prior
        self.destroy = destroy
        self.kinds: Dict[ResourceIdentity, ChangeKind] = {}
        self.reasons: Dict[ResourceIdentity, List[str]] = {}
        # Input attributes each updated resource is about to change
        self.changed: Dict[ResourceIdentity, Set[str]] = {}

    def run(self) -> ChangeSet:
        desired_order = [] if self.destroy else self.graph.topological_order()
        for identity in desired_order:
            self._classify(self.graph.get(identity))

        desired = set(desired_order)
        deleted = [identity for identity in sorted(self.prior) if identity not in desired]
        self._check_dangling(deleted)
        for identity in deleted:
            self.kinds[identity] = ChangeKind.DELETE
            self.reasons[identity] = ["not declared" if not self.destroy else "destroy"]

        changeset = ChangeSet(destroy=self.destroy)
        for identity in desired_order:
            kind = self.kinds[identity]
            if kind == ChangeKind.NOOP:
                changeset.unchanged.append(identity)
                continue
            changeset.ops.append(
                ChangeOp(
                    identity=identity,
                    kind=kind,
                    before=self.prior.get(identity),
                    after=self.graph.get(identity),
                    requires=self._desired_requirements(identity),
                    reasons=tuple(self.reasons.get(identity, ())),
                )
            )

        deps = {identity: self.prior[identity].dependencies for identity in deleted}
        for identity in reversed(topological_sort(deleted, deps)):
            changeset.ops.append(
                ChangeOp(
                    identity=identity,
                    kind=ChangeKind.DELETE,
                    before=self.prior[identity],
                    requires=self._delete_requirements(identity),
                    reasons=tuple(self.reasons[identity]),
                )
            )
        return changeset

    def _classify(self, spec: ResourceSpec) -> None:
        identity = spec.identity
        record = self.prior.get(identity)
        if record is None:
            self.kinds[identity] = ChangeKind.CREATE
            self.reasons[identity] = ["not yet created"]
            return

        desired: Dict[str, Any] = {}
        for key, value in spec.attributes.items():
            try:
                desired[key] = resolve(value, lambda ref: self._known_value(identity, ref))
            except _UnknownValue:
                desired[key] = UNKNOWN

        changed = changed_attributes(desired, record.inputs, spec.lifecycle.unordered)
        if not changed:
            self.kinds[identity] = ChangeKind.NOOP
            return

        reasons = []
        for key in changed:
            if desired.get(key) is UNKNOWN:
                refs = iter_references(spec.attributes[key])
                targets = sorted({ref.target.address for ref in refs})
                reasons.append(f"{key} (known after apply of {', '.join(targets)})")
            else:
                reasons.append(key)
        self.reasons[identity] = reasons
        self.changed[identity] = set(changed)

        if spec.lifecycle.replace_on & set(changed):
            self.kinds[identity] = ChangeKind.REPLACE
        else:
            self.kinds[identity] = ChangeKind.UPDATE

    def _known_value(self, source: ResourceIdentity, ref: Reference) -> Any:
        kind = self.kinds.get(ref.target)
        if kind in (ChangeKind.CREATE, ChangeKind.REPLACE):
            raise _UnknownValue(ref.expression)
        record = self.prior.get(ref.target)
        if record is None:
            raise _UnknownValue(ref.expression)
        if kind == ChangeKind.UPDATE and ref.attribute.split(".")[0] in self.changed[ref.target]:
            raise _UnknownValue(ref.expression)
        try:
            return lookup_attribute(record.attributes, ref.attribute)
        except KeyError:
            if kind == ChangeKind.UPDATE:
                raise _UnknownValue(ref.expression) from None
            raise UnresolvedReferenceError(
                source.address, ref.expression, operation="plan"
            ) from None

    def _check_dangling(self, deleted: List[ResourceIdentity]) -> None:
        if self.destroy:
            return
        for identity in deleted:
            referrers = [
                spec.address for spec in self.graph.specs() if identity in spec.dependencies()
            ]
            if referrers:
                raise DanglingReferenceError(identity.address, referrers)

    def _has_op(self, identity: ResourceIdentity) -> bool:
        return self.kinds.get(identity, ChangeKind.NOOP) != ChangeKind.NOOP

    def _desired_requirements(self, identity: ResourceIdentity) -> FrozenSet[ResourceIdentity]:
        """Nearest dependencies with an operation, looking through no-op resources."""
        required: Set[ResourceIdentity] = set()
        seen: Set[ResourceIdentity] = set()
        frontier = list(self.graph.dependencies(identity))
        while frontier:
            dep = frontier.pop()
            if dep in seen:
                continue
            seen.add(dep)
            if self._has_op(dep):
                required.add(dep)
            else:
                frontier.extend(self.graph.dependencies(dep))
        return frozenset(required)

    def _delete_requirements(self, identity: ResourceIdentity) -> FrozenSet[ResourceIdentity]:
        """Everything that depended on ``identity`` when last applied."""
        return frozenset(
            other
            for other, record in self.prior.items()
            if identity in record.dependencies and self._has_op(other)
        )


def destroy_plan(prior: StateSnapshot, *, state_serial: Optional[int] = None) -> ChangeSet:
    """Plan deletion of every recorded resource."""
    return plan(Graph({}, {}), prior, destroy=True, state_serial=state_serial)

