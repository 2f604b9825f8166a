"""Resource graph construction.

Turns a set of ResourceSpecs into a validated dependency graph. Edges come
from explicit ``depends_on`` declarations and from references scraped out of
attribute values.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, Iterator, List

import structlog

from infralayer.core.errors import CycleError, DuplicateResourceError, UnresolvedReferenceError
from infralayer.graph.dag import find_cycle, topological_sort
from infralayer.specs.models import ResourceIdentity, ResourceSpec

logger = structlog.get_logger()


class Graph:
    """Validated, acyclic resource graph in declaration order."""

    def __init__(
        self,
        specs: Dict[ResourceIdentity, ResourceSpec],
        edges: Dict[ResourceIdentity, FrozenSet[ResourceIdentity]],
    ) -> None:
        self._specs = specs
        self._edges = edges

    def __contains__(self, identity: object) -> bool:
        return identity in self._specs

    def __len__(self) -> int:
        return len(self._specs)

    def __iter__(self) -> Iterator[ResourceIdentity]:
        return iter(self._specs)

    def get(self, identity: ResourceIdentity) -> ResourceSpec:
        return self._specs[identity]

    def specs(self) -> List[ResourceSpec]:
        return list(self._specs.values())

    def dependencies(self, identity: ResourceIdentity) -> FrozenSet[ResourceIdentity]:
        return self._edges.get(identity, frozenset())

    def topological_order(self) -> List[ResourceIdentity]:
        """Dependencies first; ties broken by declaration order."""
        return topological_sort(list(self._specs), self._edges)


def build(specs: Iterable[ResourceSpec]) -> Graph:
    """
    Build a dependency graph from resource specs.

    Args:
        specs: Declared resources

    Returns:
        Graph keyed by resource identity

    Raises:
        DuplicateResourceError: If an identity is declared twice
        UnresolvedReferenceError: If a reference or depends_on names an undeclared resource
        CycleError: If dependencies form a cycle (the error carries the full path)
    """
    by_identity: Dict[ResourceIdentity, ResourceSpec] = {}
    for spec in sorted(specs, key=lambda s: s.index):
        if spec.identity in by_identity:
            raise DuplicateResourceError(spec.address)
        by_identity[spec.identity] = spec

    edges: Dict[ResourceIdentity, FrozenSet[ResourceIdentity]] = {}
    for identity, spec in by_identity.items():
        deps = spec.dependencies()
        for target in sorted(deps):
            if target not in by_identity:
                raise UnresolvedReferenceError(identity.address, target.address)
        edges[identity] = deps

    cycle = find_cycle(list(by_identity), edges)
    if cycle is not None:
        raise CycleError([node.address for node in cycle])

    logger.debug(
        "graph_built",
        resources=len(by_identity),
        edges=sum(len(deps) for deps in edges.values()),
    )
    return Graph(by_identity, edges)
