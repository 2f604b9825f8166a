"""Directed acyclic graph algorithms over hashable node keys.

``deps`` maps each node to the nodes it depends on; edges point from a
dependency to its dependent in the resulting order.
"""

from __future__ import annotations

import heapq
from typing import Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, TypeVar

Node = TypeVar("Node", bound=Hashable)

_WHITE, _GREY, _BLACK = 0, 1, 2


def _position(nodes):
    index = {node: i for i, node in enumerate(nodes)}
    return lambda node: index.get(node, len(index))


def find_cycle(nodes: Sequence[Node], deps: Mapping[Node, Iterable[Node]]) -> Optional[List[Node]]:
    """Return one cycle as a closed path (first node repeated at the end), or None.

    Iterative DFS with recursion-stack colouring so deep chains do not hit
    the interpreter recursion limit.
    """
    colour: Dict[Node, int] = {node: _WHITE for node in nodes}
    by_position = _position(nodes)

    for root in nodes:
        if colour[root] != _WHITE:
            continue
        stack: List[Node] = [root]
        iterators = {root: iter(sorted(deps.get(root, ()), key=by_position))}
        colour[root] = _GREY

        while stack:
            node = stack[-1]
            child = next(iterators[node], None)
            if child is None:
                colour[node] = _BLACK
                stack.pop()
                continue
            if child not in colour:
                continue
            if colour[child] == _GREY:
                start = stack.index(child)
                return stack[start:] + [child]
            if colour[child] == _WHITE:
                colour[child] = _GREY
                iterators[child] = iter(sorted(deps.get(child, ()), key=by_position))
                stack.append(child)
    return None


def topological_sort(nodes: Sequence[Node], deps: Mapping[Node, Iterable[Node]]) -> List[Node]:
    """Kahn's algorithm; ties broken by position in ``nodes``.

    Dependencies outside ``nodes`` are ignored.

    Raises:
        ValueError: If the graph contains a cycle
    """
    position = {node: i for i, node in enumerate(nodes)}
    indegree = {node: 0 for node in nodes}
    dependents: Dict[Node, List[Node]] = {node: [] for node in nodes}

    for node in nodes:
        for dep in set(deps.get(node, ())):
            if dep in position:
                indegree[node] += 1
                dependents[dep].append(node)

    ready = [(position[node], node) for node in nodes if indegree[node] == 0]
    heapq.heapify(ready)
    order: List[Node] = []
    while ready:
        _, node = heapq.heappop(ready)
        order.append(node)
        for dependent in dependents[node]:
            indegree[dependent] -= 1
            if indegree[dependent] == 0:
                heapq.heappush(ready, (position[dependent], dependent))

    if len(order) != len(nodes):
        raise ValueError("graph contains a cycle")
    return order
