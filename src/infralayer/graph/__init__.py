"""Resource dependency graph."""

from infralayer.graph.builder import Graph, build
from infralayer.graph.dag import find_cycle, topological_sort

__all__ = [
    "Graph",
    "build",
    "find_cycle",
    "topological_sort",
]
