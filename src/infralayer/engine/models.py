"""
Data models for planning.

A ChangeSet is the ordered list of operations needed to move the recorded
state to the desired configuration. Creates, updates and replacements come
first in dependency order; deletions follow in reverse dependency order.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterator, List, Optional, Tuple

from infralayer.specs.models import ResourceIdentity, ResourceSpec
from infralayer.state.models import StateRecord


class ChangeKind(Enum):
    """Kind of change planned for one resource."""

    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"  # Delete then create; forced by a replace_on attribute
    DELETE = "delete"
    NOOP = "no-op"


@dataclass(frozen=True)
class ChangeOp:
    """One planned operation. Consumed exactly once by the executor."""

    identity: ResourceIdentity
    kind: ChangeKind
    before: Optional[StateRecord] = None
    after: Optional[ResourceSpec] = None
    # Operations that must complete before this one may start
    requires: FrozenSet[ResourceIdentity] = frozenset()
    reasons: Tuple[str, ...] = ()

    @property
    def address(self) -> str:
        return self.identity.address


@dataclass
class ChangeSet:
    """Ordered operations plus the state serial they were computed against."""

    ops: List[ChangeOp] = field(default_factory=list)
    unchanged: List[ResourceIdentity] = field(default_factory=list)
    drifted: List[ResourceIdentity] = field(default_factory=list)
    state_serial: Optional[int] = None
    destroy: bool = False

    def __len__(self) -> int:
        return len(self.ops)

    def __iter__(self) -> Iterator[ChangeOp]:
        return iter(self.ops)

    @property
    def has_changes(self) -> bool:
        return bool(self.ops)

    def get(self, identity: ResourceIdentity) -> Optional[ChangeOp]:
        for op in self.ops:
            if op.identity == identity:
                return op
        return None

    def summary(self) -> Dict[str, int]:
        """Operation count per kind, e.g. {"create": 2, "delete": 1}."""
        counts = Counter(op.kind.value for op in self.ops)
        return {
            kind.value: counts.get(kind.value, 0) for kind in ChangeKind if kind != ChangeKind.NOOP
        }

    def describe(self) -> List[Tuple[str, str]]:
        """(kind, address) pairs in execution order."""
        return [(op.kind.value, op.address) for op in self.ops]
