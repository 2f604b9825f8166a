"""State record models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet

from infralayer.specs.models import ResourceIdentity


@dataclass(frozen=True)
class StateRecord:
    """Last-known applied state of one resource.

    ``inputs`` are the resolved attributes last sent to the backend and are
    what the planner diffs against; ``attributes`` hold everything the backend
    reported, including provider-assigned identifiers.
    """

    identity: ResourceIdentity
    inputs: Dict[str, Any] = field(default_factory=dict)
    attributes: Dict[str, Any] = field(default_factory=dict)
    dependencies: FrozenSet[ResourceIdentity] = frozenset()

    @property
    def address(self) -> str:
        return self.identity.address

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.identity.type,
            "name": self.identity.name,
            "inputs": self.inputs,
            "attributes": self.attributes,
            "dependencies": sorted(dep.address for dep in self.dependencies),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> StateRecord:
        return cls(
            identity=ResourceIdentity(type=data["type"], name=data["name"]),
            inputs=dict(data.get("inputs") or {}),
            attributes=dict(data.get("attributes") or {}),
            dependencies=frozenset(
                ResourceIdentity.parse(address) for address in data.get("dependencies") or []
            ),
        )


@dataclass(frozen=True)
class OutputValue:
    """Evaluated output recorded after apply."""

    value: Any
    sensitive: bool = False
