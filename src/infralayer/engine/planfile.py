"""
Saved plans.

``plan -out=FILE`` writes the ChangeSet (plus the output definitions needed
after apply) as JSON; ``apply FILE`` executes exactly those operations. A plan
records the state serial it was computed against and is refused once the
state has moved on.

References inside attribute values are encoded as ``{"$ref": "type.name.attr"}``
and templates as ``{"$template": [...]}``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

from infralayer.core.errors import ConfigurationError, StalePlanError
from infralayer.engine.models import ChangeKind, ChangeOp, ChangeSet
from infralayer.specs.expressions import parse_reference
from infralayer.specs.models import (
    Lifecycle,
    OutputSpec,
    Reference,
    ResourceIdentity,
    ResourceSpec,
    Template,
)
from infralayer.state.models import StateRecord

PLAN_FORMAT_VERSION = 1


@dataclass
class SavedPlan:
    changeset: ChangeSet
    outputs: Dict[str, OutputSpec] = field(default_factory=dict)

    def check_current(self, serial: int) -> None:
        """Raise StalePlanError if state changed since the plan was made."""
        if self.changeset.state_serial is not None and self.changeset.state_serial != serial:
            raise StalePlanError(
                "Saved plan is stale: state changed since it was created; run plan again",
                {"plan_serial": self.changeset.state_serial, "state_serial": serial},
            )


def encode_value(value: Any) -> Any:
    if isinstance(value, Reference):
        return {"$ref": value.expression}
    if isinstance(value, Template):
        return {"$template": [encode_value(part) for part in value.parts]}
    if isinstance(value, dict):
        return {k: encode_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [encode_value(item) for item in value]
    return value


def decode_value(value: Any) -> Any:
    if isinstance(value, dict):
        if set(value) == {"$ref"}:
            return parse_reference(value["$ref"])
        if set(value) == {"$template"}:
            return Template(parts=tuple(decode_value(part) for part in value["$template"]))
        return {k: decode_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_value(item) for item in value]
    return value


def _encode_spec(spec: ResourceSpec) -> Dict[str, Any]:
    return {
        "type": spec.identity.type,
        "name": spec.identity.name,
        "index": spec.index,
        "attributes": encode_value(spec.attributes),
        "depends_on": sorted(dep.address for dep in spec.depends_on),
        "lifecycle": {
            "replace_on": sorted(spec.lifecycle.replace_on),
            "unordered": sorted(spec.lifecycle.unordered),
        },
    }


def _decode_spec(data: Dict[str, Any]) -> ResourceSpec:
    lifecycle = data.get("lifecycle") or {}
    return ResourceSpec(
        identity=ResourceIdentity(type=data["type"], name=data["name"]),
        attributes=decode_value(data.get("attributes") or {}),
        depends_on=frozenset(ResourceIdentity.parse(a) for a in data.get("depends_on") or []),
        lifecycle=Lifecycle(
            replace_on=frozenset(lifecycle.get("replace_on") or []),
            unordered=frozenset(lifecycle.get("unordered") or []),
        ),
        index=int(data.get("index", 0)),
    )


def encode_plan(plan: SavedPlan) -> Dict[str, Any]:
    changeset = plan.changeset
    return {
        "format_version": PLAN_FORMAT_VERSION,
        "state_serial": changeset.state_serial,
        "destroy": changeset.destroy,
        "unchanged": [identity.address for identity in changeset.unchanged],
        "drifted": [identity.address for identity in changeset.drifted],
        "operations": [
            {
                "resource": op.address,
                "kind": op.kind.value,
                "before": op.before.to_dict() if op.before else None,
                "after": _encode_spec(op.after) if op.after else None,
                "requires": sorted(dep.address for dep in op.requires),
                "reasons": list(op.reasons),
            }
            for op in changeset.ops
        ],
        "outputs": {
            name: {
                "value": encode_value(output.value),
                "sensitive": output.sensitive,
                "description": output.description,
            }
            for name, output in plan.outputs.items()
        },
    }


def decode_plan(data: Dict[str, Any]) -> SavedPlan:
    if data.get("format_version") != PLAN_FORMAT_VERSION:
        raise ConfigurationError(
            f"Unsupported plan format: {data.get('format_version')!r}",
            {"format_version": data.get("format_version")},
        )
    ops = []
    for raw in data.get("operations", []):
        ops.append(
            ChangeOp(
                identity=ResourceIdentity.parse(raw["resource"]),
                kind=ChangeKind(raw["kind"]),
                before=StateRecord.from_dict(raw["before"]) if raw.get("before") else None,
                after=_decode_spec(raw["after"]) if raw.get("after") else None,
                requires=frozenset(ResourceIdentity.parse(a) for a in raw.get("requires", [])),
                reasons=tuple(raw.get("reasons", [])),
            )
        )
    changeset = ChangeSet(
        ops=ops,
        unchanged=[ResourceIdentity.parse(a) for a in data.get("unchanged", [])],
        drifted=[ResourceIdentity.parse(a) for a in data.get("drifted", [])],
        state_serial=data.get("state_serial"),
        destroy=bool(data.get("destroy", False)),
    )
    outputs = {
        name: OutputSpec(
            name=name,
            value=decode_value(raw["value"]),
            sensitive=bool(raw.get("sensitive", False)),
            description=raw.get("description"),
        )
        for name, raw in (data.get("outputs") or {}).items()
    }
    return SavedPlan(changeset=changeset, outputs=outputs)


def save_plan(plan: SavedPlan, path: str | Path) -> Path:
    plan_path = Path(path)
    plan_path.write_text(json.dumps(encode_plan(plan), indent=2, sort_keys=True) + "\n")
    return plan_path


def load_plan(path: str | Path) -> SavedPlan:
    plan_path = Path(path)
    if not plan_path.exists():
        raise ConfigurationError(f"Plan file not found: {plan_path}", {"path": str(plan_path)})
    try:
        data = json.loads(plan_path.read_text())
        return decode_plan(data)
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Plan file {plan_path} is malformed: {e}", {"path": str(plan_path)}
        ) from e
