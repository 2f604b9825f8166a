"""Attribute normalization for diffing.

Two attribute values are equal when their canonical forms are equal:
map key order is ignored, integral floats equal ints, booleans never equal
numbers, and lists named as unordered are compared as multisets. Top-level
keys whose value is None are treated as absent.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List

UNKNOWN = object()


def canonical(value: Any, *, unordered: bool = False) -> Any:
    if isinstance(value, bool) or value is None or isinstance(value, str):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, dict):
        return {str(k): canonical(v) for k, v in sorted(value.items(), key=lambda kv: str(kv[0]))}
    if isinstance(value, (list, tuple)):
        items = [canonical(item) for item in value]
        if unordered:
            items.sort(key=fingerprint)
        return items
    return str(value)


def fingerprint(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def contains_unknown(value: Any) -> bool:
    if value is UNKNOWN:
        return True
    if isinstance(value, dict):
        return any(contains_unknown(v) for v in value.values())
    if isinstance(value, (list, tuple)):
        return any(contains_unknown(v) for v in value)
    return False


def changed_attributes(
    desired: Dict[str, Any],
    recorded: Dict[str, Any],
    unordered: Iterable[str] = (),
) -> List[str]:
    """Names of attributes that differ, in sorted order.

    An attribute whose desired value contains UNKNOWN always counts as changed.
    """
    unordered = set(unordered)
    desired = {k: v for k, v in desired.items() if v is not None}
    recorded = {k: v for k, v in recorded.items() if v is not None}

    changed = []
    for key in sorted(set(desired) | set(recorded)):
        if key not in desired or key not in recorded:
            changed.append(key)
            continue
        if contains_unknown(desired[key]):
            changed.append(key)
            continue
        is_unordered = key in unordered
        left = fingerprint(canonical(desired[key], unordered=is_unordered))
        right = fingerprint(canonical(recorded[key], unordered=is_unordered))
        if left != right:
            changed.append(key)
    return changed
