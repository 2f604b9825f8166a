"""Output evaluation."""

from __future__ import annotations

from typing import Any, Dict, Mapping

import structlog

from infralayer.specs.expressions import lookup_attribute, resolve
from infralayer.specs.models import OutputSpec, Reference
from infralayer.state.models import OutputValue
from infralayer.state.store import StateSnapshot

logger = structlog.get_logger()


class _Unavailable(Exception):
    pass


def evaluate_outputs(
    outputs: Mapping[str, OutputSpec],
    snapshot: StateSnapshot,
) -> Dict[str, OutputValue]:
    """Evaluate outputs against applied state.

    Outputs referencing resources that are not (yet) applied are omitted.
    """

    def lookup(ref: Reference) -> Any:
        record = snapshot.get(ref.target)
        if record is None:
            raise _Unavailable(ref.expression)
        try:
            return lookup_attribute(record.attributes, ref.attribute)
        except KeyError:
            raise _Unavailable(ref.expression) from None

    values: Dict[str, OutputValue] = {}
    for name, spec in outputs.items():
        try:
            value = resolve(spec.value, lookup)
        except _Unavailable as e:
            logger.warning("output_unavailable", output=name, reference=str(e))
            continue
        values[name] = OutputValue(value=value, sensitive=spec.sensitive)
    return values
