"""Expression parsing and substitution for resource attributes.

Supports:
- ${var.name} - Input variable, substituted at load time
- ${type.name.attr} - Reference to another resource's output, resolved at apply time

A string consisting of a single expression keeps the referenced value's type;
an expression embedded in a longer string becomes a Template.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, Iterator, List, Union

from infralayer.core.errors import ConfigurationError
from infralayer.specs.models import Reference, ResourceIdentity, Template

EXPRESSION_PATTERN = re.compile(r"\$\{([^}]*)\}")

ReferenceLookup = Callable[[Reference], Any]


def parse_reference(expression: str) -> Reference:
    """Parse ``type.name.attr`` into a Reference."""
    parts = expression.strip().split(".")
    if len(parts) < 3 or not all(parts):
        raise ConfigurationError(
            f"Invalid reference expression: ${{{expression}}} (expected type.name.attribute)",
            {"expression": expression},
        )
    try:
        target = ResourceIdentity.parse(f"{parts[0]}.{parts[1]}")
    except ValueError as e:
        raise ConfigurationError(str(e), {"expression": expression}) from e
    return Reference(target=target, attribute=".".join(parts[2:]))


class ExpressionParser:
    """Parses raw configuration values into literals, References and Templates."""

    def __init__(self, variables: Dict[str, Any] | None = None, *, source: str | None = None):
        """Initialize parser with resolved variable values.

        Args:
            variables: Variable name -> value
            source: Address of the resource being parsed, used in error details
        """
        self.variables = variables or {}
        self.source = source

    def parse(self, value: Any) -> Any:
        """Recursively parse a value.

        - Strings: "${var.region}" -> variable value, "${net.vpc.id}" -> Reference,
          "db-${var.env}" -> "db-prod", "p/${net.vpc.id}" -> Template
        - Dicts and lists: processed recursively
        - Other types: returned unchanged
        """
        if isinstance(value, str):
            return self._parse_string(value)
        elif isinstance(value, dict):
            return {str(k): self.parse(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [self.parse(item) for item in value]
        else:
            return value

    def _parse_string(self, text: str) -> Any:
        matches = list(EXPRESSION_PATTERN.finditer(text))
        if not matches:
            return text

        if len(matches) == 1 and matches[0].span() == (0, len(text)):
            return self._evaluate(matches[0].group(1))

        parts: List[Union[str, Reference]] = []
        cursor = 0
        for match in matches:
            if match.start() > cursor:
                parts.append(text[cursor : match.start()])
            evaluated = self._evaluate(match.group(1))
            if isinstance(evaluated, Reference):
                parts.append(evaluated)
            else:
                parts.append(_stringify(evaluated))
            cursor = match.end()
        if cursor < len(text):
            parts.append(text[cursor:])

        if not any(isinstance(p, Reference) for p in parts):
            return "".join(p for p in parts if isinstance(p, str))
        return Template(parts=tuple(_merge_literals(parts)))

    def _evaluate(self, expression: str) -> Any:
        expression = expression.strip()
        if expression.startswith("var."):
            name = expression[len("var.") :]
            if name not in self.variables:
                details = {"variable": name}
                if self.source:
                    details["resource"] = self.source
                raise ConfigurationError(f"Undeclared variable referenced: var.{name}", details)
            return self.variables[name]
        return parse_reference(expression)


def _merge_literals(parts: List[Union[str, Reference]]) -> List[Union[str, Reference]]:
    merged: List[Union[str, Reference]] = []
    for part in parts:
        if isinstance(part, str) and merged and isinstance(merged[-1], str):
            merged[-1] = merged[-1] + part
        else:
            merged.append(part)
    return merged


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def iter_references(value: Any) -> Iterator[Reference]:
    """Yield every Reference contained in a (possibly nested) value."""
    if isinstance(value, Reference):
        yield value
    elif isinstance(value, Template):
        yield from value.references
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_references(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_references(item)


def has_references(value: Any) -> bool:
    return next(iter_references(value), None) is not None


def resolve(value: Any, lookup: ReferenceLookup) -> Any:
    """Substitute concrete values for every Reference using ``lookup``."""
    if isinstance(value, Reference):
        return lookup(value)
    if isinstance(value, Template):
        return "".join(
            _stringify(lookup(part)) if isinstance(part, Reference) else part
            for part in value.parts
        )
    if isinstance(value, dict):
        return {k: resolve(v, lookup) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve(item, lookup) for item in value]
    return value


def lookup_attribute(attributes: Dict[str, Any], path: str) -> Any:
    """Follow a dotted path into nested attribute maps.

    Raises:
        KeyError: If any segment of the path is missing
    """
    current: Any = attributes
    for segment in path.split("."):
        if isinstance(current, dict) and segment in current:
            current = current[segment]
        elif isinstance(current, list) and segment.isdigit() and int(segment) < len(current):
            current = current[int(segment)]
        else:
            raise KeyError(path)
    return current
