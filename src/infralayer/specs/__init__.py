"""Declarative configuration: models, expressions, variables and loading."""

from infralayer.specs.expressions import (
    ExpressionParser,
    has_references,
    iter_references,
    lookup_attribute,
    parse_reference,
    resolve,
)
from infralayer.specs.loader import load_configuration, parse_configuration
from infralayer.specs.models import (
    Configuration,
    Lifecycle,
    OutputSpec,
    Reference,
    ResourceIdentity,
    ResourceSpec,
    Template,
    Variable,
)

__all__ = [
    "Configuration",
    "ExpressionParser",
    "Lifecycle",
    "OutputSpec",
    "Reference",
    "ResourceIdentity",
    "ResourceSpec",
    "Template",
    "Variable",
    "has_references",
    "iter_references",
    "load_configuration",
    "lookup_attribute",
    "parse_configuration",
    "parse_reference",
    "resolve",
]
