"""CLI command for validating a configuration without touching state or the backend."""

from __future__ import annotations

from infralayer.cli.ux import console, print_table, success
from infralayer.config.settings import Settings
from infralayer.core.errors import ExitCode, main_with_error_handling
from infralayer.orchestrator import Orchestrator


@main_with_error_handling()
def validate_command(settings: Settings, verbose: bool = False) -> int:
    """
    Validate a configuration file.

    Loads variables, parses references and builds the dependency graph, so
    undeclared variables, unresolved references, duplicates and cycles are all
    reported here.

    Returns:
        0 if valid; configuration errors exit with 10
    """
    result = Orchestrator(settings).validate()

    if verbose:
        rows = [
            [
                str(position),
                identity.address,
                ", ".join(dep.address for dep in sorted(result.graph.dependencies(identity))),
            ]
            for position, identity in enumerate(result.graph.topological_order(), start=1)
        ]
        print_table("Apply order", ["#", "Resource", "Depends on"], rows)

    console.print()
    success(
        f"{settings.config_file} is valid: {result.resource_count} resource(s), "
        f"{len(result.config.outputs)} output(s)"
    )
    return ExitCode.SUCCESS
