"""CLI command for reading recorded outputs."""

from __future__ import annotations

import json
from typing import Optional

from infralayer.cli.common import print_outputs
from infralayer.cli.ux import print_json, warning
from infralayer.config.settings import Settings
from infralayer.core.errors import ConfigurationError, ExitCode, main_with_error_handling
from infralayer.orchestrator import Orchestrator


@main_with_error_handling()
def output_command(
    settings: Settings,
    name: Optional[str] = None,
    as_json: bool = False,
) -> int:
    """
    Show outputs recorded by the last apply.

    The listing masks sensitive values; asking for one output by name, or for
    JSON, reveals them.
    """
    outputs = Orchestrator(settings).outputs()

    if name is not None:
        if name not in outputs:
            raise ConfigurationError(
                f"Output '{name}' not found; apply the configuration that declares it",
                {"output": name},
            )
        value = outputs[name].value
        if as_json:
            print_json(value)
        elif isinstance(value, str):
            print(value)
        else:
            print(json.dumps(value, sort_keys=True))
        return ExitCode.SUCCESS

    if as_json:
        print_json(
            {
                key: {"value": output.value, "sensitive": output.sensitive}
                for key, output in outputs.items()
            }
        )
        return ExitCode.SUCCESS

    if not outputs:
        warning("No outputs recorded. Run 'infralayer apply' first.")
        return ExitCode.SUCCESS
    print_outputs(outputs)
    return ExitCode.SUCCESS
