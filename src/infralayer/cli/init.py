"""CLI command for initializing a working directory."""

from __future__ import annotations

import asyncio
from pathlib import Path

from infralayer.cli.ux import info, print_key_value, success, warning
from infralayer.config.settings import Settings
from infralayer.core.errors import ExitCode, main_with_error_handling
from infralayer.orchestrator import Orchestrator

STARTER_CONFIG = """\
# InfraLayer configuration
variables:
  region:
    type: string
    default: us-central1

resources:
  - type: network
    name: main
    attributes:
      region: ${var.region}

outputs:
  network_id:
    value: ${network.main.id}
"""


def write_starter_config(path: Path) -> bool:
    """Write an example configuration unless one exists. Returns True when written."""
    if path.exists():
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(STARTER_CONFIG)
    return True


@main_with_error_handling()
def init_command(settings: Settings) -> int:
    """
    Prepare the working directory, state file and backend.

    Safe to run repeatedly: existing configuration and state are left alone.

    Returns:
        0 if the backend is healthy, 11 if it cannot be reached
    """
    orchestrator = Orchestrator(settings)

    if write_starter_config(orchestrator.config_file):
        info(f"Wrote example configuration to {orchestrator.config_file}")

    health = asyncio.run(orchestrator.initialize())

    print_key_value(
        {
            "Configuration": str(orchestrator.config_file),
            "State": str(settings.state_path),
            "Backend": settings.backend,
            "Backend status": health.status,
        },
        title="InfraLayer initialized",
    )

    if health.status != "healthy":
        details = health.details or "no details"
        warning(f"Backend '{settings.backend}' is {health.status}: {details}")
        return ExitCode.BACKEND_ERROR

    success("Ready. Run 'infralayer plan' to see what would change.")
    return ExitCode.SUCCESS
