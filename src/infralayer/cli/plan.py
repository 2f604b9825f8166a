"""
CLI command for planning changes.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

from infralayer.cli.common import print_plan_summary
from infralayer.cli.ux import header, info, spinner
from infralayer.config.settings import Settings
from infralayer.core.errors import ExitCode, main_with_error_handling
from infralayer.engine.planfile import save_plan
from infralayer.orchestrator import Orchestrator, PlanResult


async def _plan(orchestrator: Orchestrator, refresh: bool, destroy: bool) -> PlanResult:
    with spinner("Refreshing state..." if refresh else "Planning..."):
        return await orchestrator.plan(refresh_state=refresh, destroy=destroy)


@main_with_error_handling()
def plan_command(
    settings: Settings,
    out: Optional[str] = None,
    refresh: bool = True,
    destroy: bool = False,
) -> int:
    """
    Show the changes apply would make.

    Args:
        settings: Effective settings (CLI flags already applied)
        out: Write the plan to this file for a later ``apply FILE``
        refresh: Reconcile state with the backend before planning
        destroy: Plan deletion of every recorded resource

    Returns:
        0 when the plan has changes, 3 when there is nothing to do
    """
    orchestrator = Orchestrator(settings)
    result = asyncio.run(_plan(orchestrator, refresh, destroy))

    header(f"Plan: {orchestrator.config_file}" if not destroy else "Destroy plan")
    print_plan_summary(result.changeset)

    if out:
        path = save_plan(result.saved, Path(out))
        info(f"Saved plan to {path}. Run 'infralayer apply {path}' to apply it.")

    if not result.changeset.has_changes:
        return ExitCode.NO_CHANGES
    return ExitCode.SUCCESS
