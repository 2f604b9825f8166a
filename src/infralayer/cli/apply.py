"""
CLI command for applying changes (and, with ``destroy``, removing everything).
"""

from __future__ import annotations

import asyncio
import signal
from typing import Optional

import structlog

from infralayer.cli.common import print_apply_summary, print_outputs, print_plan_summary
from infralayer.cli.ux import confirm_async, header, spinner, warning
from infralayer.config.settings import Settings
from infralayer.core.errors import ApplyCancelled, ExitCode, main_with_error_handling
from infralayer.engine.planfile import SavedPlan, load_plan
from infralayer.orchestrator import ApplyResult, Orchestrator

logger = structlog.get_logger()


def exit_code_for(result: ApplyResult) -> int:
    """Failures win over cancellation; either beats success."""
    if result.report.failed:
        return ExitCode.BACKEND_ERROR
    if result.report.cancelled:
        return ExitCode.BLOCKED
    return ExitCode.SUCCESS


def _install_interrupt_handler(cancel_event: asyncio.Event) -> bool:
    loop = asyncio.get_running_loop()

    def _interrupted() -> None:
        warning("Interrupt received: waiting for in-flight operations to finish...")
        logger.warning("apply_interrupted")
        cancel_event.set()

    try:
        loop.add_signal_handler(signal.SIGINT, _interrupted)
    except (NotImplementedError, RuntimeError):
        # No signal support on this loop (e.g. Windows); Ctrl-C aborts instead.
        return False
    return True


async def run_apply(
    orchestrator: Orchestrator,
    *,
    plan_file: Optional[str],
    auto_approve: bool,
    refresh: bool,
    destroy: bool,
) -> ApplyResult:
    if plan_file:
        saved: SavedPlan = load_plan(plan_file)
        header(f"Applying saved plan {plan_file}")
        print_plan_summary(saved.changeset)
    else:
        with spinner("Refreshing state..." if refresh else "Planning..."):
            planned = await orchestrator.plan(refresh_state=refresh, destroy=destroy)
        saved = planned.saved
        header("Destroy plan" if destroy else f"Plan: {orchestrator.config_file}")
        print_plan_summary(saved.changeset)

        if saved.changeset.has_changes and not auto_approve:
            question = "Destroy all managed resources?" if destroy else "Apply these changes?"
            if not await confirm_async(question):
                raise ApplyCancelled(
                    "Apply declined; no changes were made",
                    {"operation": "destroy" if destroy else "apply"},
                )

    cancel_event = asyncio.Event()
    installed = _install_interrupt_handler(cancel_event)
    try:
        return await orchestrator.apply(saved, cancel_event=cancel_event)
    finally:
        if installed:
            asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)


@main_with_error_handling()
def apply_command(
    settings: Settings,
    plan_file: Optional[str] = None,
    auto_approve: bool = False,
    refresh: bool = True,
) -> int:
    """
    Apply a configuration, or a saved plan when ``plan_file`` is given.

    A saved plan is applied without a prompt and refused if the state changed
    since it was created.

    Returns:
        0 on success, 2 if declined or cancelled, 11 if any operation failed
    """
    orchestrator = Orchestrator(settings)
    result = asyncio.run(
        run_apply(
            orchestrator,
            plan_file=plan_file,
            auto_approve=auto_approve,
            refresh=refresh,
            destroy=False,
        )
    )
    print_apply_summary(result.report)
    print_outputs(result.outputs)
    return exit_code_for(result)


@main_with_error_handling()
def destroy_command(
    settings: Settings,
    auto_approve: bool = False,
    refresh: bool = True,
) -> int:
    """Delete every resource recorded in state, dependents first."""
    orchestrator = Orchestrator(settings)
    result = asyncio.run(
        run_apply(
            orchestrator,
            plan_file=None,
            auto_approve=auto_approve,
            refresh=refresh,
            destroy=True,
        )
    )
    print_apply_summary(result.report)
    return exit_code_for(result)
