"""Rendering shared by the plan, apply and destroy commands."""

from __future__ import annotations

from typing import Dict

from rich.markup import escape

from infralayer.cli.ux import CHANGE_SYMBOLS, console, error, success, warning
from infralayer.engine.models import ChangeSet
from infralayer.engine.results import ApplyReport
from infralayer.state.models import OutputValue

SENSITIVE_PLACEHOLDER = "<sensitive>"


def print_plan_summary(changeset: ChangeSet) -> None:
    """Print the operations of a plan in execution order."""
    console.print()
    if changeset.drifted:
        warning(f"Drift detected on {len(changeset.drifted)} resource(s):")
        for identity in changeset.drifted:
            console.print(f"   [muted]•[/muted] {identity.address}")
        console.print()

    if not changeset.has_changes:
        success("No changes. Infrastructure matches the configuration.")
        return

    console.print("[bold]InfraLayer will perform the following actions:[/bold]")
    console.print()
    for op in changeset.ops:
        kind = op.kind.value
        symbol = CHANGE_SYMBOLS[kind]
        console.print(f"  [{kind}]{symbol:>3} {op.address}[/{kind}] [muted]({kind})[/muted]")
        for reason in op.reasons:
            console.print(f"        [muted]└[/muted] {escape(reason)}")

    counts = changeset.summary()
    console.print()
    console.print(
        f"[bold]Plan:[/bold] {counts['create']} to create, {counts['update']} to update, "
        f"{counts['replace']} to replace, {counts['delete']} to delete."
    )


def print_apply_summary(report: ApplyReport) -> None:
    """Print per-operation results and a one-line summary."""
    console.print()
    for result in report.results:
        label = f"{result.address} ({result.kind.value})"
        if result.status == "succeeded":
            console.print(f"  [success]✓ {label}[/success]")
        elif result.status == "failed":
            console.print(f"  [error]✗ {label}[/error] {escape(str(result.error))}")
        elif result.status == "skipped":
            blocked = ", ".join(result.blocked_by)
            console.print(f"  [warning]⊘ {label}[/warning] skipped, depends on {blocked}")
        else:
            console.print(f"  [muted]… {label} cancelled[/muted]")

    console.print()
    summary = (
        f"{len(report.succeeded)} succeeded, {len(report.failed)} failed, "
        f"{len(report.skipped)} skipped, {len(report.cancelled)} cancelled "
        f"in {report.duration_seconds:.1f}s"
    )
    if report.success:
        success(f"Apply complete: {summary}")
    else:
        error(f"Apply incomplete: {summary}")


def print_outputs(outputs: Dict[str, OutputValue]) -> None:
    """Print outputs, masking sensitive values."""
    if not outputs:
        return
    console.print()
    console.print("[bold]Outputs:[/bold]")
    for name, output in sorted(outputs.items()):
        value = SENSITIVE_PLACEHOLDER if output.sensitive else output.value
        console.print(f"  [cyan]{name}[/cyan] = {escape(str(value))}")
