"""
CLI UX utilities built on rich and questionary.

Environment handling:
- Automatically detects TTY vs pipe/CI
- Respects NO_COLOR and FORCE_COLOR environment variables
- Never prompts in non-interactive environments
"""

from __future__ import annotations

import json
import os
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import questionary
from questionary import Style as QStyle
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.theme import Theme

# Nord color palette (https://www.nordtheme.com/)
INFRALAYER_THEME = Theme(
    {
        "info": "#88C0D0",
        "success": "#A3BE8C",
        "warning": "#EBCB8B",
        "error": "#BF616A bold",
        "highlight": "#B48EAD",
        "muted": "#D8DEE9",
        "create": "#A3BE8C",
        "update": "#EBCB8B",
        "replace": "#D08770",
        "delete": "#BF616A",
    }
)

CHANGE_SYMBOLS = {
    "create": "+",
    "update": "~",
    "replace": "-/+",
    "delete": "-",
    "no-op": " ",
}


def _is_interactive() -> bool:
    """Check if we're in an interactive terminal environment."""
    ci_vars = ["CI", "GITHUB_ACTIONS", "JENKINS_URL", "GITLAB_CI", "CIRCLECI", "TRAVIS"]
    if any(os.environ.get(var) for var in ci_vars):
        return False
    return sys.stdin.isatty() and sys.stdout.isatty()


console = Console(
    theme=INFRALAYER_THEME,
    force_terminal=os.environ.get("FORCE_COLOR") is not None,
    no_color=os.environ.get("NO_COLOR") is not None,
    highlight=False,
)

PROMPT_STYLE = QStyle(
    [
        ("qmark", "fg:#88C0D0 bold"),
        ("question", "bold"),
        ("answer", "fg:#A3BE8C"),
        ("pointer", "fg:#88C0D0 bold"),
        ("highlighted", "fg:#81A1C1 bold"),
        ("selected", "fg:#A3BE8C"),
    ]
)


@contextmanager
def spinner(message: str) -> Iterator[None]:
    """Show a spinner while work is in progress."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
        disable=not _is_interactive(),
    ) as progress:
        progress.add_task(description=message, total=None)
        yield


# === Output Formatting ===


def success(message: str) -> None:
    console.print(f"[success]✓ {escape(message)}[/success]")


def error(message: str) -> None:
    console.print(f"[error]✗ {escape(message)}[/error]")


def warning(message: str) -> None:
    console.print(f"[warning]⚠ {escape(message)}[/warning]")


def info(message: str) -> None:
    console.print(f"[info]ℹ {escape(message)}[/info]")


def header(title: str) -> None:
    """Print a section header."""
    console.print()
    console.print(Panel(f"[bold]{title}[/bold]", border_style="cyan"))


def print_table(
    title: str | None,
    columns: list[str],
    rows: list[list[str]],
    show_header: bool = True,
) -> None:
    """Print a formatted table."""
    table = Table(title=title, show_header=show_header)
    for col in columns:
        table.add_column(col)
    for row in rows:
        table.add_row(*row)
    console.print(table)


def print_key_value(items: dict[str, str], title: str | None = None) -> None:
    """Print key-value pairs."""
    if title:
        console.print(f"\n[bold]{title}[/bold]")
    for key, value in items.items():
        console.print(f"  [cyan]{key}:[/cyan] {value}")


def print_json(data: Any) -> None:
    """Print JSON to stdout without rich markup or wrapping."""
    print(json.dumps(data, indent=2, sort_keys=True))


# === Interactive Prompts ===


async def confirm_async(message: str, default: bool = False) -> bool:
    """Ask for confirmation inside a running event loop. Always False when not interactive."""
    if not _is_interactive():
        return False
    question = questionary.confirm(message, default=default, style=PROMPT_STYLE)
    return await question.ask_async() or False
