"""Command-line entry point: ``infralayer <command> [options]``."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, Sequence

from infralayer import __version__
from infralayer.config.settings import Settings, get_settings
from infralayer.logging import configure_logging


def _common_options() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", "-c", help="Configuration file (default: main.infra.yaml)")
    common.add_argument("--var-file", help="YAML/JSON file overriding variable defaults")
    common.add_argument("--state", help="State file (default: infralayer.state.json)")
    common.add_argument("--backend", help="Backend name: local, http or memory")
    common.add_argument("--backend-dir", help="Resource directory for the local backend")
    common.add_argument("--backend-url", help="Base URL for the http backend")
    common.add_argument("--parallelism", type=int, help="Maximum concurrent operations")
    common.add_argument("--log-level", help="Log level (default: WARNING)")
    return common


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="infralayer",
        description="Plan and apply declarative infrastructure",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command")
    common = _common_options()

    subparsers.add_parser(
        "init", parents=[common], help="Prepare working directory, state and backend"
    )

    validate_parser = subparsers.add_parser(
        "validate", parents=[common], help="Validate configuration without touching state"
    )
    validate_parser.add_argument(
        "--verbose", "-v", action="store_true", help="Show resources in apply order"
    )

    plan_parser = subparsers.add_parser("plan", parents=[common], help="Show planned changes")
    plan_parser.add_argument("-out", "--out", dest="out", help="Save the plan to this file")
    plan_parser.add_argument(
        "--no-refresh", dest="refresh", action="store_false", help="Skip drift detection"
    )
    plan_parser.add_argument(
        "-destroy", "--destroy", dest="destroy", action="store_true", help="Plan a full destroy"
    )

    apply_parser = subparsers.add_parser("apply", parents=[common], help="Apply changes")
    apply_parser.add_argument("plan_file", nargs="?", help="Saved plan from 'plan -out'")
    apply_parser.add_argument(
        "-auto-approve",
        "--auto-approve",
        dest="auto_approve",
        action="store_true",
        help="Skip interactive approval",
    )
    apply_parser.add_argument(
        "--no-refresh", dest="refresh", action="store_false", help="Skip drift detection"
    )

    output_parser = subparsers.add_parser("output", parents=[common], help="Show outputs")
    output_parser.add_argument("name", nargs="?", help="Output to show (reveals sensitive values)")
    output_parser.add_argument(
        "-json", "--json", dest="as_json", action="store_true", help="Print outputs as JSON"
    )

    destroy_parser = subparsers.add_parser(
        "destroy", parents=[common], help="Delete every managed resource"
    )
    destroy_parser.add_argument(
        "-auto-approve",
        "--auto-approve",
        dest="auto_approve",
        action="store_true",
        help="Skip interactive approval",
    )
    destroy_parser.add_argument(
        "--no-refresh", dest="refresh", action="store_false", help="Skip drift detection"
    )

    return parser


def resolve_settings(args: argparse.Namespace) -> Settings:
    """Environment/.env settings with command-line flags applied on top."""
    updates: Dict[str, Any] = {}
    if args.config:
        updates["config_file"] = Path(args.config)
    if args.var_file:
        updates["var_file"] = Path(args.var_file)
    if args.state:
        updates["state_path"] = Path(args.state)
    if args.backend:
        updates["backend"] = args.backend
    if args.backend_dir:
        updates["backend_dir"] = Path(args.backend_dir)
    if args.backend_url:
        updates["backend_url"] = args.backend_url
    if args.parallelism is not None:
        updates["parallelism"] = args.parallelism
    if args.log_level:
        updates["log_level"] = args.log_level
    return get_settings().model_copy(update=updates)


def run(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    settings = resolve_settings(args)
    configure_logging(settings.log_level)

    if args.command == "init":
        from infralayer.cli.init import init_command

        return init_command(settings)

    if args.command == "validate":
        from infralayer.cli.validate import validate_command

        return validate_command(settings, verbose=args.verbose)

    if args.command == "plan":
        from infralayer.cli.plan import plan_command

        return plan_command(settings, out=args.out, refresh=args.refresh, destroy=args.destroy)

    if args.command == "apply":
        from infralayer.cli.apply import apply_command

        return apply_command(
            settings,
            plan_file=args.plan_file,
            auto_approve=args.auto_approve,
            refresh=args.refresh,
        )

    if args.command == "output":
        from infralayer.cli.output import output_command

        return output_command(settings, name=args.name, as_json=args.as_json)

    if args.command == "destroy":
        from infralayer.cli.apply import destroy_command

        return destroy_command(settings, auto_approve=args.auto_approve, refresh=args.refresh)

    parser.error(f"unknown command: {args.command}")
    return 2


def main(argv: Sequence[str] | None = None) -> None:
    sys.exit(run(argv))


if __name__ == "__main__":
    main()
