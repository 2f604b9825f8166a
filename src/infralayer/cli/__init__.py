"""
CLI commands for InfraLayer.
"""

from infralayer.cli.apply import apply_command, destroy_command
from infralayer.cli.init import init_command
from infralayer.cli.output import output_command
from infralayer.cli.plan import plan_command
from infralayer.cli.validate import validate_command

__all__ = [
    "apply_command",
    "destroy_command",
    "init_command",
    "output_command",
    "plan_command",
    "validate_command",
]
