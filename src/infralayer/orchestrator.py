"""
Orchestrator for the plan/apply workflow.

Coordinates loading, graph building, refresh, planning and execution against
one state store and one backend. CLI commands are thin wrappers around it.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

from infralayer.backends import create_backend
from infralayer.backends.base import Backend, BackendHealth
from infralayer.config.settings import Settings, get_settings
from infralayer.engine.executor import Executor
from infralayer.engine.models import ChangeSet
from infralayer.engine.outputs import evaluate_outputs
from infralayer.engine.planfile import SavedPlan
from infralayer.engine.planner import destroy_plan, plan
from infralayer.engine.refresh import RefreshResult, refresh
from infralayer.engine.results import ApplyReport
from infralayer.engine.retry import RetryPolicy
from infralayer.graph.builder import Graph, build
from infralayer.specs.loader import load_configuration
from infralayer.specs.models import Configuration
from infralayer.state.models import OutputValue
from infralayer.state.store import LocalStateStore, StateStore

logger = structlog.get_logger()


@dataclass
class ValidationResult:
    """Result of validating a configuration."""

    config: Configuration
    graph: Graph

    @property
    def resource_count(self) -> int:
        return len(self.graph)


@dataclass
class PlanResult:
    """A computed plan plus what refresh found."""

    saved: SavedPlan
    refreshed: Optional[RefreshResult] = None
    duration_seconds: float = 0.0

    @property
    def changeset(self) -> ChangeSet:
        return self.saved.changeset


@dataclass
class ApplyResult:
    """Result of applying a plan."""

    report: ApplyReport
    outputs: Dict[str, OutputValue] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.report.success


def backend_options(settings: Settings) -> Dict[str, Any]:
    """Factory keyword arguments for the configured backend."""
    if settings.backend == "local":
        return {"root": settings.backend_dir}
    if settings.backend == "http":
        return {
            "url": settings.backend_url,
            "token": settings.backend_token,
            "timeout": settings.operation_timeout,
        }
    return {}


class Orchestrator:
    """Runs the workflow for one configuration, state store and backend."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        config_file: str | Path | None = None,
        var_file: str | Path | None = None,
        store: StateStore | None = None,
        backend: Backend | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.config_file = Path(config_file or self.settings.config_file)
        self.var_file = var_file or self.settings.var_file
        self._store = store
        self._backend = backend
        self.policy = RetryPolicy.from_settings(self.settings)

    @property
    def store(self) -> StateStore:
        if self._store is None:
            self._store = LocalStateStore(Path(self.settings.state_path))
        return self._store

    @property
    def backend(self) -> Backend:
        if self._backend is None:
            self._backend = create_backend(self.settings.backend, **backend_options(self.settings))
        return self._backend

    def load(self) -> Configuration:
        return load_configuration(self.config_file, var_file=self.var_file)

    def validate(self) -> ValidationResult:
        """Load the configuration and build its dependency graph.

        Raises:
            ConfigurationError: On any configuration problem, including cycles
        """
        config = self.load()
        graph = build(config.resources)
        logger.info("configuration_validated", path=str(self.config_file), resources=len(graph))
        return ValidationResult(config=config, graph=graph)

    async def initialize(self) -> BackendHealth:
        """Prepare the working directory and state file, then check backend health."""
        Path(self.settings.working_dir).mkdir(parents=True, exist_ok=True)
        store = self.store
        if isinstance(store, LocalStateStore) and store.initialize():
            logger.info("state_initialized", path=str(store.path))
        return await self.backend.health_check()

    async def plan(self, *, refresh_state: bool = True, destroy: bool = False) -> PlanResult:
        """
        Compute a plan.

        Args:
            refresh_state: Reconcile state with the backend first (drift detection)
            destroy: Plan deletion of every recorded resource

        Returns:
            PlanResult holding the ChangeSet and the outputs to evaluate after apply
        """
        started = time.monotonic()
        validated = None if destroy else self.validate()

        refreshed = None
        if refresh_state:
            refreshed = await refresh(
                self.store,
                self.backend,
                policy=self.policy,
                parallelism=self.settings.parallelism,
            )

        snapshot = self.store.snapshot()
        if destroy:
            changeset = destroy_plan(snapshot, state_serial=self.store.serial)
        else:
            changeset = plan(validated.graph, snapshot, state_serial=self.store.serial)
        if refreshed is not None:
            changeset.drifted = list(refreshed.drifted) + list(refreshed.vanished)

        outputs = dict(validated.config.outputs) if validated else {}
        saved = SavedPlan(changeset=changeset, outputs=outputs)
        return PlanResult(
            saved=saved,
            refreshed=refreshed,
            duration_seconds=time.monotonic() - started,
        )

    async def apply(
        self,
        saved: SavedPlan,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> ApplyResult:
        """
        Execute a plan and record outputs.

        Raises:
            StalePlanError: If state changed since the plan was computed
        """
        saved.check_current(self.store.serial)
        executor = Executor(
            self.backend,
            self.store,
            parallelism=self.settings.parallelism,
            policy=self.policy,
            cancel_event=cancel_event,
        )
        report = await executor.apply(saved.changeset)

        if saved.changeset.destroy:
            outputs: Dict[str, OutputValue] = {}
        else:
            outputs = evaluate_outputs(saved.outputs, self.store.snapshot())
        await self.store.set_outputs(outputs)
        return ApplyResult(report=report, outputs=outputs)

    def outputs(self) -> Dict[str, OutputValue]:
        return self.store.outputs()
