"""
State storage.

The state store is the durable record of last-applied resource attributes.
The executor writes to it after every completed operation; the planner reads
snapshots of it. Access is serialized per resource identity, never globally,
so independent branches of the graph can be applied concurrently.
"""

from __future__ import annotations

import asyncio
import copy
import json
import os
import tempfile
import uuid
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

from infralayer.core.errors import StateCorruptionError
from infralayer.specs.models import ResourceIdentity
from infralayer.state.models import OutputValue, StateRecord

logger = structlog.get_logger()

STATE_VERSION = 1
DEFAULT_STATE_PATH = Path("infralayer.state.json")

StateSnapshot = Dict[ResourceIdentity, StateRecord]


class StateStore:
    """In-memory state store; subclasses add persistence via ``_persist``."""

    def __init__(self) -> None:
        self._records: Dict[ResourceIdentity, StateRecord] = {}
        self._outputs: Dict[str, OutputValue] = {}
        self._locks: Dict[ResourceIdentity, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._serial = 0
        self.lineage = str(uuid.uuid4())

    @property
    def serial(self) -> int:
        """Incremented on every change; used to detect stale plans."""
        return self._serial

    def lock(self, identity: ResourceIdentity) -> asyncio.Lock:
        return self._locks[identity]

    async def read(self, identity: ResourceIdentity) -> Optional[StateRecord]:
        async with self.lock(identity):
            record = self._records.get(identity)
            return copy.deepcopy(record) if record is not None else None

    async def write(self, identity: ResourceIdentity, record: StateRecord) -> None:
        if record.identity != identity:
            raise ValueError(f"Record for {record.address} written under {identity.address}")
        async with self.lock(identity):
            self._records[identity] = copy.deepcopy(record)
            await self._commit()
        logger.debug("state_written", resource=identity.address, serial=self._serial)

    async def delete(self, identity: ResourceIdentity) -> None:
        async with self.lock(identity):
            if self._records.pop(identity, None) is not None:
                await self._commit()
        logger.debug("state_deleted", resource=identity.address, serial=self._serial)

    def snapshot(self) -> StateSnapshot:
        """Copy of every record, in stable address order."""
        return {
            identity: copy.deepcopy(self._records[identity]) for identity in sorted(self._records)
        }

    def outputs(self) -> Dict[str, OutputValue]:
        return dict(self._outputs)

    async def set_outputs(self, outputs: Dict[str, OutputValue]) -> None:
        if outputs == self._outputs:
            return
        self._outputs = dict(outputs)
        await self._commit()

    async def _commit(self) -> None:
        self._serial += 1
        await self._persist()

    async def _persist(self) -> None:
        """Hook for durable stores. Awaited while holding the identity lock."""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": STATE_VERSION,
            "serial": self._serial,
            "lineage": self.lineage,
            "resources": [record.to_dict() for record in self.snapshot().values()],
            "outputs": {
                name: {"value": output.value, "sensitive": output.sensitive}
                for name, output in sorted(self._outputs.items())
            },
        }

    def _load_dict(self, data: Any, source: str) -> None:
        if not isinstance(data, dict):
            raise StateCorruptionError("State must be a JSON object", {"path": source})
        version = data.get("version")
        if version != STATE_VERSION:
            raise StateCorruptionError(
                f"Unsupported state version: {version!r}", {"path": source}
            )
        records: Dict[ResourceIdentity, StateRecord] = {}
        try:
            for raw in data.get("resources", []):
                record = StateRecord.from_dict(raw)
                if record.identity in records:
                    raise StateCorruptionError(
                        f"Resource {record.address} recorded twice",
                        {"path": source, "resource": record.address},
                    )
                records[record.identity] = record
            outputs = {
                name: OutputValue(value=raw["value"], sensitive=bool(raw.get("sensitive", False)))
                for name, raw in (data.get("outputs") or {}).items()
            }
            serial = int(data.get("serial", 0))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise StateCorruptionError(f"Malformed state: {e}", {"path": source}) from e

        self._records = records
        self._outputs = outputs
        self._serial = serial
        self.lineage = str(data.get("lineage") or self.lineage)


class MemoryStateStore(StateStore):
    """Non-durable store for tests and dry runs."""


class LocalStateStore(StateStore):
    """JSON state file, rewritten atomically after every change.

    Never repairs a corrupt file: an unreadable or inconsistent state raises
    StateCorruptionError and requires manual intervention.
    """

    def __init__(self, path: Path | None = None) -> None:
        super().__init__()
        self.path = path or DEFAULT_STATE_PATH
        # Serializes file writes only; record access stays per identity
        self._write_lock = asyncio.Lock()
        if self.path.exists():
            self._load()

    def _load(self) -> None:
        try:
            data = json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise StateCorruptionError(
                f"State file {self.path} is unreadable: {e}", {"path": str(self.path)}
            ) from e
        self._load_dict(data, str(self.path))
        logger.debug("state_loaded", path=str(self.path), serial=self._serial)

    def _payload(self) -> str:
        return json.dumps(self.to_dict(), indent=2, sort_keys=True) + "\n"

    async def _persist(self) -> None:
        # Payload built inside the lock: files land in serial order
        async with self._write_lock:
            await asyncio.to_thread(self._write, self._payload())

    def _write(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def initialize(self) -> bool:
        """Create an empty state file if none exists. Returns True when created."""
        if self.path.exists():
            return False
        self._write(self._payload())
        return True
