from __future__ import annotations

import asyncio
import json
import uuid
from pathlib import Path
from typing import Any, Optional

from infralayer.backends.base import Attributes, BackendHealth
from infralayer.backends.registry import register_backend
from infralayer.core.errors import PermanentBackendError, TransientBackendError
from infralayer.specs.models import ResourceIdentity

DEFAULT_RESOURCE_DIR = Path(".infralayer/resources")


class LocalBackend:
    """Simulated cloud that stores each resource as a JSON document on disk.

    Layout: ``<root>/<type>/<name>.json``. Useful for local workflows and
    demos where no real API is available.
    """

    name = "local"

    def __init__(self, root: Path | None = None) -> None:
        self.root = Path(root) if root else DEFAULT_RESOURCE_DIR

    def _path(self, identity: ResourceIdentity) -> Path:
        return self.root / identity.type / f"{identity.name}.json"

    async def _load(self, identity: ResourceIdentity) -> Optional[Attributes]:
        path = self._path(identity)
        if not path.exists():
            return None
        try:
            text = await asyncio.to_thread(path.read_text)
        except OSError as e:
            raise TransientBackendError(
                f"Cannot read {path}: {e}", {"resource": identity.address}
            ) from e
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise PermanentBackendError(
                f"Resource document {path} is not valid JSON: {e}", {"resource": identity.address}
            ) from e

    async def _store(self, identity: ResourceIdentity, attributes: Attributes) -> None:
        path = self._path(identity)
        payload = json.dumps(attributes, indent=2, sort_keys=True) + "\n"

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(payload)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise TransientBackendError(
                f"Cannot write {path}: {e}", {"resource": identity.address}
            ) from e

    async def create(self, identity: ResourceIdentity, attributes: Attributes) -> Attributes:
        if await self._load(identity) is not None:
            raise PermanentBackendError(
                f"{identity} already exists", {"resource": identity.address, "operation": "create"}
            )
        record = dict(attributes)
        record["id"] = f"{identity.type}-{uuid.uuid4().hex[:12]}"
        await self._store(identity, record)
        return record

    async def update(self, identity: ResourceIdentity, attributes: Attributes) -> Attributes:
        current = await self._load(identity)
        if current is None:
            raise PermanentBackendError(
                f"{identity} does not exist", {"resource": identity.address, "operation": "update"}
            )
        record = dict(attributes)
        record["id"] = current["id"]
        await self._store(identity, record)
        return record

    async def delete(self, identity: ResourceIdentity) -> None:
        path = self._path(identity)
        try:
            await asyncio.to_thread(path.unlink, True)
        except OSError as e:
            raise TransientBackendError(
                f"Cannot delete {path}: {e}", {"resource": identity.address}
            ) from e

    async def read(self, identity: ResourceIdentity) -> Optional[Attributes]:
        return await self._load(identity)

    async def health_check(self) -> BackendHealth:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return BackendHealth(status="unreachable", details=str(e))
        return BackendHealth(status="healthy", details=str(self.root))


def _factory(**kwargs: Any) -> LocalBackend:
    root = kwargs.get("root")
    return LocalBackend(Path(root) if root else None)


register_backend(
    LocalBackend.name,
    _factory,
    description="Resources stored as JSON files under a local directory",
)

__all__ = ["LocalBackend"]
