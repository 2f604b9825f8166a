"""Tests for the built-in backends and the backend registry."""

import json

import pytest
import respx
from httpx import ConnectError, Response

from infralayer.backends import create_backend, list_backends
from infralayer.backends.http import HttpBackend, is_retryable_status
from infralayer.backends.local import LocalBackend
from infralayer.backends.memory import InMemoryBackend
from infralayer.core.errors import (
    ConfigurationError,
    PermanentBackendError,
    TransientBackendError,
)
from infralayer.specs.models import ResourceIdentity

BASE_URL = "https://infra.example.com"
DB = ResourceIdentity("database", "main")


class TestRegistry:
    def test_builtin_backends_registered(self):
        assert {spec.name for spec in list_backends()} >= {"http", "local", "memory"}

    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError, match="not registered"):
            create_backend("mainframe")

    def test_http_backend_requires_url(self):
        with pytest.raises(ConfigurationError, match="requires a URL"):
            create_backend("http")

    def test_factories_pass_options(self, tmp_path):
        local = create_backend("local", root=str(tmp_path))
        http = create_backend("http", url=BASE_URL, token="secret", timeout=5)

        assert isinstance(local, LocalBackend)
        assert local.root == tmp_path
        assert isinstance(http, HttpBackend)
        assert isinstance(create_backend("memory"), InMemoryBackend)


class TestInMemoryBackend:
    @pytest.mark.asyncio
    async def test_lifecycle(self):
        backend = InMemoryBackend()

        created = await backend.create(DB, {"tier": "standard"})
        updated = await backend.update(DB, {"tier": "premium"})
        await backend.delete(DB)

        assert created["id"] == updated["id"] == "database-1"
        assert updated["tier"] == "premium"
        assert await backend.read(DB) is None

    @pytest.mark.asyncio
    async def test_scripted_failures_raised_once_in_order(self):
        backend = InMemoryBackend()
        backend.fail("create", "database.main", TransientBackendError("a"), ValueError("b"))

        with pytest.raises(TransientBackendError):
            await backend.create(DB, {})
        with pytest.raises(ValueError):
            await backend.create(DB, {})

        assert (await backend.create(DB, {}))["id"] == "database-1"

    @pytest.mark.asyncio
    async def test_update_missing_resource_is_permanent(self):
        with pytest.raises(PermanentBackendError):
            await InMemoryBackend().update(DB, {})


class TestLocalBackend:
    @pytest.mark.asyncio
    async def test_resources_stored_as_documents(self, tmp_path):
        backend = LocalBackend(tmp_path)

        created = await backend.create(DB, {"tier": "standard"})
        document = json.loads((tmp_path / "database" / "main.json").read_text())

        assert document == created
        assert created["id"].startswith("database-")
        assert await backend.read(DB) == created

    @pytest.mark.asyncio
    async def test_update_keeps_id(self, tmp_path):
        backend = LocalBackend(tmp_path)
        created = await backend.create(DB, {"tier": "standard"})

        updated = await backend.update(DB, {"tier": "premium"})

        assert updated == {"tier": "premium", "id": created["id"]}

    @pytest.mark.asyncio
    async def test_create_existing_is_permanent(self, tmp_path):
        backend = LocalBackend(tmp_path)
        await backend.create(DB, {})

        with pytest.raises(PermanentBackendError, match="already exists"):
            await backend.create(DB, {})

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, tmp_path):
        backend = LocalBackend(tmp_path)
        await backend.create(DB, {})

        await backend.delete(DB)
        await backend.delete(DB)

        assert await backend.read(DB) is None

    @pytest.mark.asyncio
    async def test_invalid_document_is_permanent(self, tmp_path):
        (tmp_path / "database").mkdir()
        (tmp_path / "database" / "main.json").write_text("{oops")

        with pytest.raises(PermanentBackendError):
            await LocalBackend(tmp_path).read(DB)

    @pytest.mark.asyncio
    async def test_health_check_creates_root(self, tmp_path):
        backend = LocalBackend(tmp_path / "resources")

        health = await backend.health_check()

        assert health.status == "healthy"
        assert (tmp_path / "resources").is_dir()


class TestHttpBackend:
    """Tests for the JSON resource API backend."""

    @pytest.mark.asyncio
    async def test_create_posts_name_and_attributes(self):
        backend = HttpBackend(BASE_URL, token="secret")

        with respx.mock:
            route = respx.post(f"{BASE_URL}/resources/database").mock(
                return_value=Response(201, json={"tier": "standard", "id": "db-1"})
            )

            attributes = await backend.create(DB, {"tier": "standard"})

            request = route.calls.last.request
            assert json.loads(request.content) == {
                "name": "main",
                "attributes": {"tier": "standard"},
            }
            assert request.headers["Authorization"] == "Bearer secret"
        assert attributes == {"tier": "standard", "id": "db-1"}

    @pytest.mark.asyncio
    async def test_update_and_delete(self):
        backend = HttpBackend(BASE_URL)

        with respx.mock:
            put = respx.put(f"{BASE_URL}/resources/database/main").mock(
                return_value=Response(200, json={"tier": "premium", "id": "db-1"})
            )
            delete = respx.delete(f"{BASE_URL}/resources/database/main").mock(
                return_value=Response(204)
            )

            updated = await backend.update(DB, {"tier": "premium"})
            await backend.delete(DB)

            assert "Authorization" not in put.calls.last.request.headers
            assert delete.call_count == 1
        assert updated["tier"] == "premium"

    @pytest.mark.asyncio
    async def test_read_missing_resource_returns_none(self):
        backend = HttpBackend(BASE_URL)

        with respx.mock:
            respx.get(f"{BASE_URL}/resources/database/main").mock(return_value=Response(404))

            assert await backend.read(DB) is None

    @pytest.mark.asyncio
    async def test_delete_missing_resource_succeeds(self):
        backend = HttpBackend(BASE_URL)

        with respx.mock:
            respx.delete(f"{BASE_URL}/resources/database/main").mock(return_value=Response(404))

            await backend.delete(DB)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [429, 500, 503])
    async def test_retryable_status_is_transient(self, status):
        backend = HttpBackend(BASE_URL)

        with respx.mock:
            route = respx.post(f"{BASE_URL}/resources/database").mock(
                return_value=Response(status)
            )

            with pytest.raises(TransientBackendError) as exc_info:
                await backend.create(DB, {})

            assert route.call_count == 1
        assert exc_info.value.details["status"] == status
        assert exc_info.value.details["resource"] == "database.main"

    @pytest.mark.asyncio
    async def test_client_error_is_permanent(self):
        backend = HttpBackend(BASE_URL)

        with respx.mock:
            respx.put(f"{BASE_URL}/resources/database/main").mock(
                return_value=Response(400, json={"error": "invalid tier"})
            )

            with pytest.raises(PermanentBackendError, match="HTTP 400"):
                await backend.update(DB, {"tier": "gold"})

    @pytest.mark.asyncio
    async def test_network_error_is_transient(self):
        backend = HttpBackend(BASE_URL)

        with respx.mock:
            respx.get(f"{BASE_URL}/resources/database/main").mock(
                side_effect=ConnectError("connection refused")
            )

            with pytest.raises(TransientBackendError):
                await backend.read(DB)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response,status",
        [
            (Response(200, json={"ok": True}), "healthy"),
            (Response(503), "unreachable"),
            (Response(401), "degraded"),
        ],
    )
    async def test_health_check(self, response, status):
        backend = HttpBackend(BASE_URL)

        with respx.mock:
            respx.get(f"{BASE_URL}/health").mock(return_value=response)

            health = await backend.health_check()

        assert health.status == status

    def test_retryable_statuses(self):
        assert is_retryable_status(503)
        assert not is_retryable_status(404)
