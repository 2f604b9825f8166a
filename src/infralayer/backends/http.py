"""REST resource API backend.

Expects a service exposing:

    POST   /resources/{type}          {"name": ..., "attributes": {...}} -> attributes
    PUT    /resources/{type}/{name}   {"attributes": {...}}              -> attributes
    DELETE /resources/{type}/{name}
    GET    /resources/{type}/{name}                                      -> attributes | 404
    GET    /health

Retry is the executor's job; this module only classifies failures.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
import structlog

from infralayer.backends.base import Attributes, BackendHealth
from infralayer.backends.registry import register_backend
from infralayer.core.errors import (
    ConfigurationError,
    PermanentBackendError,
    TransientBackendError,
)
from infralayer.specs.models import ResourceIdentity

logger = structlog.get_logger()


def is_retryable_status(status_code: int) -> bool:
    """Determine if HTTP status code is retryable."""
    return status_code in (408, 429, 500, 502, 503, 504)


class HttpBackend:
    """Backend speaking JSON over HTTP."""

    name = "http"

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        identity: ResourceIdentity | None = None,
        operation: str,
        json: Dict[str, Any] | None = None,
        allow_missing: bool = False,
    ) -> Optional[Dict[str, Any]]:
        url = f"{self._base_url}{path}"
        details: Dict[str, Any] = {"operation": operation, "url": url}
        if identity is not None:
            details["resource"] = identity.address

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.request(method, url, json=json, headers=self._headers())
        except (httpx.TimeoutException, httpx.NetworkError) as exc:
            logger.warning("backend_network_error", method=method, url=url, error=str(exc))
            raise TransientBackendError(f"{method} {url} failed: {exc}", details) from exc

        if allow_missing and response.status_code == 404:
            return None
        if is_retryable_status(response.status_code):
            logger.warning(
                "backend_retryable_error", status=response.status_code, method=method, url=url
            )
            raise TransientBackendError(
                f"HTTP {response.status_code}: {response.text}",
                {**details, "status": response.status_code},
            )
        if response.is_error:
            logger.error(
                "backend_permanent_error", status=response.status_code, method=method, url=url
            )
            raise PermanentBackendError(
                f"HTTP {response.status_code}: {response.text}",
                {**details, "status": response.status_code},
            )
        return response.json() if response.content else {}

    async def create(self, identity: ResourceIdentity, attributes: Attributes) -> Attributes:
        body = await self._request(
            "POST",
            f"/resources/{identity.type}",
            identity=identity,
            operation="create",
            json={"name": identity.name, "attributes": attributes},
        )
        return dict(body or {})

    async def update(self, identity: ResourceIdentity, attributes: Attributes) -> Attributes:
        body = await self._request(
            "PUT",
            f"/resources/{identity.type}/{identity.name}",
            identity=identity,
            operation="update",
            json={"attributes": attributes},
        )
        return dict(body or {})

    async def delete(self, identity: ResourceIdentity) -> None:
        await self._request(
            "DELETE",
            f"/resources/{identity.type}/{identity.name}",
            identity=identity,
            operation="delete",
            allow_missing=True,
        )

    async def read(self, identity: ResourceIdentity) -> Optional[Attributes]:
        return await self._request(
            "GET",
            f"/resources/{identity.type}/{identity.name}",
            identity=identity,
            operation="read",
            allow_missing=True,
        )

    async def health_check(self) -> BackendHealth:
        try:
            await self._request("GET", "/health", operation="health")
        except TransientBackendError as exc:
            return BackendHealth(status="unreachable", details=exc.message)
        except PermanentBackendError as exc:
            return BackendHealth(status="degraded", details=exc.message)
        return BackendHealth(status="healthy")


def _factory(**kwargs: Any) -> HttpBackend:
    url = kwargs.get("url")
    if not url:
        raise ConfigurationError(
            "The http backend requires a URL (set INFRALAYER_BACKEND_URL)", {"backend": "http"}
        )
    return HttpBackend(url, token=kwargs.get("token"), timeout=float(kwargs.get("timeout", 30.0)))


register_backend(
    HttpBackend.name,
    _factory,
    description="JSON resource API over HTTP",
)

__all__ = ["HttpBackend", "is_retryable_status"]
