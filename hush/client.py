"""HTTP client for the hush daemon.

Every call opens its own short-lived aiohttp session and is attempted
exactly once. Failures surface immediately as typed errors naming the
operation; retrying is left to the caller.

The client only ever sends and receives envelopes. Sealing and opening
happen in the caller with the local master key.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

import aiohttp

from .errors import RemoteError, TransportError, UnauthorizedError


@dataclass
class RemoteSecret:
    key: str
    value: str
    project: str
    environment: str
    updated_at: str


class SecretClient:
    """Authenticated, single-attempt client for the daemon's HTTP API."""

    def __init__(self, base_url: str, token: str, timeout: float | None = None):
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = aiohttp.ClientTimeout(total=timeout) if timeout else None

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    def _session(self) -> aiohttp.ClientSession:
        if self._timeout is None:
            return aiohttp.ClientSession()
        return aiohttp.ClientSession(timeout=self._timeout)

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        expected: tuple[int, ...] = (200,),
        authenticated: bool = True,
        **kwargs: Any,
    ) -> Any:
        headers = self._headers() if authenticated else {}
        try:
            async with (
                self._session() as session,
                session.request(
                    method, f"{self.base_url}{path}", headers=headers, **kwargs
                ) as resp,
            ):
                if resp.status == 401:
                    raise UnauthorizedError(f"{operation}: server rejected the token")
                if resp.status not in expected:
                    error = await resp.text()
                    raise RemoteError(operation, resp.status, error)
                try:
                    return await resp.json()
                except (aiohttp.ContentTypeError, ValueError) as exc:
                    raise RemoteError(
                        operation, resp.status, "response is not valid JSON"
                    ) from exc
        except aiohttp.ClientError as exc:
            raise TransportError(operation, str(exc) or type(exc).__name__) from exc
        except asyncio.TimeoutError as exc:
            raise TransportError(operation, "timed out") from exc

    async def push_secret(
        self, project: str, environment: str, key: str, envelope: str
    ) -> None:
        """Upsert one sealed value on the server."""
        await self._request(
            f"push {key}",
            "POST",
            "/api/secrets",
            expected=(200, 201),
            json={
                "key": key,
                "value": envelope,
                "project": project,
                "environment": environment,
            },
        )

    async def fetch_secrets(self, project: str, environment: str) -> list[RemoteSecret]:
        """Fetch every envelope stored for one project/environment."""
        operation = f"fetch {project}/{environment}"
        data = await self._request(
            operation,
            "GET",
            "/api/secrets",
            params={"project": project, "environment": environment},
        )
        if data is None:
            return []
        try:
            return [
                RemoteSecret(
                    key=item["key"],
                    value=item["value"],
                    project=item["project"],
                    environment=item["environment"],
                    updated_at=item.get("updated_at", ""),
                )
                for item in data
            ]
        except (KeyError, TypeError) as exc:
            raise RemoteError(operation, 200, "unexpected response shape") from exc

    async def list_projects(self) -> list[str]:
        data = await self._request("list projects", "GET", "/api/projects")
        if not isinstance(data, list):
            raise RemoteError("list projects", 200, "unexpected response shape")
        return [str(p) for p in data]

    async def ping(self) -> None:
        """Check that the daemon is up. Does not send the token."""
        await self._request("health check", "GET", "/health", authenticated=False)
