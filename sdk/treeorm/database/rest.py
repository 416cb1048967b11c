"""
REST backend for the tree database.

Speaks the JSON-over-HTTP protocol of hosted realtime tree databases:
- GET    {url}{path}.json      point read
- PUT    {url}{path}.json      point write (null deletes)
- PATCH  {url}/.json           atomic multi-path write, keys are paths

Invariants:
    - Every request carries the auth token as the ``auth`` query parameter
    - DELETE markers are sent as JSON null
    - The token is never logged

How to change safely:
    - Keep request shapes compatible with the hosted protocol
    - Map every transport failure to DatabaseError
"""

from __future__ import annotations

from typing import Any, Dict
import logging

import httpx

from ..ids import generate_push_key
from ..paths import join_path, split_path
from .base import (
    DatabaseConnectionError,
    DatabaseError,
    is_delete,
    is_server_timestamp,
    SERVER_TIMESTAMP,
)

logger = logging.getLogger(__name__)


class RestTreeDatabase:
    """httpx based TreeDatabase backend.

    Example:
        >>> async with RestTreeDatabase("https://example.firebaseio.com") as db:
        ...     await db.update({"/blogs/b1/name": "Hello"})
    """

    def __init__(
        self,
        url: str,
        *,
        auth_token: str | None = None,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize REST backend.

        Args:
            url: Database root URL
            auth_token: Optional access token
            timeout: Request timeout in seconds
            client: Optional preconfigured client (tests pass a mock transport)
        """
        self._url = url.rstrip("/")
        self._auth_token = auth_token
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> RestTreeDatabase:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def get(self, path: str) -> Any:
        """Read the subtree at ``path``."""
        response = await self._request("GET", path)
        return response.json()

    async def set(self, path: str, value: Any) -> None:
        """Replace the subtree at ``path``."""
        await self._request("PUT", path, json=self._encode(value))

    async def update(self, updates: Dict[str, Any]) -> None:
        """Send one multi-path PATCH to the root."""
        body = {
            "/".join(split_path(path)): self._encode(value)
            for path, value in updates.items()
        }
        await self._request("PATCH", "/", json=body)
        logger.debug("Multi-path update sent", extra={"paths": len(body)})

    def push_key(self, path: str) -> str:
        """Push keys are generated client side, exactly as the server would."""
        return generate_push_key()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _url_for(self, path: str) -> str:
        segments = split_path(path)
        if not segments:
            return f"{self._url}/.json"
        return f"{self._url}{join_path(*segments)}.json"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        params = {"auth": self._auth_token} if self._auth_token else None
        try:
            response = await self._client.request(
                method, self._url_for(path), params=params, **kwargs
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DatabaseError(
                f"{method} {path} failed with status {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.TransportError as e:
            raise DatabaseConnectionError(f"{method} {path} failed: {e}") from e
        return response

    def _encode(self, value: Any) -> Any:
        if is_delete(value):
            return None
        if is_server_timestamp(value):
            return dict(SERVER_TIMESTAMP)
        if isinstance(value, dict):
            return {key: self._encode(child) for key, child in value.items()}
        return value
