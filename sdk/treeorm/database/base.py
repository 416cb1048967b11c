"""
Base protocol and types for the remote tree database.

This module defines the TreeDatabase protocol that all backends must
implement, along with the sentinel values understood by every backend.

Invariants:
    - Paths are absolute and slash-delimited
    - update() applies every path or none of them
    - DELETE and None both remove the node at a path
    - SERVER_TIMESTAMP is replaced by the backend's clock at write time

How to change safely:
    - Protocol changes require updating all implementations
    - Sentinels are part of the wire contract; never change their values
"""

from __future__ import annotations

from abc import abstractmethod
from types import MappingProxyType
from typing import (
    Any,
    Dict,
    Mapping,
    Protocol,
    runtime_checkable,
    TYPE_CHECKING,
)
import logging

if TYPE_CHECKING:
    from ..config import StoreSettings

logger = logging.getLogger(__name__)


class DatabaseError(Exception):
    """Base exception for database operations."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DatabaseConnectionError(DatabaseError):
    """Connection to the database failed."""
    pass


class _DeleteMarker:
    """Explicit marker for removing the node at a path."""

    _instance: _DeleteMarker | None = None

    def __new__(cls) -> _DeleteMarker:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DELETE"

    def __bool__(self) -> bool:
        return False


DELETE = _DeleteMarker()

# Write-time sentinel replaced with the server clock (Unix ms)
SERVER_TIMESTAMP: Mapping[str, str] = MappingProxyType({".sv": "timestamp"})


def is_server_timestamp(value: Any) -> bool:
    """Whether ``value`` is the server timestamp sentinel."""
    return isinstance(value, Mapping) and dict(value) == dict(SERVER_TIMESTAMP)


def is_delete(value: Any) -> bool:
    """Whether ``value`` removes the node it is written to."""
    return value is None or value is DELETE


@runtime_checkable
class TreeDatabase(Protocol):
    """Protocol for tree-structured key/value database backends.

    The protocol ensures:
    - Point reads of any subtree
    - Point writes of any subtree
    - Atomic multi-path writes

    Example:
        >>> db = InMemoryTreeDatabase()
        >>> await db.update({"/blogs/b1/name": "Hello", "/users/u1/blog": "b1"})
        >>> await db.get("/blogs/b1")
        {'name': 'Hello'}
    """

    @abstractmethod
    async def get(self, path: str) -> Any:
        """Read the subtree at ``path``.

        Returns:
            The stored value, or None if nothing is stored there
        """
        ...

    @abstractmethod
    async def set(self, path: str, value: Any) -> None:
        """Replace the subtree at ``path`` with ``value``."""
        ...

    @abstractmethod
    async def update(self, updates: Dict[str, Any]) -> None:
        """Apply a multi-path write atomically.

        Args:
            updates: Mapping of absolute path to value or DELETE

        Raises:
            DatabaseError: If the write is rejected; nothing is applied
        """
        ...

    @abstractmethod
    def push_key(self, path: str) -> str:
        """Generate a new time-ordered child key for ``path``."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""
        ...


def create_database(settings: "StoreSettings") -> TreeDatabase:
    """Factory function to create a database from settings.

    Args:
        settings: Store settings

    Returns:
        InMemoryTreeDatabase when no URL is configured, else RestTreeDatabase

    Raises:
        ConfigurationError: If the URL scheme is not supported
    """
    from ..errors import ConfigurationError
    from .memory import InMemoryTreeDatabase
    from .rest import RestTreeDatabase

    if not settings.database_url:
        logger.debug("No database URL configured, using in-memory database")
        return InMemoryTreeDatabase()
    if settings.database_url.startswith(("http://", "https://")):
        return RestTreeDatabase(
            settings.database_url,
            auth_token=settings.auth_token,
            timeout=settings.request_timeout,
        )
    raise ConfigurationError(
        f"Unsupported database URL: {settings.database_url}",
        database_url=settings.database_url,
    )
