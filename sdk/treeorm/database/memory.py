"""
In-memory tree database implementation for testing.

This module provides a simple in-memory backend for:
- Unit tests
- Integration tests
- Local development without a remote database

Invariants:
    - All data is lost on process exit
    - Provides the same all-or-nothing update guarantee as remote backends
    - Stored values are copies; callers never share state with the tree

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with the TreeDatabase protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import asyncio
import copy
import time
from typing import Any, Dict, List
import logging

from ..ids import generate_push_key
from ..paths import get_at, is_ancestor, put_at, split_path
from .base import DatabaseError, is_delete, is_server_timestamp

logger = logging.getLogger(__name__)


class InMemoryTreeDatabase:
    """In-memory implementation of TreeDatabase for testing.

    Attributes:
        updates: Every multi-path update applied, in order (testing helper)

    Example:
        >>> db = InMemoryTreeDatabase()
        >>> await db.update({"/blogs/b1/name": "Hello"})
        >>> await db.get("/blogs/b1/name")
        'Hello'
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        """Initialize in-memory database.

        Args:
            data: Optional initial tree contents
        """
        self._root: Dict[str, Any] = copy.deepcopy(data) if data else {}
        self._lock = asyncio.Lock()
        self.updates: List[Dict[str, Any]] = []

    async def get(self, path: str) -> Any:
        """Read a copy of the subtree at ``path``."""
        segments = split_path(path)
        value = self._root if not segments else get_at(self._root, segments)
        if value == {}:
            return None
        return copy.deepcopy(value)

    async def set(self, path: str, value: Any) -> None:
        """Replace the subtree at ``path``."""
        async with self._lock:
            now = self._now()
            put_at(self._root, split_path(path), self._normalize(value, now))
        logger.debug("In-memory set", extra={"path": path})

    async def update(self, updates: Dict[str, Any]) -> None:
        """Apply a multi-path update atomically.

        Raises:
            DatabaseError: If a path is empty or two paths overlap
        """
        self._validate(updates)

        async with self._lock:
            now = self._now()
            staged = copy.deepcopy(self._root)
            for path, value in updates.items():
                put_at(staged, split_path(path), self._normalize(value, now))
            self._root = staged
            self.updates.append(dict(updates))

        logger.debug("In-memory update applied", extra={"paths": len(updates)})

    def push_key(self, path: str) -> str:
        """Generate a new ordered key (the path is not consulted)."""
        return generate_push_key()

    async def close(self) -> None:
        """Nothing to release."""

    def _validate(self, updates: Dict[str, Any]) -> None:
        paths = list(updates)
        for path in paths:
            if not split_path(path):
                raise DatabaseError("Multi-path update cannot target the root")
        ordered = sorted(paths, key=lambda p: len(split_path(p)))
        for i, outer in enumerate(ordered):
            for inner in ordered[i + 1:]:
                if is_ancestor(outer, inner):
                    raise DatabaseError(
                        f"Path {outer} is an ancestor of {inner} in the same update"
                    )

    def _normalize(self, value: Any, now: int) -> Any:
        """Resolve sentinels and drop null children, returning a copy."""
        if is_delete(value):
            return None
        if is_server_timestamp(value):
            return now
        if isinstance(value, dict):
            result = {}
            for key, child in value.items():
                normalized = self._normalize(child, now)
                if normalized is not None and normalized != {}:
                    result[str(key)] = normalized
            return result or None
        if isinstance(value, (list, tuple)):
            # Arrays are stored as index-keyed objects
            return self._normalize({str(i): v for i, v in enumerate(value)}, now)
        return copy.deepcopy(value)

    def _now(self) -> int:
        return int(time.time() * 1000)

    # Testing helpers

    def dump(self) -> Dict[str, Any]:
        """Return a copy of the whole tree (testing helper)."""
        return copy.deepcopy(self._root)

    @property
    def update_count(self) -> int:
        """Number of multi-path updates applied (testing helper)."""
        return len(self.updates)

    def clear(self) -> None:
        """Remove all data and history (testing helper)."""
        self._root = {}
        self.updates.clear()
