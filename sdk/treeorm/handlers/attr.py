"""
Scalar attribute handler.

Reads return the pending value if one is set, else the last known remote
value, else the configured default. Writes validate and serialize the
value through the attribute's codec and store it as a pending change.
"""

from __future__ import annotations

import logging
from typing import Any, TYPE_CHECKING

from ..database.base import is_server_timestamp
from ..errors import TypeMismatchError
from .base import ensure_not_deleted

if TYPE_CHECKING:
    from ..model import Model
    from ..schema import AttrDef

logger = logging.getLogger(__name__)

_MISSING = object()


class AttrHandler:
    """Handler for AttrDef attributes."""

    def get(self, record: Model, definition: AttrDef) -> Any:
        name = definition.name
        ensure_not_deleted(record, name, "get")

        raw = record._local.get(name, _MISSING)
        if raw is _MISSING:
            raw = record._remote.get(name, _MISSING)
        if raw is _MISSING:
            return definition.default_value()
        if raw is None or is_server_timestamp(raw):
            # Cleared, or waiting for the server to fill in the time
            return None
        try:
            return definition.serializer.deserialize(raw)
        except TypeMismatchError as e:
            e.attribute = name
            e.details["attribute"] = name
            raise

    def check(self, record: Model, definition: AttrDef, value: Any) -> None:
        ensure_not_deleted(record, definition.name, "set")
        self._serialized(definition, value)

    def set(self, record: Model, definition: AttrDef, value: Any) -> None:
        name = definition.name
        ensure_not_deleted(record, name, "set")

        record._local[name] = self._serialized(definition, value)
        logger.debug(f"Set {record.model_name}/{record.id}.{name}")

    def _serialized(self, definition: AttrDef, value: Any) -> Any:
        if value is None:
            return None
        try:
            return definition.serializer.serialize(value)
        except TypeMismatchError as e:
            e.attribute = definition.name
            e.details["attribute"] = definition.name
            raise
