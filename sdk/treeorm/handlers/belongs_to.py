"""
To-one relation handler.

Non-embedded relations store the related id. Reading returns the related
record when it is resident, else a PendingReference to await.

Embedded relations store the child's payload (including its id) under
the relation's path. Reading returns the cached child record.

How to change safely:
    - Validate every inverse update before writing anything
    - Keep the pending value an id (or None), never a record
"""

from __future__ import annotations

import logging
from typing import Any, TYPE_CHECKING

from ..errors import EmbeddedRecordNotLoadedError
from .base import ensure_embeddable, ensure_not_deleted, related_id
from .inverse import check_inverse, effective_relation_id, set_inverse

if TYPE_CHECKING:
    from ..model import Model
    from ..schema import BelongsToDef

logger = logging.getLogger(__name__)


class BelongsToHandler:
    """Handler for BelongsToDef relations."""

    def get(self, record: Model, definition: BelongsToDef) -> Any:
        name = definition.name
        ensure_not_deleted(record, name, "get")

        related = effective_relation_id(record, definition)
        if related is None:
            return None

        if definition.embedded:
            child = record._embedded_records.get(name, {}).get(related)
            if child is None:
                raise EmbeddedRecordNotLoadedError(
                    f"Embedded record {related} in {name} is not loaded",
                    record_id=related,
                    attribute=name,
                )
            return child

        return record.store.find_record(definition.target_class, related)

    def check(self, record: Model, definition: BelongsToDef, value: Any) -> None:
        ensure_not_deleted(record, definition.name, "set")

        if definition.embedded:
            if value is not None:
                ensure_embeddable(record, definition, value)
            return

        new_id = None if value is None else related_id(record, definition, value)
        current_id = effective_relation_id(record, definition)
        if new_id == current_id or definition.inverse is None:
            return
        if current_id is not None:
            check_inverse(record, definition, current_id, link=False)
        if new_id is not None:
            check_inverse(record, definition, new_id, link=True)

    def set(self, record: Model, definition: BelongsToDef, value: Any) -> None:
        name = definition.name
        self.check(record, definition, value)

        if definition.embedded:
            self._set_embedded(record, definition, value)
            return

        new_id = None if value is None else related_id(record, definition, value)
        current_id = effective_relation_id(record, definition)
        if new_id == current_id:
            return

        if definition.inverse is not None:
            if current_id is not None:
                set_inverse(record, definition, current_id, link=False)
            if new_id is not None:
                set_inverse(record, definition, new_id, link=True)

        record._local[name] = new_id
        logger.debug(f"Set {record.model_name}/{record.id}.{name} to {new_id}")

    def _set_embedded(self, record: Model, definition: BelongsToDef, value: Any) -> None:
        name = definition.name
        cache = record._embedded_records.setdefault(name, {})
        # A to-one relation caches only its current child
        for child_id, previous in list(cache.items()):
            if previous is not value:
                del cache[child_id]
                previous._embedded_in = None

        if value is None:
            record._local[name] = None
            return

        record._embed(name, value)
        record._local[name] = value.id
        logger.debug(f"Embedded {value.model_name}/{value.id} in {record.id}.{name}")
