"""
To-many relation handler.

Membership is stored as a map of related id to true, so each member is
its own path and adding or removing one never rewrites the collection.
Embedded relations store each child's payload under its id instead.

Reads return a RelatedList: an immutable view whose add/remove/filter/
replace methods build the new membership and assign it back through the
setter, so inverse updates happen exactly as for a direct assignment.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Callable, Dict, Iterable, List, Tuple, TYPE_CHECKING

from ..errors import EmbeddedRecordNotLoadedError, InvalidRelationValueError
from .base import ensure_embeddable, ensure_not_deleted, related_id
from .inverse import check_inverse, effective_members, set_inverse

if TYPE_CHECKING:
    from ..model import Model
    from ..schema import HasManyDef

logger = logging.getLogger(__name__)


class RelatedList(Sequence):
    """Immutable view over a to-many relation.

    Items are records, or PendingReferences for members that are not
    resident yet. Mutating methods return the fresh view.

    Example:
        >>> blog.posts.ids
        ['p1']
        >>> blog.posts.add(post2).ids
        ['p1', 'p2']
    """

    def __init__(self, record: Model, definition: HasManyDef, items: List[Any]) -> None:
        self._record = record
        self._definition = definition
        self._items = tuple(items)

    def __getitem__(self, index):
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, RelatedList):
            return self._items == other._items
        if isinstance(other, (list, tuple)):
            return list(self._items) == list(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"RelatedList({self._definition.name}, ids={self.ids!r})"

    @property
    def ids(self) -> List[str]:
        """Member ids, in membership order."""
        return [item.id for item in self._items]

    def add(self, *items: Any) -> RelatedList:
        """Add records (or ids) to the relation."""
        return self.replace([*self._items, *items])

    def remove(self, *items: Any) -> RelatedList:
        """Remove records (or ids) from the relation."""
        removed = {related_id(self._record, self._definition, item) for item in items}
        return self.replace([item for item in self._items if item.id not in removed])

    def filter(self, predicate: Callable[[Any], bool]) -> RelatedList:
        """Keep only the members for which ``predicate`` is true."""
        return self.replace([item for item in self._items if predicate(item)])

    def replace(self, items: Iterable[Any]) -> RelatedList:
        """Assign a new membership and return the resulting view."""
        setattr(self._record, self._definition.name, list(items))
        return getattr(self._record, self._definition.name)


class HasManyHandler:
    """Handler for HasManyDef relations."""

    def get(self, record: Model, definition: HasManyDef) -> RelatedList:
        name = definition.name
        ensure_not_deleted(record, name, "get")

        members = [
            member_id
            for member_id, value in effective_members(record, definition).items()
            if value is not None
        ]

        if definition.embedded:
            cache = record._embedded_records.get(name, {})
            items = []
            for member_id in members:
                child = cache.get(member_id)
                if child is None:
                    raise EmbeddedRecordNotLoadedError(
                        f"Embedded record {member_id} in {name} is not loaded",
                        record_id=member_id,
                        attribute=name,
                    )
                items.append(child)
        else:
            target = definition.target_class
            items = [record.store.find_record(target, member_id) for member_id in members]

        return RelatedList(record, definition, items)

    def check(self, record: Model, definition: HasManyDef, value: Any) -> None:
        ensure_not_deleted(record, definition.name, "set")
        self._changes(record, definition, value)

    def set(self, record: Model, definition: HasManyDef, value: Any) -> None:
        name = definition.name
        ensure_not_deleted(record, name, "set")

        if isinstance(value, Mapping):
            record._local[name] = self._normalized_map(record, definition, value)
            return

        children, added, removed = self._changes(record, definition, value)

        if definition.inverse is not None:
            for member_id in removed:
                set_inverse(record, definition, member_id, link=False)
            for member_id in added:
                set_inverse(record, definition, member_id, link=True)

        for child in children:
            record._embed(name, child)

        if not added and not removed:
            return

        local = dict(record._local.get(name) or {})
        for member_id in removed:
            local[member_id] = None
        for member_id in added:
            local[member_id] = True
        record._local[name] = local
        logger.debug(
            f"Set {record.model_name}/{record.id}.{name}: "
            f"+{len(added)} -{len(removed)}"
        )

    def _changes(
        self, record: Model, definition: HasManyDef, value: Any
    ) -> Tuple[List[Model], List[str], List[str]]:
        """Validate a new membership and diff it against the current one.

        Returns:
            (embedded children to attach, added ids, removed ids)

        Raises:
            InvalidRelationValueError: If value is not a list of records or ids
            RelationshipIntegrityError: If an inverse update would fail
        """
        name = definition.name
        if isinstance(value, Mapping):
            self._normalized_map(record, definition, value)
            return [], [], []

        if value is None:
            value = []
        if not isinstance(value, (list, tuple, RelatedList)):
            raise InvalidRelationValueError(
                f"Cannot set {name} to {value!r}, expected a list of records or ids",
                record_id=record.id,
                attribute=name,
            )

        new_ids: List[str] = []
        children = []
        for item in value:
            if definition.embedded:
                children.append(ensure_embeddable(record, definition, item))
            member_id = related_id(record, definition, item)
            if member_id not in new_ids:
                new_ids.append(member_id)

        current_ids = [
            member_id
            for member_id, member in effective_members(record, definition).items()
            if member is not None
        ]
        added = [member_id for member_id in new_ids if member_id not in current_ids]
        removed = [member_id for member_id in current_ids if member_id not in new_ids]

        if definition.inverse is not None:
            for member_id in removed:
                check_inverse(record, definition, member_id, link=False)
            for member_id in added:
                check_inverse(record, definition, member_id, link=True)

        return children, added, removed

    def _normalized_map(
        self, record: Model, definition: HasManyDef, value: Mapping
    ) -> Dict[str, Any]:
        """Validate an id map; values must be true (member) or None (removed)."""
        normalized = {}
        for member_id, present in value.items():
            if not isinstance(member_id, str) or present not in (True, None):
                raise InvalidRelationValueError(
                    f"Cannot set {definition.name} to {dict(value)!r}, "
                    "expected a map of id to true",
                    record_id=record.id,
                    attribute=definition.name,
                )
            normalized[member_id] = present
        return normalized
