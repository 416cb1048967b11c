"""
Relationship consistency engine.

Keeps both sides of a relation with a configured inverse symmetric. When
record A's relation R changes to (or away from) record B, B's inverse
attribute is updated as a pending change and A and B are atomically
linked so that saving either one commits both.

Invariants:
    - Records holding inverse relations are never embedded
    - Both sides must be resident in the store; nothing is fetched here
    - check_inverse() raises before anything is mutated, so a failed
      relation change leaves every record untouched
    - A to-one inverse has a single holder; a stale holder is unlinked
      through the normal setter so its own inverse is cleared too
"""

from __future__ import annotations

import logging
from typing import Any, Dict, TYPE_CHECKING

from ..errors import (
    EmbeddedInverseNotAllowedError,
    InvalidInverseKindError,
    InverseAttributeNotFoundError,
    RecordDeletedError,
    RelatedRecordNotLoadedError,
    SerializationError,
)
from .base import HandlerKind

if TYPE_CHECKING:
    from ..model import Model
    from ..schema import FieldDef, RelationDef

logger = logging.getLogger(__name__)


def effective_relation_id(record: Model, definition: RelationDef) -> str | None:
    """Current id held by a to-one relation (pending over remote)."""
    name = definition.name
    if name in record._local:
        return record._local[name]
    remote = record._remote.get(name)
    if remote is None:
        return None
    if definition.embedded:
        # Embedded records carry their id inside their payload
        if not isinstance(remote, dict) or "id" not in remote:
            raise SerializationError(
                f"Embedded record in {name} does not have an id property",
                attribute=name,
                value=remote,
            )
        return remote["id"]
    return remote


def effective_members(record: Model, definition: RelationDef) -> Dict[str, Any]:
    """Current to-many membership map: remote overlaid with pending changes.

    Values are True (or a payload, for embedded records) for members, and
    None for members removed locally but not yet saved.
    """
    name = definition.name
    remote = record._remote.get(name) or {}
    if not isinstance(remote, dict):
        raise SerializationError(
            f"Expected a map of ids for {name}", attribute=name, value=remote
        )
    members = dict(remote)
    members.update(record._local.get(name) or {})
    return members


def link_atomically(record: Model, other: Model) -> None:
    """Register two records so that saving either commits both."""
    if not any(linked is other for linked in record._atomically_linked):
        record._atomically_linked.append(other)
    if not any(linked is record for linked in other._atomically_linked):
        other._atomically_linked.append(record)


def check_inverse(
    record: Model,
    definition: RelationDef,
    other_id: str,
    link: bool,
) -> Model | None:
    """Validate an inverse update without applying it.

    Args:
        record: Record whose relation is changing
        definition: The changing relation
        other_id: Id of the related record
        link: True when linking, False when unlinking

    Returns:
        The related record, or None if the relation has no inverse

    Raises:
        EmbeddedInverseNotAllowedError: If record is embedded
        RelatedRecordNotLoadedError: If a related record is not resident
        InverseAttributeNotFoundError: If the inverse attribute is missing
        InvalidInverseKindError: If the inverse attribute is not a relation
    """
    if definition.inverse is None:
        return None

    if record.embedded:
        raise EmbeddedInverseNotAllowedError(
            "Embedded records cannot contain relationships with inverses",
            record_id=record.id,
            attribute=definition.name,
        )

    other = record.store.peek_record(definition.target_class, other_id)
    if other is None:
        raise RelatedRecordNotLoadedError(
            f"The related record with id {other_id} is not in the store, "
            f"find it before changing {definition.name}",
            record_id=other_id,
            attribute=definition.name,
        )

    inverse_def = _inverse_definition(other, definition)

    if link and other.is_deleted:
        raise RecordDeletedError(
            f"Cannot link {record.id} to deleted record {other.id}",
            record_id=other.id,
        )

    if link and inverse_def.kind is HandlerKind.BELONGS_TO:
        current = effective_relation_id(other, inverse_def)
        if current is not None and current != record.id:
            check_inverse(other, inverse_def, current, link=False)

    return other


def set_inverse(
    record: Model,
    definition: RelationDef,
    other_id: str,
    link: bool,
) -> None:
    """Apply the inverse side of a relation change.

    Args:
        record: Record whose relation is changing
        definition: The changing relation
        other_id: Id of the related record
        link: True to link the records, False to unlink them
    """
    other = check_inverse(record, definition, other_id, link)
    if other is None:
        return

    inverse_def = _inverse_definition(other, definition)
    name = inverse_def.name

    if inverse_def.kind is HandlerKind.BELONGS_TO:
        current = effective_relation_id(other, inverse_def)
        if link:
            if current is not None and current != record.id:
                # Single holder: release the stale one through its setter
                setattr(other, name, None)
            # Written directly to avoid re-entering this record's setter
            other._local[name] = record.id
        elif current == record.id:
            other._local[name] = None
    else:
        members = other._local.setdefault(name, {})
        members[record.id] = True if link else None

    link_atomically(record, other)
    logger.debug(
        f"{'Linked' if link else 'Unlinked'} {record.model_name}/{record.id}.{definition.name}"
        f" <-> {other.model_name}/{other.id}.{name}"
    )


def _inverse_definition(other: Model, definition: RelationDef) -> FieldDef:
    inverse_def = type(other).schema.get(definition.inverse)
    if inverse_def is None:
        raise InverseAttributeNotFoundError(
            f"Inverse attribute {definition.inverse} not found on record "
            f"of type {other.model_name} {other.id}",
            record_id=other.id,
            attribute=definition.inverse,
        )
    if inverse_def.kind is HandlerKind.ATTR:
        raise InvalidInverseKindError(
            f"Inverse attribute {definition.inverse} is a plain attribute, "
            "it must be belongs_to or has_many",
            record_id=other.id,
            attribute=definition.inverse,
        )
    return inverse_def
