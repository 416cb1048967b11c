"""
Attribute handler contract.

Every schema descriptor carries a HandlerKind tag; attribute access on a
record is dispatched on that tag to the matching handler:
- ATTR: scalar attribute (see attr.py)
- BELONGS_TO: to-one relation (see belongs_to.py)
- HAS_MANY: to-many relation (see has_many.py)
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol, TYPE_CHECKING

from ..errors import InvalidRelationValueError, NotEmbeddableError, RecordDeletedError

if TYPE_CHECKING:
    from ..model import Model
    from ..schema import FieldDef


class HandlerKind(Enum):
    """Handler variants a schema descriptor can select."""

    ATTR = "attr"
    BELONGS_TO = "belongs_to"
    HAS_MANY = "has_many"


class AttributeHandler(Protocol):
    """Uniform get/set capability over one attribute of a record."""

    def get(self, record: Model, definition: FieldDef) -> Any:
        ...

    def check(self, record: Model, definition: FieldDef, value: Any) -> None:
        """Raise if set() would fail; never mutates anything."""
        ...

    def set(self, record: Model, definition: FieldDef, value: Any) -> None:
        ...


def ensure_not_deleted(record: Model, attribute: str, action: str) -> None:
    """Raise RecordDeletedError if ``record`` has been deleted."""
    if record.is_deleted:
        raise RecordDeletedError(
            f"Record {record.id} is deleted, cannot {action} {attribute}",
            record_id=record.id,
        )


def related_id(record: Model, definition: FieldDef, value: Any) -> str:
    """Normalize one relation member (record, pending reference or id) to its id.

    Raises:
        InvalidRelationValueError: If value is none of those
    """
    from ..model import Model
    from ..resolver import PendingReference

    if isinstance(value, (Model, PendingReference)):
        return value.id
    if isinstance(value, str) and value:
        return value
    raise InvalidRelationValueError(
        f"Cannot set {definition.name} to {value!r}, expected a record or id",
        record_id=record.id,
        attribute=definition.name,
    )


def ensure_embeddable(record: Model, definition: FieldDef, value: Any) -> Model:
    """Return ``value`` if it is a record of an embedded model.

    Raises:
        NotEmbeddableError: If value is not a record of an embedded model
        RecordDeletedError: If the record has been deleted
    """
    from ..model import Model

    if not isinstance(value, Model) or not value.embedded:
        raise NotEmbeddableError(
            f"{definition.name} is embedded, {value!r} is not an embedded record",
            record_id=record.id,
            attribute=definition.name,
        )
    if value.is_deleted:
        raise RecordDeletedError(
            f"Cannot embed deleted record {value.id} in {definition.name}",
            record_id=value.id,
        )
    return value
