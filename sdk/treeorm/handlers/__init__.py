"""
Attribute handlers, selected by the HandlerKind tag of each descriptor.
"""

from .attr import AttrHandler
from .base import AttributeHandler, HandlerKind
from .belongs_to import BelongsToHandler
from .has_many import HasManyHandler, RelatedList

_HANDLERS: dict[HandlerKind, AttributeHandler] = {
    HandlerKind.ATTR: AttrHandler(),
    HandlerKind.BELONGS_TO: BelongsToHandler(),
    HandlerKind.HAS_MANY: HasManyHandler(),
}


def get_handler(kind: HandlerKind) -> AttributeHandler:
    """Return the shared handler for ``kind``."""
    return _HANDLERS[kind]


__all__ = [
    "AttrHandler",
    "AttributeHandler",
    "BelongsToHandler",
    "HandlerKind",
    "HasManyHandler",
    "RelatedList",
    "get_handler",
]
