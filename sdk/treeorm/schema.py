"""
Schema descriptors for treeorm models.

This module provides the attribute declarations used on Model subclasses:
- AttrDef: scalar attribute stored through a value codec
- BelongsToDef: to-one relation
- HasManyDef: to-many relation

Each declaration is a data descriptor, so reading or assigning the
attribute on a record goes through the handler for its kind.

Invariants:
    - Each descriptor carries only its own option fields
    - A relation is never both embedded and inverse-linked
    - Relation targets given by name are resolved lazily via the registry

Example:
    >>> class Blog(Model):
    ...     model_name = "blog"
    ...     name = attr("str")
    ...     created = attr("date", default=lambda: datetime.now(timezone.utc))
    ...     updated = attr("number", server_timestamp=True)
    ...     owner = belongs_to("User", inverse="blog")
    ...     posts = has_many("Post", inverse="blog")
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field as dataclass_field
from typing import Any, Callable, ClassVar, Type, TYPE_CHECKING, Union

from .errors import ConfigurationError
from .handlers import get_handler
from .handlers.base import HandlerKind
from .registry import get_registry
from .serializers import FieldKind, Serializer, serializer_for

if TYPE_CHECKING:
    from .model import Model

ModelTarget = Union[str, "Type[Model]"]


@dataclass(eq=False)
class FieldDef:
    """Base descriptor for a model attribute.

    Attributes:
        name: Attribute name, set when the owning class is created
    """

    kind: ClassVar[HandlerKind]
    name: str = dataclass_field(default="", init=False)

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return get_handler(self.kind).get(instance, self)

    def __set__(self, instance: Any, value: Any) -> None:
        get_handler(self.kind).set(instance, self, value)

    @property
    def is_relation(self) -> bool:
        return self.kind is not HandlerKind.ATTR


@dataclass(eq=False)
class AttrDef(FieldDef):
    """Scalar attribute.

    Attributes:
        field_kind: Codec used to store the value
        default: Value (or zero-argument callable) used when nothing is set;
            persisted on the next save
        server_timestamp: Replace the value with the server clock on save
    """

    kind: ClassVar[HandlerKind] = HandlerKind.ATTR

    field_kind: FieldKind = FieldKind.STRING
    default: Any = None
    server_timestamp: bool = False

    @property
    def serializer(self) -> Serializer:
        return serializer_for(self.field_kind)

    @property
    def has_default(self) -> bool:
        return self.default is not None

    def default_value(self) -> Any:
        """Evaluate the configured default."""
        if callable(self.default):
            return self.default()
        return self.default


@dataclass(eq=False)
class RelationDef(FieldDef):
    """Common options of to-one and to-many relations.

    Attributes:
        target: Related model class, or its class name
        inverse: Attribute on the target kept symmetric with this one
        embedded: Related records are stored inside this record's path
    """

    target: ModelTarget = ""
    inverse: str | None = None
    embedded: bool = False

    def __post_init__(self) -> None:
        if self.embedded and self.inverse is not None:
            raise ConfigurationError(
                "An embedded relation cannot declare an inverse",
                inverse=self.inverse,
            )

    @property
    def target_class(self) -> Type[Model]:
        """Resolve the related model class."""
        if isinstance(self.target, str):
            model_class = get_registry().get_model(self.target)
            if model_class is None:
                raise ConfigurationError(
                    f"Relation {self.name} targets unknown model '{self.target}'",
                    target=self.target,
                )
            return model_class
        return self.target


@dataclass(eq=False)
class BelongsToDef(RelationDef):
    """To-one relation, stored as the related id."""

    kind: ClassVar[HandlerKind] = HandlerKind.BELONGS_TO


@dataclass(eq=False)
class HasManyDef(RelationDef):
    """To-many relation, stored as a map of related id to true."""

    kind: ClassVar[HandlerKind] = HandlerKind.HAS_MANY


def attr(
    kind: FieldKind | str,
    *,
    default: Any = None,
    server_timestamp: bool = False,
) -> AttrDef:
    """Declare a scalar attribute.

    Args:
        kind: Field kind (FieldKind or its string value)
        default: Default value, or a callable producing it
        server_timestamp: Set to the server time on every save

    Returns:
        AttrDef descriptor

    Example:
        >>> name = attr("str")
        >>> published = attr(FieldKind.BOOLEAN, default=False)
    """
    if isinstance(kind, str):
        try:
            kind = FieldKind.from_str(kind)
        except ValueError as e:
            raise ConfigurationError(str(e), kind=kind) from None
    return AttrDef(field_kind=kind, default=default, server_timestamp=server_timestamp)


def belongs_to(
    target: ModelTarget,
    *,
    inverse: str | None = None,
    embedded: bool = False,
) -> BelongsToDef:
    """Declare a to-one relation.

    Args:
        target: Related model class or class name
        inverse: Attribute on the related model to keep in sync
        embedded: Store the related record inside this one

    Returns:
        BelongsToDef descriptor
    """
    return BelongsToDef(target=target, inverse=inverse, embedded=embedded)


def has_many(
    target: ModelTarget,
    *,
    inverse: str | None = None,
    embedded: bool = False,
) -> HasManyDef:
    """Declare a to-many relation.

    Args:
        target: Related model class or class name
        inverse: Attribute on the related model to keep in sync
        embedded: Store the related records inside this one

    Returns:
        HasManyDef descriptor
    """
    return HasManyDef(target=target, inverse=inverse, embedded=embedded)
