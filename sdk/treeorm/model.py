"""
Model base class for treeorm records.

A Model subclass declares its attributes with attr(), belongs_to() and
has_many(); each instance is one record in one Store's identity map.

Record state:
    _local: pending changes, attribute -> stored form (None = delete)
    _remote: last committed value seen for each attribute
    _atomically_linked: records that must be committed together with this one
    _embedded_in: parent record, for records of embedded models
    _embedded_records: attribute -> id -> child record, for embedded relations

Invariants:
    - The effective value of an attribute is the pending value if set,
      else the remote value, else the attribute's default
    - Records are created by a Store, never by calling the class directly
    - An embedded record has no path of its own; it is written as part
      of its parent and is always attached to one before being exposed

How to change safely:
    - Keep state mutations synchronous; only loads and commits await
    - New reserved names must not collide with declared attributes

Example:
    >>> class Blog(Model):
    ...     model_name = "blog"
    ...     name = attr("str")
    ...     posts = has_many("Post", inverse="blog")
    >>> blog = store.create_record(Blog, {"name": "Notes"})
    >>> await blog.save()
"""

from __future__ import annotations

import copy
import logging
from typing import Any, ClassVar, Dict, Generator, List, Optional, Tuple, TYPE_CHECKING

from .errors import (
    CannotSaveDetachedEmbeddedError,
    ConfigurationError,
    RollbackOfDeletedUnsupportedError,
    UnknownFieldError,
)
from .handlers.base import HandlerKind
from .paths import get_at, join_path
from .registry import register_model
from .schema import FieldDef

if TYPE_CHECKING:
    from .store import Store

logger = logging.getLogger(__name__)


class Model:
    """Base class for all records.

    Class attributes:
        model_name: Schema name of the model (required for concrete models)
        plural_name: Collection segment of the storage path
            (defaults to model_name + "s")
        embedded: Records of this model are stored inside a parent record
        path_prefix_group: Name of a store path prefix this model requires
        schema: Declared attributes, in declaration order (set automatically)
    """

    model_name: ClassVar[str] = ""
    plural_name: ClassVar[str] = ""
    embedded: ClassVar[bool] = False
    path_prefix_group: ClassVar[Optional[str]] = None
    schema: ClassVar[Dict[str, FieldDef]] = {}

    is_loading = False

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)

        schema: Dict[str, FieldDef] = {}
        for klass in reversed(cls.__mro__):
            for name, value in vars(klass).items():
                if isinstance(value, FieldDef):
                    schema[name] = value

        for name in schema:
            if name in RESERVED_NAMES:
                raise ConfigurationError(
                    f"Attribute name '{name}' on {cls.__name__} is reserved",
                    attribute=name,
                    model=cls.__name__,
                )

        cls.schema = schema
        if cls.model_name and "plural_name" not in vars(cls):
            cls.plural_name = f"{cls.model_name}s"
        register_model(cls)

    def __init__(self, store: Store, id: str) -> None:
        self.store = store
        self.id = id
        self.is_new = True
        self.is_deleted = False
        self.is_saving = False
        self._delete_committed = False
        self._local: Dict[str, Any] = {}
        self._remote: Dict[str, Any] = {}
        self._atomically_linked: List[Model] = []
        self._embedded_in: Optional[Model] = None
        self._embedded_records: Dict[str, Dict[str, Model]] = {}

    def __repr__(self) -> str:
        state = self.change_kind or "clean"
        return f"<{type(self).__name__} {self.id} ({state})>"

    def __await__(self) -> Generator[Any, None, Model]:
        return self._resolved().__await__()

    async def _resolved(self) -> Model:
        return self

    # State

    @property
    def path(self) -> str:
        """Storage path of this record.

        Raises:
            CannotSaveDetachedEmbeddedError: If an embedded record has no parent
        """
        if not self.embedded:
            return self.store.path_for(type(self), self.id)

        parent = self._embedded_in
        if parent is not None:
            for name, children in parent._embedded_records.items():
                if children.get(self.id) is self:
                    if parent.schema[name].kind is HandlerKind.HAS_MANY:
                        return join_path(parent.path, name, self.id)
                    return join_path(parent.path, name)
        raise CannotSaveDetachedEmbeddedError(
            f"Embedded record {self.id} is not embedded in a parent",
            record_id=self.id,
        )

    @property
    def has_pending_changes(self) -> bool:
        return bool(self._local) or self.is_new or self.is_deleted

    @property
    def change_kind(self) -> Optional[str]:
        """'deleted', 'created', 'updated' or None."""
        if self.is_deleted:
            return "deleted"
        if self.is_new:
            return "created"
        if self.has_pending_changes:
            return "updated"
        return None

    def changed_attributes(self) -> Dict[str, Tuple[Any, Any]]:
        """Pending changes as ``{attribute: (remote, local)}`` in stored form."""
        return {
            name: (self._remote.get(name), value)
            for name, value in self._local.items()
        }

    def rollback(self) -> None:
        """Discard pending changes.

        A record that was never saved has nothing to revert to and is
        marked deleted instead.

        Raises:
            RollbackOfDeletedUnsupportedError: If the record is deleted
        """
        if self.is_deleted:
            raise RollbackOfDeletedUnsupportedError(
                f"Cannot roll back deleted record {self.id}",
                record_id=self.id,
            )
        self._local.clear()
        if self.is_new:
            self.is_deleted = True
        else:
            # Children released by pending changes come back from the snapshot
            self._set_remote(self._remote)
        logger.debug(f"Rolled back {self.model_name}/{self.id}")

    # Persistence

    async def save(self) -> Model:
        """Commit this record and every record linked to it in one write.

        Embedded records are saved through their parent.

        Raises:
            CannotSaveDetachedEmbeddedError: If an embedded record has no parent
            DatabaseError: If the write fails; pending changes are kept
        """
        if self.embedded:
            if self._embedded_in is None:
                raise CannotSaveDetachedEmbeddedError(
                    f"Embedded record {self.id} can only be saved through its parent",
                    record_id=self.id,
                )
            await self._embedded_in.save()
            return self
        await self.store._save(self)
        return self

    async def delete(self) -> None:
        """Mark the record deleted, clearing relations that have inverses.

        Related records that are not resident are loaded first so that
        their inverse side can be cleared. Nothing is written until save().
        """
        if self.is_deleted:
            return

        for name, definition in self.schema.items():
            if not definition.is_relation or definition.inverse is None:
                continue
            if definition.kind is HandlerKind.BELONGS_TO:
                related = getattr(self, name)
                if related is not None:
                    await related
                    setattr(self, name, None)
            else:
                for related in getattr(self, name):
                    await related
                setattr(self, name, [])

        self.is_deleted = True
        logger.debug(f"Deleted {self.model_name}/{self.id}")

    async def destroy(self) -> None:
        """Delete and save in one step."""
        await self.delete()
        await self.save()

    async def fetch_remote_value(self, name: str) -> Any:
        """Read the committed value of one attribute from the database.

        The record's own state is not changed.
        """
        definition = self.schema.get(name)
        if definition is None:
            raise UnknownFieldError(name, self.model_name, [])
        value = await self.store.database.get(join_path(self.path, name))
        if value is None or definition.kind is not HandlerKind.ATTR:
            return value
        return definition.serializer.deserialize(value)

    def unload(self) -> None:
        """Remove this record from its store."""
        self.store.unload_record(self)

    # Internal

    def _embed(self, name: str, child: Model) -> None:
        previous = child._embedded_in
        if previous is not None and previous is not self:
            for children in previous._embedded_records.values():
                if children.get(child.id) is child:
                    del children[child.id]
        child._embedded_in = self
        self._embedded_records.setdefault(name, {})[child.id] = child

    def _is_referenced_locally(self, name: str, child_id: str) -> bool:
        pending = self._local.get(name)
        if isinstance(pending, dict):
            return pending.get(child_id) is True
        return pending == child_id

    def _set_remote(self, data: Dict[str, Any]) -> None:
        """Replace the committed state, materializing embedded children."""
        self._remote = dict(data)
        for name, definition in self.schema.items():
            if definition.is_relation and definition.embedded:
                self._materialize_embedded(name, definition)

    def _materialize_embedded(self, name: str, definition: Any) -> None:
        payload = self._remote.get(name)
        if definition.kind is HandlerKind.BELONGS_TO:
            snapshots = {}
            if isinstance(payload, dict):
                if "id" in payload:
                    snapshots[payload["id"]] = payload
                else:
                    logger.warning(
                        f"Embedded record in {self.model_name}/{self.id}.{name} has no id, skipping"
                    )
        else:
            snapshots = payload if isinstance(payload, dict) else {}

        cache = self._embedded_records.setdefault(name, {})
        for child_id in list(cache):
            if child_id not in snapshots and not self._is_referenced_locally(name, child_id):
                cache.pop(child_id)._embedded_in = None

        target = definition.target_class
        for child_id, snapshot in snapshots.items():
            if not isinstance(snapshot, dict):
                logger.warning(
                    f"Embedded record {child_id} in {self.model_name}/{self.id}.{name} "
                    "is not an object, skipping"
                )
                continue
            child = cache.get(child_id)
            if child is None:
                child = target(self.store, child_id)
                child.is_new = False
            child._set_remote(snapshot)
            self._embed(name, child)

    def _sync_embedded(self) -> None:
        """Refresh embedded children from this record's committed state."""
        for name, children in self._embedded_records.items():
            kind = self.schema[name].kind
            for child_id, child in list(children.items()):
                if kind is HandlerKind.HAS_MANY:
                    snapshot = get_at(self._remote, [name, child_id])
                else:
                    snapshot = self._remote.get(name)
                    if not isinstance(snapshot, dict) or snapshot.get("id") != child_id:
                        snapshot = None
                if not isinstance(snapshot, dict) or child.is_deleted:
                    del children[child_id]
                    child._embedded_in = None
                    continue
                child._remote = copy.deepcopy(snapshot)
                child._local.clear()
                child.is_new = False
                child._sync_embedded()


RESERVED_NAMES = frozenset(
    {name for name in vars(Model) if not name.startswith("__")}
    | {"id", "store", "is_new", "is_deleted", "is_saving"}
)
