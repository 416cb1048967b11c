"""
Store: the identity map and commit coordinator for treeorm records.

This module provides the main entry point of the SDK:
- Store: per-session cache of records, keyed by model and id
- Path configuration (base path and named path prefixes)
- Id generation policy
- The commit step that turns a plan into one atomic database update

Example:
    >>> store = Store(InMemoryTreeDatabase())
    >>> blog = store.create_record(Blog, {"name": "Notes"})
    >>> await blog.save()
    >>> same = await store.find_record(Blog, blog.id)
    >>> same is blog
    True

Invariants:
    - At most one record instance per (model, id) in a store
    - Stores never share records; each owns its own identity map
    - Configuration errors are raised before any I/O
    - Nothing is written when a plan is empty
    - A failed create_record leaves every other record unchanged

How to change safely:
    - Every state change after a commit goes through _did_save
    - Keep find_record synchronous; only awaiting its result may fetch
"""

from __future__ import annotations

import asyncio
import difflib
import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple, Type, Union

from .config import StoreSettings
from .database.base import TreeDatabase, create_database, is_delete, is_server_timestamp
from .errors import (
    ConfigurationError,
    NotFoundError,
    SerializationError,
    StateError,
    TreeOrmError,
    UnknownFieldError,
)
from .handlers import get_handler
from .ids import IdMode, generate_uuid
from .model import Model
from .paths import join_path, put_at, relative_segments
from .planner import is_dirty, linked_closure, plan_save
from .registry import get_registry
from .resolver import PendingReference

logger = logging.getLogger(__name__)

ModelRef = Union[str, Type[Model]]


class Store:
    """Identity map and persistence coordinator.

    Attributes:
        database: TreeDatabase backend used for reads and commits
        base_path: Path prepended to every record path
        id_mode: How new record ids are generated
        path_prefix: Named path segments required by some models
    """

    def __init__(
        self,
        database: TreeDatabase,
        *,
        base_path: str = "",
        id_mode: Union[IdMode, str] = IdMode.PUSH,
        path_prefix: Optional[Dict[str, str]] = None,
    ) -> None:
        """Initialize a store.

        Args:
            database: Database backend
            base_path: Path prepended to every record path
            id_mode: "push", "uuid1" or "uuid4"
            path_prefix: Initial mapping of prefix group to path segment

        Raises:
            ConfigurationError: If id_mode is not supported
        """
        try:
            self.id_mode = IdMode(id_mode)
        except ValueError:
            raise ConfigurationError(
                f"Unsupported id mode '{id_mode}', "
                f"expected one of {[mode.value for mode in IdMode]}",
                id_mode=str(id_mode),
            ) from None
        self.database = database
        self.base_path = base_path
        self.path_prefix: Dict[str, str] = dict(path_prefix or {})
        self._records: Dict[str, Dict[str, Model]] = {}
        self._loading: Dict[Tuple[str, str], asyncio.Task] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Optional[StoreSettings] = None,
        database: Optional[TreeDatabase] = None,
    ) -> Store:
        """Build a store from settings (environment by default).

        Args:
            settings: Store settings; read from TREEORM_* variables if omitted
            database: Database backend; built from settings if omitted
        """
        settings = settings or StoreSettings()
        if database is None:
            database = create_database(settings)
        return cls(
            database,
            base_path=settings.base_path,
            id_mode=settings.id_mode,
            path_prefix=settings.path_prefix,
        )

    async def close(self) -> None:
        """Close the database backend."""
        await self.database.close()

    async def __aenter__(self) -> Store:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # Paths

    def register_path_prefix(self, group: str, path: str) -> None:
        """Set the path segment used for models in ``group``."""
        self.path_prefix[group] = path

    def collection_path(self, model: ModelRef) -> str:
        """Storage path of a model's collection.

        Raises:
            ConfigurationError: If the model has no model_name or its path
                prefix group is not registered
        """
        model_class = self._model_class(model)
        prefix = ""
        group = model_class.path_prefix_group
        if group is not None:
            if group not in self.path_prefix:
                raise ConfigurationError(
                    f"Model {model_class.model_name} requires path prefix '{group}', "
                    "register it with register_path_prefix() first",
                    group=group,
                )
            prefix = self.path_prefix[group]
        return join_path(self.base_path, prefix, model_class.plural_name)

    def path_for(self, model: ModelRef, id: str) -> str:
        """Storage path of the record ``id`` of ``model``."""
        return join_path(self.collection_path(model), id)

    # Identity map

    def peek_record(self, model: ModelRef, id: str) -> Optional[Model]:
        """Return the resident record, or None. Never fetches."""
        model_class = self._model_class(model)
        return self._records.get(model_class.model_name, {}).get(id)

    def peek_all(self, model: Optional[ModelRef] = None) -> List[Model]:
        """All resident records, optionally of one model."""
        return list(self._iter_records(model))

    def find_record(self, model: ModelRef, id: str) -> Union[Model, PendingReference]:
        """Return the resident record, or a PendingReference that loads it.

        Both results are awaitable, so ``await store.find_record(Blog, id)``
        always produces the record.

        Raises:
            ConfigurationError: If the model's path cannot be built
        """
        model_class = self._model_class(model)
        self.collection_path(model_class)
        record = self.peek_record(model_class, id)
        if record is not None:
            return record
        return PendingReference(self, model_class, id)

    def create_record(
        self,
        model: ModelRef,
        values: Optional[Dict[str, Any]] = None,
    ) -> Model:
        """Create a new record and apply ``values`` as pending changes.

        Args:
            model: Model class or name
            values: Initial attribute values; "id" selects the record id

        Returns:
            The new record, registered in this store

        Raises:
            ConfigurationError: If the model's path cannot be built
            UnknownFieldError: If values name an undeclared attribute
            StateError: If a record with the same id is already resident
        """
        model_class = self._model_class(model)
        self.collection_path(model_class)

        values = dict(values or {})
        record_id = values.pop("id", None) or self._generate_id(model_class)
        for key in values:
            if key not in model_class.schema:
                suggestions = difflib.get_close_matches(key, list(model_class.schema), n=3)
                raise UnknownFieldError(key, model_class.model_name, suggestions)

        if self.peek_record(model_class, record_id) is not None:
            raise StateError(
                f"Record {model_class.model_name}/{record_id} already exists",
                record_id=record_id,
            )

        record = model_class(self, record_id)
        self._register(record)
        try:
            # Every value is checked before any is applied, so a failure
            # leaves no inverse update or link behind on other records
            for key, value in values.items():
                definition = model_class.schema[key]
                get_handler(definition.kind).check(record, definition, value)
            for key, value in values.items():
                setattr(record, key, value)
        except TreeOrmError:
            self._forget(record)
            raise

        logger.debug(f"Created {model_class.model_name}/{record_id}")
        return record

    def push_record(self, model: ModelRef, id: str, data: Dict[str, Any]) -> Model:
        """Materialize (or refresh) a record from a remote snapshot.

        Pending changes of an already resident record are kept.
        """
        model_class = self._model_class(model)
        record = self.peek_record(model_class, id)
        if record is None:
            record = model_class(self, id)
            record.is_new = False
            self._register(record)
        self.push_record_data(record, data)
        return record

    def push_record_data(self, record: Model, data: Dict[str, Any]) -> None:
        """Replace a record's committed state with ``data``."""
        if not isinstance(data, dict):
            raise SerializationError(
                f"Snapshot for {record.model_name}/{record.id} is not an object",
                value=data,
            )
        record._set_remote(data)
        record.is_new = False

    def unload_record(self, record: Model) -> None:
        """Forget a record; a later find_record loads it again."""
        parent = record._embedded_in
        if parent is not None:
            for children in parent._embedded_records.values():
                if children.get(record.id) is record:
                    del children[record.id]
            record._embedded_in = None
        for linked in record._atomically_linked:
            linked._atomically_linked = [
                other for other in linked._atomically_linked if other is not record
            ]
        record._atomically_linked = []
        self._forget(record)
        logger.debug(f"Unloaded {record.model_name}/{record.id}")

    def unload_all(self, model: Optional[ModelRef] = None) -> None:
        """Unload every record, or every record of one model."""
        for record in list(self._iter_records(model)):
            self.unload_record(record)

    # Persistence

    async def save_all(self) -> None:
        """Save every resident record with pending changes."""
        roots: List[Model] = []
        for record in list(self._iter_records()):
            if not is_dirty(record):
                continue
            root = record
            while root.embedded and root._embedded_in is not None:
                root = root._embedded_in
            if root.embedded:
                logger.warning(f"Skipping detached embedded record {root.model_name}/{root.id}")
                continue
            if not any(existing is root for existing in roots):
                roots.append(root)
        for root in roots:
            await root.save()

    async def _save(self, entity: Model) -> None:
        closure = linked_closure(entity)
        plan = plan_save(entity)
        if not plan:
            logger.debug(f"Nothing to save for {entity.model_name}/{entity.id}")
            return

        logger.debug(
            f"Committing {len(plan)} paths for {entity.model_name}/{entity.id} "
            f"across {len(closure)} records"
        )
        for record in closure:
            record.is_saving = True
        try:
            await self.database.update(plan)
        finally:
            for record in closure:
                record.is_saving = False

        self._did_save(closure, plan)
        await self._read_back_timestamps(closure, plan)

    def _did_save(self, closure: List[Model], plan: Dict[str, Any]) -> None:
        for record in closure:
            record._atomically_linked = []
            if record.is_deleted:
                record._delete_committed = True
                self._forget(record)
                continue

            base = record.path
            for path, value in plan.items():
                segments = relative_segments(base, path)
                if not segments:
                    continue
                if is_delete(value) or is_server_timestamp(value):
                    # Server times are filled in by _read_back_timestamps
                    value = None
                put_at(record._remote, segments, value)
            record._local.clear()
            record.is_new = False
            record._sync_embedded()

    async def _read_back_timestamps(self, closure: List[Model], plan: Dict[str, Any]) -> None:
        """Replace server timestamp sentinels with the times the database wrote.

        Runs after the commit has been folded into the records, so a failed
        read leaves them clean and only the timestamps unset.
        """
        for path, value in plan.items():
            if not is_server_timestamp(value):
                continue
            stamp = await self.database.get(path)
            for record in closure:
                if record.is_deleted:
                    continue
                segments = relative_segments(record.path, path)
                if segments:
                    put_at(record._remote, segments, stamp)
                    record._sync_embedded()

    async def _load_record(self, model_class: Type[Model], id: str) -> Model:
        record = self.peek_record(model_class, id)
        if record is not None:
            return record

        key = (model_class.model_name, id)
        task = self._loading.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_record(model_class, id))
            self._loading[key] = task
            task.add_done_callback(lambda _: self._loading.pop(key, None))
        return await task

    async def _fetch_record(self, model_class: Type[Model], id: str) -> Model:
        path = self.path_for(model_class, id)
        data = await self.database.get(path)
        if data is None:
            raise NotFoundError(
                f"Record {model_class.model_name}/{id} not found at {path}",
                resource_type=model_class.model_name,
                resource_id=id,
            )
        logger.debug(f"Loaded {model_class.model_name}/{id}")
        return self.push_record(model_class, id, data)

    # Internal

    def _model_class(self, model: ModelRef) -> Type[Model]:
        if isinstance(model, str):
            model_class = get_registry().get_model(model)
            if model_class is None:
                raise ConfigurationError(f"Unknown model '{model}'", model=model)
        else:
            model_class = model
        if not model_class.model_name:
            raise ConfigurationError(
                f"Model {model_class.__name__} has no model_name",
                model=model_class.__name__,
            )
        return model_class

    def _generate_id(self, model_class: Type[Model]) -> str:
        if self.id_mode is IdMode.PUSH:
            return self.database.push_key(self.collection_path(model_class))
        return generate_uuid(self.id_mode)

    def _register(self, record: Model) -> None:
        self._records.setdefault(record.model_name, {})[record.id] = record

    def _forget(self, record: Model) -> None:
        records = self._records.get(record.model_name, {})
        if records.get(record.id) is record:
            del records[record.id]

    def _iter_records(self, model: Optional[ModelRef] = None) -> Iterator[Model]:
        if model is None:
            for records in self._records.values():
                yield from records.values()
        else:
            yield from self._records.get(self._model_class(model).model_name, {}).values()
