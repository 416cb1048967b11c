"""
Atomic persistence planner.

Flattens the pending changes of a record, its embedded children and
every record atomically linked to it into one path -> value map, which
the store hands to the database's multi-path update.

Plan values are literal stored values, DELETE, or SERVER_TIMESTAMP.

Invariants:
    - A deleted record contributes exactly one DELETE at its own path
      until that deletion is committed, then nothing
    - To-many relations are written one member path at a time, never as
      a whole collection, so concurrent additions are not overwritten
    - Embedded records never get a path of their own; they are planned
      under their parent's path
    - Each linked record is planned once; when two plans write the same
      path, the one planned later wins
    - A clean record (and clean closure) plans nothing

How to change safely:
    - Any new value written here must also be folded back by
      Store._did_save, or the record will look dirty after commit
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Dict, Iterable, List, Optional, TYPE_CHECKING

from .database.base import DELETE, SERVER_TIMESTAMP, is_delete
from .errors import CannotSaveDetachedEmbeddedError, EmbeddedRecordNotLoadedError
from .handlers.base import HandlerKind
from .handlers.inverse import effective_members, effective_relation_id
from .paths import is_ancestor, join_path

if TYPE_CHECKING:
    from .model import Model
    from .schema import RelationDef

logger = logging.getLogger(__name__)

Plan = Dict[str, Any]


def plan_paths(entity: Model, parent_path: Optional[str] = None) -> Plan:
    """Build the write plan for one record and its embedded children.

    Args:
        entity: Record to plan
        parent_path: Path of the record inside its parent, for embedded records

    Returns:
        Mapping of absolute path to value, DELETE or SERVER_TIMESTAMP

    Raises:
        CannotSaveDetachedEmbeddedError: If an embedded record is planned
            on its own without a parent
        EmbeddedRecordNotLoadedError: If an embedded child is missing from
            its parent's cache
    """
    if parent_path is None and entity.embedded:
        raise CannotSaveDetachedEmbeddedError(
            f"Embedded record {entity.id} can only be saved through its parent",
            record_id=entity.id,
        )
    path = parent_path if parent_path is not None else entity.path

    if entity.is_deleted:
        # A committed deletion has nothing left to write
        return {} if entity._delete_committed else {path: DELETE}

    if is_dirty(entity):
        _prepare(entity)

    plan: Plan = {}
    for name, definition in entity.schema.items():
        if definition.kind is HandlerKind.ATTR:
            if name in entity._local:
                value = entity._local[name]
                plan[join_path(path, name)] = DELETE if value is None else value
        elif definition.embedded:
            if definition.kind is HandlerKind.BELONGS_TO:
                _plan_embedded_one(entity, definition, path, plan)
            else:
                _plan_embedded_many(entity, definition, path, plan)
        elif name in entity._local:
            value = entity._local[name]
            if definition.kind is HandlerKind.BELONGS_TO:
                plan[join_path(path, name)] = DELETE if value is None else value
            else:
                for member_id, present in value.items():
                    plan[join_path(path, name, member_id)] = True if present else DELETE
    return plan


def is_dirty(entity: Model) -> bool:
    """Whether the record, or any embedded descendant, has something to write."""
    if entity.has_pending_changes:
        return True
    return any(
        is_dirty(child)
        for children in entity._embedded_records.values()
        for child in children.values()
    )


def linked_closure(entity: Model) -> List[Model]:
    """All records reachable through atomic links, breadth first, each once."""
    seen = {id(entity)}
    order = [entity]
    queue = deque([entity])
    while queue:
        current = queue.popleft()
        for linked in current._atomically_linked:
            if id(linked) not in seen:
                seen.add(id(linked))
                order.append(linked)
                queue.append(linked)
    return order


def merge_plans(plans: Iterable[Plan]) -> Plan:
    """Merge plans in order; later plans win on identical paths.

    Writes below a path that is deleted in the same merged plan are
    dropped, since a multi-path update cannot contain overlapping paths.
    """
    merged: Plan = {}
    for plan in plans:
        merged.update(plan)

    deleted = [path for path, value in merged.items() if is_delete(value)]
    for path in list(merged):
        if any(is_ancestor(ancestor, path) for ancestor in deleted):
            logger.debug(f"Dropping write to {path} below a deleted path")
            del merged[path]
    return merged


def plan_save(entity: Model) -> Plan:
    """Plan one commit for ``entity`` and everything linked to it."""
    closure = linked_closure(entity)
    plan = merge_plans(plan_paths(record) for record in closure)
    logger.debug(
        f"Planned {len(plan)} paths for {entity.model_name}/{entity.id} "
        f"across {len(closure)} records"
    )
    return plan


def _prepare(entity: Model) -> None:
    """Populate defaults and server timestamps into pending changes."""
    for name, definition in entity.schema.items():
        if definition.kind is not HandlerKind.ATTR:
            continue
        if definition.server_timestamp:
            entity._local[name] = SERVER_TIMESTAMP
        elif (
            definition.has_default
            and name not in entity._local
            and entity._remote.get(name) is None
        ):
            entity._local[name] = definition.serializer.serialize(definition.default_value())


def _plan_embedded_one(entity: Model, definition: RelationDef, path: str, plan: Plan) -> None:
    name = definition.name
    child_path = join_path(path, name)
    child_id = effective_relation_id(entity, definition)
    if child_id is None:
        if name in entity._local:
            plan[child_path] = DELETE
        return

    child = _embedded_child(entity, name, child_id)
    if child.is_deleted:
        plan[child_path] = DELETE
        return

    child_plan = plan_paths(child, child_path)
    if child_plan or name in entity._local:
        plan.update(child_plan)
        # The id is not the storage key here, so it is written into the payload
        plan[join_path(child_path, "id")] = child.id


def _plan_embedded_many(entity: Model, definition: RelationDef, path: str, plan: Plan) -> None:
    name = definition.name
    for child_id, member in effective_members(entity, definition).items():
        child_path = join_path(path, name, child_id)
        if member is None:
            plan[child_path] = DELETE
            continue
        child = _embedded_child(entity, name, child_id)
        if child.is_deleted:
            plan[child_path] = DELETE
            continue
        plan.update(plan_paths(child, child_path))


def _embedded_child(entity: Model, name: str, child_id: str) -> Model:
    child = entity._embedded_records.get(name, {}).get(child_id)
    if child is None:
        raise EmbeddedRecordNotLoadedError(
            f"Embedded record {child_id} in {entity.model_name}/{entity.id}.{name} "
            "is not loaded",
            record_id=child_id,
            attribute=name,
        )
    return child
