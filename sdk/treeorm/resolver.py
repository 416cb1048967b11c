"""
Lazy reference resolution.

Relation reads never suspend. A related record that is already resident
is returned as is; one that must be fetched is returned as a
PendingReference. Both are awaitable and both expose ``id``, so callers
can always write ``await post.blog`` and branch on ``is_loading`` only
when they care whether a fetch is needed.

Invariants:
    - Constructing a PendingReference performs no I/O
    - Awaiting it fetches at most once per store for the same record,
      even when several references to it are awaited concurrently
"""

from __future__ import annotations

from typing import Any, Generator, Type, TYPE_CHECKING

if TYPE_CHECKING:
    from .model import Model
    from .store import Store


class PendingReference:
    """Placeholder for a related record that is not resident yet.

    Attributes:
        store: Store that will load the record
        model_class: Model of the referenced record
        id: Referenced record id
        is_loading: Always True; a resolved record reports False

    Example:
        >>> ref = store.find_record(Blog, "b1")
        >>> ref.is_loading
        True
        >>> blog = await ref
    """

    is_loading = True

    def __init__(self, store: Store, model_class: Type[Model], id: str) -> None:
        self.store = store
        self.model_class = model_class
        self.id = id

    def __await__(self) -> Generator[Any, None, Model]:
        return self.store._load_record(self.model_class, self.id).__await__()

    def __repr__(self) -> str:
        return f"<PendingReference {self.model_class.model_name}/{self.id}>"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, PendingReference):
            return (
                self.store is other.store
                and self.model_class is other.model_class
                and self.id == other.id
            )
        return NotImplemented

    def __hash__(self) -> int:
        return hash((id(self.store), self.model_class, self.id))
