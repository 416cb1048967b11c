"""
treeorm - Object mapping for tree-structured key/value databases.

This SDK layers records and relations over a database that only knows
paths and values:
- Model definitions (Model, attr, belongs_to, has_many)
- Store: identity map, lazy relation loading and atomic saves
- Inverse relations kept symmetric on both sides
- Embedded records stored inside their parent's path
- Database backends (in-memory, REST)

Example:
    >>> from treeorm import InMemoryTreeDatabase, Model, Store, attr, has_many
    >>>
    >>> class Blog(Model):
    ...     model_name = "blog"
    ...     name = attr("str")
    ...     posts = has_many("Post", inverse="blog")
    >>>
    >>> store = Store(InMemoryTreeDatabase())
    >>> blog = store.create_record(Blog, {"id": "b1", "name": "Notes"})
    >>> await blog.save()

Invariants:
    - One record instance per (model, id) per store
    - A save writes the record and everything linked to it atomically
    - Errors are raised before any state is mutated

Version: 1.0.0
"""

__version__ = "1.0.0"

from .config import StoreSettings, setup_logging
from .database import (
    DELETE,
    SERVER_TIMESTAMP,
    DatabaseConnectionError,
    DatabaseError,
    InMemoryTreeDatabase,
    RestTreeDatabase,
    TreeDatabase,
    create_database,
)
from .errors import (
    CannotSaveDetachedEmbeddedError,
    ConfigurationError,
    EmbeddedInverseNotAllowedError,
    EmbeddedRecordNotLoadedError,
    InvalidInverseKindError,
    InvalidRelationValueError,
    InverseAttributeNotFoundError,
    NotEmbeddableError,
    NotFoundError,
    RecordDeletedError,
    RelatedRecordNotLoadedError,
    RelationshipIntegrityError,
    RollbackOfDeletedUnsupportedError,
    SerializationError,
    StateError,
    TreeOrmError,
    TypeMismatchError,
    UnknownFieldError,
)
from .handlers import RelatedList
from .ids import IdMode, generate_push_key
from .model import Model
from .planner import merge_plans, plan_paths, plan_save
from .registry import ModelRegistry, get_registry, reset_registry
from .resolver import PendingReference
from .schema import AttrDef, BelongsToDef, FieldDef, HasManyDef, attr, belongs_to, has_many
from .serializers import FieldKind, serializer_for
from .store import Store

__all__ = [
    # Version
    "__version__",
    # Models
    "Model",
    "FieldDef",
    "AttrDef",
    "BelongsToDef",
    "HasManyDef",
    "FieldKind",
    "attr",
    "belongs_to",
    "has_many",
    "serializer_for",
    "RelatedList",
    "PendingReference",
    # Registry
    "ModelRegistry",
    "get_registry",
    "reset_registry",
    # Store
    "Store",
    "StoreSettings",
    "setup_logging",
    "IdMode",
    "generate_push_key",
    "plan_paths",
    "plan_save",
    "merge_plans",
    # Database
    "TreeDatabase",
    "InMemoryTreeDatabase",
    "RestTreeDatabase",
    "create_database",
    "DELETE",
    "SERVER_TIMESTAMP",
    "DatabaseError",
    "DatabaseConnectionError",
    # Errors
    "TreeOrmError",
    "ConfigurationError",
    "UnknownFieldError",
    "RelationshipIntegrityError",
    "RelatedRecordNotLoadedError",
    "InverseAttributeNotFoundError",
    "InvalidInverseKindError",
    "EmbeddedInverseNotAllowedError",
    "NotEmbeddableError",
    "EmbeddedRecordNotLoadedError",
    "InvalidRelationValueError",
    "StateError",
    "RecordDeletedError",
    "RollbackOfDeletedUnsupportedError",
    "CannotSaveDetachedEmbeddedError",
    "SerializationError",
    "TypeMismatchError",
    "NotFoundError",
]
