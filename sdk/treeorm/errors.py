"""
Error types for the treeorm SDK.

This module defines all exception types raised by the entity graph:
- TreeOrmError: Base exception
- ConfigurationError: Bad store or model configuration
- RelationshipIntegrityError: Relation changes that cannot be applied
- StateError: Operations not allowed in the record's current state
- SerializationError: Values that do not match an attribute's kind
- NotFoundError: Record missing from the remote database

Invariants:
    - All errors inherit from TreeOrmError
    - Errors include context for debugging
    - Errors are raised synchronously at the call that caused them,
      before any local state has been mutated
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class TreeOrmError(Exception):
    """Base exception for all treeorm errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "TREEORM_ERROR"
        self.details = details or {}


class ConfigurationError(TreeOrmError):
    """Store or model configuration is invalid.

    Raised when:
    - A model class has no model_name
    - A path prefix group is not registered in the store
    - The id generation mode is not supported
    - A relation descriptor is malformed
    """

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message, code="CONFIGURATION_ERROR", details=details)


class UnknownFieldError(ConfigurationError):
    """Unknown attribute passed when creating a record.

    Includes suggestions for similar attribute names.

    Attributes:
        field_name: The unknown attribute
        type_name: The model being created
        suggestions: Similar attribute names
    """

    def __init__(
        self,
        field_name: str,
        type_name: str,
        suggestions: Optional[List[str]] = None,
    ) -> None:
        suggestions = suggestions or []
        msg = f"Unknown attribute '{field_name}' on model '{type_name}'"
        if suggestions:
            msg += f". Did you mean: {', '.join(suggestions)}?"

        super().__init__(
            msg,
            field_name=field_name,
            type_name=type_name,
            suggestions=suggestions,
        )
        self.code = "UNKNOWN_FIELD"
        self.field_name = field_name
        self.type_name = type_name
        self.suggestions = suggestions


class RelationshipIntegrityError(TreeOrmError):
    """A relation change cannot be applied consistently.

    Nothing is mutated when this is raised.
    """

    default_code = "RELATIONSHIP_INTEGRITY_ERROR"

    def __init__(
        self,
        message: str,
        record_id: Optional[str] = None,
        attribute: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code=self.default_code,
            details={"record_id": record_id, "attribute": attribute},
        )
        self.record_id = record_id
        self.attribute = attribute


class RelatedRecordNotLoadedError(RelationshipIntegrityError):
    """The other side of an inverse relation is not in the store."""

    default_code = "RELATED_RECORD_NOT_LOADED"


class InverseAttributeNotFoundError(RelationshipIntegrityError):
    """The configured inverse attribute does not exist on the target model."""

    default_code = "INVERSE_ATTRIBUTE_NOT_FOUND"


class InvalidInverseKindError(RelationshipIntegrityError):
    """The configured inverse attribute is a plain attribute, not a relation."""

    default_code = "INVALID_INVERSE_KIND"


class EmbeddedInverseNotAllowedError(RelationshipIntegrityError):
    """Embedded records cannot hold relations with inverses."""

    default_code = "EMBEDDED_INVERSE_NOT_ALLOWED"


class NotEmbeddableError(RelationshipIntegrityError):
    """A record of a non-embeddable model was given to an embedded relation."""

    default_code = "NOT_EMBEDDABLE"


class EmbeddedRecordNotLoadedError(RelationshipIntegrityError):
    """An embedded child could not be found in its parent's cache."""

    default_code = "EMBEDDED_RECORD_NOT_LOADED"


class InvalidRelationValueError(RelationshipIntegrityError):
    """A relation was set to something that is not a record, id or id map."""

    default_code = "INVALID_RELATION_VALUE"


class StateError(TreeOrmError):
    """Operation is not allowed in the record's current state."""

    default_code = "STATE_ERROR"

    def __init__(self, message: str, record_id: Optional[str] = None) -> None:
        super().__init__(
            message,
            code=self.default_code,
            details={"record_id": record_id},
        )
        self.record_id = record_id


class RecordDeletedError(StateError):
    """Attribute access on a record that has been deleted."""

    default_code = "RECORD_DELETED"


class RollbackOfDeletedUnsupportedError(StateError):
    """Rolling back a deleted record is not supported."""

    default_code = "ROLLBACK_OF_DELETED_UNSUPPORTED"


class CannotSaveDetachedEmbeddedError(StateError):
    """An embedded record was saved without being embedded in a parent."""

    default_code = "CANNOT_SAVE_DETACHED_EMBEDDED"


class SerializationError(TreeOrmError):
    """Value cannot be converted to or from its stored form.

    Raised lazily, only when the offending attribute is read or written.
    """

    def __init__(
        self,
        message: str,
        attribute: Optional[str] = None,
        value: Any = None,
    ) -> None:
        super().__init__(
            message,
            code="SERIALIZATION_ERROR",
            details={"attribute": attribute, "value": repr(value)},
        )
        self.attribute = attribute
        self.value = value


class TypeMismatchError(SerializationError):
    """Value's primitive kind does not match the attribute's declared kind."""

    def __init__(
        self,
        message: str,
        expected: str,
        value: Any = None,
        attribute: Optional[str] = None,
    ) -> None:
        super().__init__(message, attribute=attribute, value=value)
        self.code = "TYPE_MISMATCH"
        self.details["expected"] = expected
        self.expected = expected


class NotFoundError(TreeOrmError):
    """Record not found.

    Raised when:
    - find_record targets a location with no data

    Callers can catch this to branch into a create-on-miss flow.
    """

    def __init__(
        self,
        message: str,
        resource_type: str,
        resource_id: str,
    ) -> None:
        super().__init__(
            message,
            code="NOT_FOUND",
            details={
                "resource_type": resource_type,
                "resource_id": resource_id,
            },
        )
        self.resource_type = resource_type
        self.resource_id = resource_id
