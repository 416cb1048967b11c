"""
Value codecs for scalar attributes.

Each FieldKind has a serializer converting between the Python value an
attribute exposes and the primitive the tree database stores:
- STRING, NUMBER, BOOLEAN: stored natively, validated both ways
- DATE: stored as an RFC 1123 GMT string (epoch ms also accepted)
- JSON: stored as JSON text

Invariants:
    - Serializers are stateless; one shared instance per kind
    - A wrong primitive kind raises TypeMismatchError on write and on read
    - deserialize(serialize(v)) == v for every supported value
      (dates at second precision, timezone-aware)
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from enum import Enum
from typing import Any, Dict

from .errors import TypeMismatchError


class FieldKind(Enum):
    """Supported scalar attribute kinds."""

    STRING = "str"
    NUMBER = "number"
    BOOLEAN = "bool"
    DATE = "date"
    JSON = "json"

    @classmethod
    def from_str(cls, value: str) -> FieldKind:
        """Convert string to FieldKind."""
        for kind in cls:
            if kind.value == value:
                return kind
        raise ValueError(f"Invalid field kind: {value}")


class Serializer(ABC):
    """Converts a value to and from its stored primitive."""

    kind: FieldKind

    @abstractmethod
    def serialize(self, value: Any) -> Any:
        ...

    @abstractmethod
    def deserialize(self, value: Any) -> Any:
        ...

    def _mismatch(self, action: str, value: Any, expected: str) -> TypeMismatchError:
        return TypeMismatchError(
            f"{action} {value!r} got {type(value).__name__} but expected {expected}",
            expected=expected,
            value=value,
        )


class StringSerializer(Serializer):
    kind = FieldKind.STRING

    def serialize(self, value: Any) -> str:
        if not isinstance(value, str):
            raise self._mismatch("serializing", value, "str")
        return value

    def deserialize(self, value: Any) -> str:
        if not isinstance(value, str):
            raise self._mismatch("deserializing", value, "str")
        return value


class NumberSerializer(Serializer):
    kind = FieldKind.NUMBER

    def serialize(self, value: Any) -> int | float:
        if not _is_number(value):
            raise self._mismatch("serializing", value, "number")
        return value

    def deserialize(self, value: Any) -> int | float:
        if not _is_number(value):
            raise self._mismatch("deserializing", value, "number")
        return value


class BooleanSerializer(Serializer):
    kind = FieldKind.BOOLEAN

    def serialize(self, value: Any) -> bool:
        if not isinstance(value, bool):
            raise self._mismatch("serializing", value, "bool")
        return value

    def deserialize(self, value: Any) -> bool:
        if not isinstance(value, bool):
            raise self._mismatch("deserializing", value, "bool")
        return value


class DateSerializer(Serializer):
    """Dates are written as RFC 1123 strings in GMT.

    Naive datetimes are taken to be UTC. Numbers are epoch milliseconds.
    Strings are passed through on write once they parse as dates.
    """

    kind = FieldKind.DATE

    def serialize(self, value: Any) -> str:
        if isinstance(value, datetime):
            return format_datetime(_as_utc(value), usegmt=True)
        if _is_number(value):
            return format_datetime(_from_millis(value), usegmt=True)
        if isinstance(value, str):
            self._parse(value)
            return value
        raise self._mismatch("serializing", value, "datetime, number or str")

    def deserialize(self, value: Any) -> datetime:
        if isinstance(value, str):
            return self._parse(value)
        if _is_number(value):
            return _from_millis(value)
        raise self._mismatch("deserializing", value, "number or str")

    def _parse(self, value: str) -> datetime:
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            try:
                parsed = datetime.fromisoformat(value)
            except ValueError:
                raise self._mismatch("parsing", value, "date string") from None
        return _as_utc(parsed)


class JSONSerializer(Serializer):
    kind = FieldKind.JSON

    def serialize(self, value: Any) -> str:
        if not isinstance(value, (dict, list)):
            raise self._mismatch("serializing", value, "dict or list")
        return json.dumps(value)

    def deserialize(self, value: Any) -> Any:
        if not isinstance(value, str):
            raise self._mismatch("deserializing", value, "str")
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            raise self._mismatch("decoding", value, "JSON text") from None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _from_millis(value: int | float) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


_SERIALIZERS: Dict[FieldKind, Serializer] = {
    FieldKind.STRING: StringSerializer(),
    FieldKind.NUMBER: NumberSerializer(),
    FieldKind.BOOLEAN: BooleanSerializer(),
    FieldKind.DATE: DateSerializer(),
    FieldKind.JSON: JSONSerializer(),
}


def serializer_for(kind: FieldKind | str) -> Serializer:
    """Get the shared serializer for a field kind."""
    if isinstance(kind, str):
        kind = FieldKind.from_str(kind)
    return _SERIALIZERS[kind]
