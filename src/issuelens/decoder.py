"""Schema-less decoder for the tracker's position-encoded metadata arrays.

The tracker never sends a schema. A field is carried as a *tagged field
tuple*::

    ["status", null, [null, ["type.googleapis.com/google.protobuf.Int32Value", [2]]]]

where the trailing element is a *value wrapper* ``[null, [typeTag, payload]]``.
The decoder walks an arbitrary tree, picks out the tuples whose field name
it knows, and interprets the wrapper according to its type tag. Anything
that does not match is skipped; wrappers with an unknown or unexpected tag
are reported through :class:`DecodeDiagnostics` so schema drift shows up in
the logs without breaking callers.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, Union

from . import code_tables
from .logging import get_logger
from .models import PartialRecord
from .wire import safe_get

MAX_DEPTH = 64

STRING_TAG = "StringValue"
INT32_TAG = "Int32Value"
USER_TAG = "User"
USER_EMAIL_SLOT = 1


@dataclass(frozen=True)
class StringValue:
    value: str


@dataclass(frozen=True)
class Int32Value:
    value: int


@dataclass(frozen=True)
class UserRef:
    email: str


@dataclass(frozen=True)
class Unrecognized:
    tag: str
    reason: str


WrappedValue = Union[StringValue, Int32Value, UserRef, Unrecognized]

FIELD_VARIANTS: dict[str, type] = {
    "title": StringValue,
    "status": Int32Value,
    "priority": Int32Value,
    "type": Int32Value,
    "severity": Int32Value,
    "reporter": UserRef,
    "assignee": UserRef,
}


@dataclass
class DecodeDiagnostics:
    """Collects wrappers the decoder saw but could not use."""

    unrecognized: list[tuple[str, str, str]] = field(default_factory=list)

    def record(self, field_name: str, value: Unrecognized) -> None:
        self.unrecognized.append((field_name, value.tag, value.reason))

    def __bool__(self) -> bool:
        return bool(self.unrecognized)


def decode_wrapper(wrapper: Any) -> WrappedValue | None:
    """Interpret ``[null, [typeTag, payload]]``; None when the shape is wrong."""
    inner = safe_get(wrapper, 1)
    if not isinstance(wrapper, list) or not isinstance(inner, list) or len(inner) < 2:
        return None
    tag, payload = inner[0], inner[1]
    if not isinstance(tag, str):
        return None
    if not isinstance(payload, list):
        return Unrecognized(tag, "payload is not an array")
    if STRING_TAG in tag:
        value = safe_get(payload, 0)
        if isinstance(value, str):
            return StringValue(value)
        return Unrecognized(tag, "string payload missing")
    if INT32_TAG in tag:
        code = code_tables.as_code(safe_get(payload, 0))
        if code is not None:
            return Int32Value(code)
        return Unrecognized(tag, "integer payload missing")
    if tag.endswith(USER_TAG) or f".{USER_TAG}" in tag:
        email = safe_get(payload, USER_EMAIL_SLOT)
        if isinstance(email, str) and email:
            return UserRef(email)
        return Unrecognized(tag, "user payload has no email")
    return Unrecognized(tag, "unknown value type")


def _tuple_wrappers(node: list[Any]) -> Iterator[WrappedValue]:
    for candidate in node[1:]:
        decoded = decode_wrapper(candidate)
        if decoded is not None:
            yield decoded


def _apply(record: PartialRecord, field_name: str, value: WrappedValue) -> bool:
    expected = FIELD_VARIANTS[field_name]
    if not isinstance(value, expected):
        return False
    if isinstance(value, StringValue):
        if value.value.strip():
            setattr(record, field_name, value.value.strip())
        return True
    if isinstance(value, Int32Value):
        setattr(record, field_name, code_tables.TABLES[field_name].label(value.value))
        return True
    if isinstance(value, UserRef):
        setattr(record, field_name, value.email)
        return True
    return False  # pragma: no cover - closed variant set


def _decode_tuple(
    node: list[Any], record: PartialRecord, diagnostics: DecodeDiagnostics
) -> bool:
    field_name = node[0]
    matched = False
    for value in _tuple_wrappers(node):
        if isinstance(value, Unrecognized):
            diagnostics.record(field_name, value)
            continue
        if _apply(record, field_name, value):
            matched = True
        else:
            diagnostics.record(
                field_name,
                Unrecognized(type(value).__name__, f"unexpected variant for {field_name}"),
            )
    return matched


def is_tagged_tuple(node: Any) -> bool:
    return (
        isinstance(node, list)
        and len(node) in (2, 3)
        and isinstance(node[0], str)
        and node[0] in FIELD_VARIANTS
    )


def _walk(node: Any, record: PartialRecord, diagnostics: DecodeDiagnostics, depth: int) -> None:
    if depth > MAX_DEPTH:
        return
    if is_tagged_tuple(node) and _decode_tuple(node, record, diagnostics):
        return
    if isinstance(node, list):
        for child in node:
            _walk(child, record, diagnostics, depth + 1)
    elif isinstance(node, dict):
        for child in node.values():
            _walk(child, record, diagnostics, depth + 1)


def decode_metadata(
    node: Any,
    *,
    into: PartialRecord | None = None,
    diagnostics: DecodeDiagnostics | None = None,
) -> PartialRecord:
    """Extract tagged fields from ``node``; never raises for malformed input.

    Later tuples for the same field overwrite earlier ones, so an event
    feed ends up holding the most recent value.
    """
    record = into if into is not None else PartialRecord()
    diag = diagnostics if diagnostics is not None else DecodeDiagnostics()
    _walk(node, record, diag, 0)
    if diag and diagnostics is None:
        for field_name, tag, reason in diag.unrecognized:
            get_logger().debug(
                "unrecognized value wrapper", field=field_name, tag=tag, reason=reason
            )
    return record


__all__ = [
    "StringValue",
    "Int32Value",
    "UserRef",
    "Unrecognized",
    "FIELD_VARIANTS",
    "DecodeDiagnostics",
    "decode_wrapper",
    "is_tagged_tuple",
    "decode_metadata",
]
