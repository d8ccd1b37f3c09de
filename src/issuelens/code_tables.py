"""Closed lookup tables for the tracker's numeric enumeration codes.

Every table is total: a code outside the table resolves to a synthesized
label (``Status42``) carrying the raw code instead of failing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ResolvedCode:
    field: str
    code: int
    label: str
    known: bool


@dataclass(frozen=True)
class CodeTable:
    field: str
    prefix: str
    labels: dict[int, str]

    def resolve(self, code: int) -> ResolvedCode:
        label = self.labels.get(code)
        if label is None:
            return ResolvedCode(self.field, code, f"{self.prefix}{code}", False)
        return ResolvedCode(self.field, code, label, True)

    def label(self, code: int) -> str:
        return self.resolve(code).label

    def known_labels(self) -> tuple[str, ...]:
        return tuple(self.labels.values())


STATUS = CodeTable(
    field="status",
    prefix="Status",
    labels={
        1: "NEW",
        2: "ASSIGNED",
        3: "ACCEPTED",
        4: "FIXED",
        5: "VERIFIED",
        6: "INVALID",
        7: "WONTFIX",
        8: "DUPLICATE",
        9: "ARCHIVED",
    },
)

PRIORITY = CodeTable(
    field="priority",
    prefix="Priority",
    labels={0: "P0", 1: "P1", 2: "P2", 3: "P3", 4: "P4"},
)

TYPE = CodeTable(
    field="type",
    prefix="Type",
    labels={1: "Bug", 2: "Feature", 3: "Task"},
)

SEVERITY = CodeTable(
    field="severity",
    prefix="Severity",
    labels={0: "S0", 1: "S1", 2: "S2", 3: "S3", 4: "S4"},
)

TABLES: dict[str, CodeTable] = {
    table.field: table for table in (STATUS, PRIORITY, TYPE, SEVERITY)
}


def as_code(value: Any) -> int | None:
    """Return ``value`` as an integer code, or None when it is not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def resolve_label(field: str, value: Any) -> str | None:
    table = TABLES.get(field)
    code = as_code(value)
    if table is None or code is None:
        return None
    return table.label(code)


__all__ = [
    "CodeTable",
    "ResolvedCode",
    "STATUS",
    "PRIORITY",
    "TYPE",
    "SEVERITY",
    "TABLES",
    "as_code",
    "resolve_label",
]
