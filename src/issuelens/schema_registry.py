"""Versioned descriptors for the records issuelens emits."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class SchemaDescriptor:
    name: str
    version: str
    title: str
    description: str


_REGISTRY: dict[str, SchemaDescriptor] = {
    "issue": SchemaDescriptor(
        name="issue",
        version="issue/1",
        title="Issue",
        description="Merged issue record with comments and related change ids.",
    ),
    "fetch_failure": SchemaDescriptor(
        name="fetch_failure",
        version="fetch-failure/1",
        title="FetchFailure",
        description="Returned when no acquisition strategy produced data.",
    ),
    "search_results": SchemaDescriptor(
        name="search_results",
        version="search-results/1",
        title="SearchResults",
        description="Issue summaries decoded from a tracker list query.",
    ),
}


def get_schema_descriptor(name: str) -> SchemaDescriptor:
    """Return a copy of a schema descriptor by name."""
    try:
        descriptor = _REGISTRY[name]
    except KeyError as exc:
        raise KeyError(f"Unknown schema '{name}'") from exc
    return replace(descriptor)


def iter_schema_descriptors() -> Iterable[SchemaDescriptor]:
    for descriptor in _REGISTRY.values():
        yield replace(descriptor)


__all__ = ["SchemaDescriptor", "get_schema_descriptor", "iter_schema_descriptors"]
