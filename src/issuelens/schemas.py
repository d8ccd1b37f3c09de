"""JSON Schemas (draft-07) for the JSON-serializable records.

Schemas describe the ``to_dict()`` output of :class:`~issuelens.models.Issue`,
:class:`~issuelens.models.FetchFailure` and
:class:`~issuelens.models.SearchResults`. Enumerated fields are plain
strings: unknown codes surface as ``Status42`` style labels.
"""

from __future__ import annotations

from typing import Any

from .schema_registry import get_schema_descriptor

SCHEMA_KEY = "$schema"
SCHEMA_URL = "http://json-schema.org/draft-07/schema#"

_OPTIONAL_STRING: dict[str, Any] = {"type": ["string", "null"]}
_ENUM_LABEL: dict[str, Any] = {"type": "string"}


def _document(name: str, body: dict[str, Any]) -> dict[str, Any]:
    descriptor = get_schema_descriptor(name)
    return {
        SCHEMA_KEY: SCHEMA_URL,
        "$comment": f"issuelens {descriptor.name} schema {descriptor.version}",
        "title": descriptor.title,
        "description": descriptor.description,
        **body,
    }


def _comment_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "required": ["author", "content"],
        "properties": {
            "author": {"type": "string"},
            "timestamp": _OPTIONAL_STRING,
            "content": {"type": "string"},
        },
    }


def _summary_properties() -> dict[str, Any]:
    return {
        "issueId": {"type": "string"},
        "title": _OPTIONAL_STRING,
        "status": _OPTIONAL_STRING,
        "priority": _OPTIONAL_STRING,
        "type": _OPTIONAL_STRING,
        "severity": _OPTIONAL_STRING,
        "reporter": _OPTIONAL_STRING,
        "assignee": _OPTIONAL_STRING,
        "created": _OPTIONAL_STRING,
        "modified": _OPTIONAL_STRING,
        "browserUrl": {"type": "string"},
    }


def get_schemas() -> dict[str, Any]:
    """Return a mapping of schema name -> JSON Schema dictionary.

    Keys:
        issue:          a successfully acquired issue.
        fetch_failure:  total acquisition failure carrying ``browserUrl``.
        search_results: the result of a list query.
    """
    issue_properties = _summary_properties()
    issue_properties.update(
        {
            "status": _ENUM_LABEL,
            "priority": _ENUM_LABEL,
            "type": _ENUM_LABEL,
            "severity": _ENUM_LABEL,
            "description": _OPTIONAL_STRING,
            "comments": {"type": "array", "items": _comment_schema()},
            "relatedChangeIds": {
                "type": "array",
                "items": {"type": "string", "pattern": "^[0-9]{6,}$"},
                "uniqueItems": True,
            },
            "provenance": {
                "type": "string",
                "enum": ["direct", "page-fetch", "browser-automation"],
            },
        }
    )
    issue_schema = _document(
        "issue",
        {
            "type": "object",
            "required": [
                "issueId",
                "status",
                "priority",
                "type",
                "severity",
                "comments",
                "relatedChangeIds",
                "provenance",
                "browserUrl",
            ],
            "properties": issue_properties,
        },
    )

    failure_schema = _document(
        "fetch_failure",
        {
            "type": "object",
            "required": ["issueId", "browserUrl", "error", "message"],
            "properties": {
                "issueId": {"type": "string"},
                "browserUrl": {"type": "string"},
                "error": {"type": "string"},
                "message": {"type": "string"},
                "reasons": {"type": "object", "additionalProperties": {"type": "string"}},
            },
        },
    )

    search_schema = _document(
        "search_results",
        {
            "type": "object",
            "required": ["query", "total", "issues", "searchUrl"],
            "properties": {
                "query": {"type": "string"},
                "total": {"type": "integer", "minimum": 0},
                "searchUrl": {"type": "string"},
                "issues": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "required": ["issueId", "browserUrl"],
                        "properties": _summary_properties(),
                    },
                },
            },
        },
    )

    return {
        "issue": issue_schema,
        "fetch_failure": failure_schema,
        "search_results": search_schema,
    }


__all__ = ["get_schemas", "SCHEMA_URL"]
