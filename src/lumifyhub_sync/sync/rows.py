"""Conversion between remote payloads and local documents.

The remote API returns database rows as flat objects::

    {"_id": "r1", "_title": "Task", "_data_source_id": null,
     "status": "opt_done", "tags": ["opt_a", "opt_b"], "points": 3}

Locally every property value is text or ``None``: scalars are
stringified and composites are JSON-encoded.  Going back to the wire,
``select`` and ``multi_select`` values are resolved from option display
names to option ids; every other value is JSON-decoded when possible.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any

from .models import PageDocument, PropertyDescriptor, Row, SchemaDocument

logger = logging.getLogger(__name__)

SELECT_TYPE = "select"
MULTI_SELECT_TYPE = "multi_select"


# ---------------------------------------------------------------------------
# Remote -> local
# ---------------------------------------------------------------------------


def stringify_value(value: Any) -> str | None:
    """Convert a remote property value to its local text form."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def row_from_wire(
    wire_row: dict[str, Any], properties: Iterable[PropertyDescriptor]
) -> Row:
    """Build a local row from a remote row object.

    Accepts both the flat form (property ids as top-level keys) and a
    nested ``properties`` mapping.  Properties absent from the payload,
    and empty strings, become ``None`` (the table file cannot tell the
    two apart).
    """
    nested = wire_row.get("properties")
    values = nested if isinstance(nested, dict) else wire_row
    row_id = wire_row.get("_id", wire_row.get("id"))
    title = wire_row.get("_title", wire_row.get("title"))
    data_source_id = wire_row.get(
        "_data_source_id", wire_row.get("data_source_id")
    )
    return Row(
        id=str(row_id or ""),
        title=title or "",
        data_source_id=data_source_id or None,
        properties={
            p.property_id: stringify_value(values.get(p.property_id)) or None
            for p in properties
        },
    )


def schema_from_wire(payload: dict[str, Any]) -> SchemaDocument:
    """Build a schema document (with empty stamps) from a remote database."""
    return SchemaDocument.model_validate(
        {
            "id": payload["id"],
            "title": payload.get("title") or "",
            "workspace_id": payload.get("workspace_id") or "",
            "workspace_slug": payload.get("workspace_slug") or "",
            "slug": payload.get("slug") or "",
            "updated_at": payload.get("updated_at"),
            "data_sources": payload.get("data_sources") or [],
            "properties": [
                {**p, "config": p.get("config") or {}}
                for p in payload.get("properties") or []
            ],
        }
    )


def database_from_wire(
    payload: dict[str, Any],
) -> tuple[SchemaDocument, list[Row]]:
    """Split a remote database payload into its schema and local rows."""
    schema_doc = schema_from_wire(payload)
    rows = [
        row_from_wire(r, schema_doc.properties)
        for r in payload.get("rows") or []
    ]
    return schema_doc, rows


def page_from_wire(
    payload: dict[str, Any], workspace_slug: str | None = None
) -> PageDocument:
    """Build a page document (with empty stamps) from a remote page.

    Args:
        payload: Page object returned by the API.
        workspace_slug: Overrides the payload's workspace slug; update
            responses do not always include it.
    """
    return PageDocument(
        id=payload["id"],
        title=payload.get("title") or "",
        workspace_id=payload.get("workspace_id") or "",
        workspace_slug=workspace_slug or payload.get("workspace_slug") or "",
        slug=payload.get("slug") or "",
        updated_at=payload.get("updated_at"),
        content=payload.get("content") or "",
    )


# ---------------------------------------------------------------------------
# Local -> remote
# ---------------------------------------------------------------------------


def _options(prop: PropertyDescriptor) -> list[dict[str, Any]]:
    options = prop.config.get("options") or []
    return [o for o in options if isinstance(o, dict)]


def resolve_option(prop: PropertyDescriptor, value: str) -> str:
    """Map an option display name (or id) to the option id.

    Unknown names are returned unchanged; the remote decides whether they
    are valid.
    """
    for option in _options(prop):
        if option.get("name") == value or option.get("id") == value:
            return str(option.get("id"))
    logger.debug(
        "Unresolved option %r for property %s", value, prop.property_id
    )
    return value


def _split_multi(value: str) -> list[str]:
    if value.startswith("["):
        try:
            decoded = json.loads(value)
        except ValueError:
            decoded = None
        if isinstance(decoded, list):
            return [str(v) for v in decoded if v not in (None, "")]
    return [part.strip() for part in value.split(",") if part.strip()]


def value_to_wire(prop: PropertyDescriptor, value: str | None) -> Any:
    """Convert one local property value to its API representation."""
    if value is None or value == "":
        return None
    if prop.property_type == SELECT_TYPE:
        return resolve_option(prop, value)
    if prop.property_type == MULTI_SELECT_TYPE:
        ids = [resolve_option(prop, name) for name in _split_multi(value)]
        return ids or None
    try:
        return json.loads(value)
    except ValueError:
        return value


def row_to_wire(
    row: Row, properties: Iterable[PropertyDescriptor]
) -> dict[str, Any]:
    """Build the API representation of a local row."""
    return {
        "id": row.id,
        "title": row.title,
        "data_source_id": row.data_source_id,
        "properties": {
            p.property_id: value_to_wire(p, row.properties.get(p.property_id))
            for p in properties
        },
    }
