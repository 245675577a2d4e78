"""Content fingerprints for change detection.

Fingerprints are SHA-256 hex digests truncated to 16 characters.  They are
only compared for equality and carry no security meaning.

Collections are canonicalised before hashing (properties by
``property_id``, data sources by ``id``, rows by ``id``; JSON with sorted
keys and compact separators) so the result does not depend on the order
records were read from disk or received from the remote.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from typing import Any

from .models import DataSourceDescriptor, PropertyDescriptor, Row, SchemaDocument

FINGERPRINT_LENGTH = 16


def fingerprint(data: str | bytes) -> str:
    """Return the truncated SHA-256 hex digest of *data*."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()[:FINGERPRINT_LENGTH]


def _canonical_json(value: Any) -> str:
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def schema_fingerprint(
    properties: Iterable[PropertyDescriptor],
    data_sources: Iterable[DataSourceDescriptor],
) -> str:
    """Fingerprint a schema's properties and data sources."""
    sorted_props = sorted(properties, key=lambda p: p.property_id)
    sorted_sources = sorted(data_sources, key=lambda ds: ds.id)
    payload = {
        "properties": [p.model_dump(mode="json") for p in sorted_props],
        "data_sources": [
            ds.model_dump(mode="json") for ds in sorted_sources
        ],
    }
    return fingerprint(_canonical_json(payload))


def rows_fingerprint(rows: Iterable[Row]) -> str:
    """Fingerprint a row set independently of row order."""
    sorted_rows = sorted(rows, key=lambda r: r.id)
    payload = [r.model_dump(mode="json") for r in sorted_rows]
    return fingerprint(_canonical_json(payload))


def database_fingerprint(
    schema_doc: SchemaDocument, rows: Iterable[Row]
) -> str:
    """Combined fingerprint of a database's schema and rows.

    Scalar metadata (title, slug, timestamps, the hash stamps themselves)
    is excluded: only properties, data sources and row
    contents participate.
    """
    return fingerprint(
        schema_fingerprint(schema_doc.properties, schema_doc.data_sources)
        + rows_fingerprint(rows)
    )


def page_fingerprint(content: str) -> str:
    """Fingerprint a page body.

    Leading and trailing whitespace is ignored because the page file
    format does not preserve it.
    """
    return fingerprint(content.strip())
