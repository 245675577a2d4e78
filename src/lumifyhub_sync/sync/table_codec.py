"""Reader and writer for ``data.csv``.

Column order is driven by the schema: ``_id``, ``_title``,
``_data_source_id``, then property ids sorted by ``sort_order``.  Fields
containing a comma, a double quote or a line break are quoted with
internal quotes doubled; ``None`` is written as an empty field.

The reader is a per-character scanner over the whole text, so quoted
fields may span lines.  Every value comes back as text; type information
lives in the schema only.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from lumifyhub_sync.file_handler import read_file_with_encoding, write_file

from .models import PropertyDescriptor, Row

logger = logging.getLogger(__name__)

DATA_FILENAME = "data.csv"

ID_COLUMN = "_id"
TITLE_COLUMN = "_title"
DATA_SOURCE_COLUMN = "_data_source_id"
FIXED_COLUMNS = (ID_COLUMN, TITLE_COLUMN, DATA_SOURCE_COLUMN)

DELIMITER = ","
QUOTE = '"'


def columns_for(properties: Iterable[PropertyDescriptor]) -> list[str]:
    """Return the column names for a schema, in file order."""
    ordered = sorted(properties, key=lambda p: p.sort_order)
    return [*FIXED_COLUMNS, *(p.property_id for p in ordered)]


# =============================================================================
# Serialize
# =============================================================================


def escape_field(value: str) -> str:
    """Quote *value* if it contains a delimiter, quote or line break."""
    if any(ch in value for ch in (DELIMITER, QUOTE, "\n", "\r")):
        return QUOTE + value.replace(QUOTE, QUOTE * 2) + QUOTE
    return value


def serialize_table(
    records: Iterable[dict[str, str | None]], columns: list[str]
) -> str:
    """Render records as delimited text with a header row."""
    lines = [DELIMITER.join(escape_field(c) for c in columns)]
    for record in records:
        values = []
        for column in columns:
            value = record.get(column)
            values.append(escape_field("" if value is None else value))
        lines.append(DELIMITER.join(values))
    return "\n".join(lines) + "\n"


def row_to_record(row: Row) -> dict[str, str | None]:
    record: dict[str, str | None] = {
        ID_COLUMN: row.id,
        TITLE_COLUMN: row.title,
        DATA_SOURCE_COLUMN: row.data_source_id,
    }
    record.update(row.properties)
    return record


def serialize_rows(
    rows: Iterable[Row], properties: Iterable[PropertyDescriptor]
) -> str:
    """Render rows as ``data.csv`` text with schema-driven columns."""
    columns = columns_for(properties)
    return serialize_table((row_to_record(r) for r in rows), columns)


# =============================================================================
# Parse
# =============================================================================


def scan_records(text: str) -> list[list[str]]:
    """Split delimited text into records of raw field strings.

    A doubled quote inside a quoted field is a literal quote; only a
    delimiter or line break outside quotes ends a field.  Lines that are
    empty outside quotes are skipped.
    """
    records: list[list[str]] = []
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    field_started = False
    i = 0
    n = len(text)

    def end_record() -> None:
        nonlocal fields, current, field_started
        if fields or field_started:
            fields.append("".join(current))
            records.append(fields)
        fields = []
        current = []
        field_started = False

    while i < n:
        ch = text[i]
        if in_quotes:
            if ch == QUOTE:
                if i + 1 < n and text[i + 1] == QUOTE:
                    current.append(QUOTE)
                    i += 2
                    continue
                in_quotes = False
            else:
                current.append(ch)
        elif ch == QUOTE:
            in_quotes = True
            field_started = True
        elif ch == DELIMITER:
            fields.append("".join(current))
            current = []
            field_started = True
        elif ch == "\n":
            end_record()
        elif ch == "\r":
            if i + 1 < n and text[i + 1] == "\n":
                i += 1
            end_record()
        else:
            current.append(ch)
            field_started = True
        i += 1

    end_record()
    return records


def parse_table(text: str) -> list[dict[str, str]]:
    """Parse delimited text into dicts keyed by header name.

    Columns missing from a short row default to ``""``.
    """
    records = scan_records(text)
    if not records:
        return []
    header, body = records[0], records[1:]
    parsed = []
    for values in body:
        parsed.append(
            {
                name: values[idx] if idx < len(values) else ""
                for idx, name in enumerate(header)
            }
        )
    return parsed


def parse_rows(
    text: str, properties: Iterable[PropertyDescriptor]
) -> list[Row]:
    """Parse ``data.csv`` text into rows for the given schema.

    Empty property values and an empty data source become ``None``;
    columns unknown to the schema are ignored.
    """
    property_ids = [p.property_id for p in properties]
    rows = []
    for record in parse_table(text):
        rows.append(
            Row(
                id=record.get(ID_COLUMN, ""),
                title=record.get(TITLE_COLUMN, ""),
                data_source_id=record.get(DATA_SOURCE_COLUMN) or None,
                properties={
                    pid: record.get(pid) or None for pid in property_ids
                },
            )
        )
    return rows


# =============================================================================
# File I/O
# =============================================================================


def read_rows(
    path: Path, properties: Iterable[PropertyDescriptor]
) -> list[Row]:
    """Read ``data.csv``; a missing or unreadable file yields ``[]``."""
    if not path.is_file():
        return []
    try:
        content, _ = read_file_with_encoding(path)
    except OSError as exc:
        logger.debug("Cannot read %s: %s", path, exc)
        return []
    if not content.strip():
        return []
    return parse_rows(content, properties)


def write_rows(
    path: Path,
    rows: Iterable[Row],
    properties: Iterable[PropertyDescriptor],
) -> None:
    """Serialize rows to *path*, creating parent directories."""
    write_file(path, serialize_rows(rows, properties))
