"""Reader and writer for ``schema.yaml``.

The schema file uses a small, YAML-compatible subset that this module
writes itself::

    id: "db_1"
    title: "Tasks"
    ...

    data_sources:
      - id: "ds_1"
        name: "Main"
        sort_order: 0

    properties:
      - property_id: "status"
        property_name: "Status"
        property_type: "select"
        data_source_id: null
        sort_order: 0
        config:
          options: [{"id": "opt_1", "name": "Done"}]

Only this subset is understood; no general YAML parser is involved.  The
parser is a state machine over four levels (top level, list, list item,
nested object), each remembering the indentation it was opened at.  A
line indented at or below a level's indentation closes that level.

``parse_schema`` and ``read_schema`` never raise: malformed input yields
``None``, which callers treat as "no local record".
"""

from __future__ import annotations

import json
import logging
import re
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from lumifyhub_sync.file_handler import read_file_with_encoding, write_file

from .models import SchemaDocument

logger = logging.getLogger(__name__)

SCHEMA_FILENAME = "schema.yaml"

_SCALAR_FIELDS = (
    "id",
    "title",
    "workspace_id",
    "workspace_slug",
    "slug",
    "updated_at",
    "local_hash",
    "remote_hash",
)
_DATA_SOURCE_FIELDS = ("id", "name", "sort_order")
_PROPERTY_FIELDS = (
    "property_id",
    "property_name",
    "property_type",
    "data_source_id",
    "sort_order",
)

_LIST_INDENT = "  "
_FIELD_INDENT = "    "
_NESTED_INDENT = "      "

_INT_RE = re.compile(r"^-?\d+$")
_FLOAT_RE = re.compile(r"^-?\d+(\.\d+([eE][+-]?\d+)?|[eE][+-]?\d+)$")
_PLAIN_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.\-]*$")

_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t"}
_UNESCAPES = {"\\": "\\", '"': '"', "'": "'", "n": "\n", "r": "\r", "t": "\t"}


class SchemaParseError(ValueError):
    """Raised internally when a line falls outside the supported subset."""


# =============================================================================
# Values
# =============================================================================


def escape_string(value: str) -> str:
    """Escape backslash, double quote and line breaks for a quoted value."""
    return "".join(_ESCAPES.get(ch, ch) for ch in value)


def unescape_string(value: str) -> str:
    """Reverse ``escape_string``; unknown escapes are kept verbatim."""
    out: list[str] = []
    i = 0
    while i < len(value):
        ch = value[i]
        if ch == "\\" and i + 1 < len(value):
            nxt = value[i + 1]
            if nxt in _UNESCAPES:
                out.append(_UNESCAPES[nxt])
                i += 2
                continue
        out.append(ch)
        i += 1
    return "".join(out)


def format_value(value: Any) -> str:
    """Render a Python value as it appears after ``key:``."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, str):
        return f'"{escape_string(value)}"'
    return json.dumps(value, ensure_ascii=False)


def parse_value(raw: str) -> Any:
    """Decode the text after ``key:``.

    Recognised in order: empty/``null``/``~``, booleans, integers,
    decimals, inline JSON (falling back to the literal text), quoted
    strings, then bare text.
    """
    value = raw.strip()
    if value in ("", "null", "~"):
        return None
    if value == "true":
        return True
    if value == "false":
        return False
    if _INT_RE.match(value):
        return int(value)
    if _FLOAT_RE.match(value):
        return float(value)
    if value.startswith(("{", "[")):
        try:
            return json.loads(value)
        except ValueError:
            return value
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return unescape_string(value[1:-1])
    return value


def format_key(key: str) -> str:
    """Keys outside the plain-word set are written quoted."""
    if _PLAIN_KEY_RE.match(key) and key not in ("null", "true", "false"):
        return key
    return f'"{escape_string(key)}"'


def split_key_value(text: str) -> tuple[str, str]:
    """Split ``key: value`` (key may be quoted) into its two parts.

    Raises:
        SchemaParseError: If the line has no key separator.
    """
    if text[:1] in ("'", '"'):
        quote = text[0]
        i = 1
        while i < len(text):
            if text[i] == "\\":
                i += 2
                continue
            if text[i] == quote:
                break
            i += 1
        else:
            raise SchemaParseError(f"unterminated key: {text!r}")
        key = unescape_string(text[1:i])
        rest = text[i + 1 :].lstrip()
        if not rest.startswith(":"):
            raise SchemaParseError(f"missing ':' after key: {text!r}")
        return key, rest[1:].strip()

    colon = text.find(":")
    if colon == -1:
        raise SchemaParseError(f"expected 'key: value', got {text!r}")
    return text[:colon].strip(), text[colon + 1 :].strip()


# =============================================================================
# Serialize
# =============================================================================


def serialize_schema(doc: SchemaDocument) -> str:
    """Render a schema document as ``schema.yaml`` text.

    Always produces text that ``parse_schema`` reads back to an equal
    document.
    """
    lines: list[str] = []
    for field in _SCALAR_FIELDS:
        lines.append(f"{field}: {format_value(getattr(doc, field))}")
    lines.append("")

    lines.append("data_sources:")
    if not doc.data_sources:
        lines.append(f"{_LIST_INDENT}[]")
    for ds in doc.data_sources:
        lines.extend(
            _item_lines(
                [(f, getattr(ds, f)) for f in _DATA_SOURCE_FIELDS]
            )
        )
    lines.append("")

    lines.append("properties:")
    if not doc.properties:
        lines.append(f"{_LIST_INDENT}[]")
    for prop in doc.properties:
        lines.extend(
            _item_lines(
                [(f, getattr(prop, f)) for f in _PROPERTY_FIELDS]
            )
        )
        if prop.config:
            lines.append(f"{_FIELD_INDENT}config:")
            for key, value in prop.config.items():
                lines.append(
                    f"{_NESTED_INDENT}{format_key(key)}: {format_value(value)}"
                )
        else:
            lines.append(f"{_FIELD_INDENT}config: {{}}")

    return "\n".join(lines) + "\n"


def _item_lines(fields: list[tuple[str, Any]]) -> list[str]:
    lines = []
    for index, (key, value) in enumerate(fields):
        prefix = f"{_LIST_INDENT}- " if index == 0 else _FIELD_INDENT
        lines.append(f"{prefix}{key}: {format_value(value)}")
    return lines


# =============================================================================
# Parse
# =============================================================================


class _State(Enum):
    TOP = "top"
    LIST = "list"
    ITEM = "item"
    NESTED = "nested"


class _SchemaParser:
    """Line-driven state machine producing a plain dict.

    Indentation bookkeeping per level:

    - ``list_indent``: column of the ``-`` markers of the open list.
    - ``field_indent``: column of the fields of the open list item.
    - ``nested_indent``: column of the keys of the open nested object.
    """

    def __init__(self) -> None:
        self.result: dict[str, Any] = {}
        self.state = _State.TOP
        self.list_key: str | None = None
        self.list_items: list[dict[str, Any]] = []
        self.list_indent: int | None = None
        self.item: dict[str, Any] = {}
        self.field_indent = 0
        self.nested_key: str | None = None
        self.nested: dict[str, Any] = {}
        self.nested_indent: int | None = None

    def feed(self, line: str) -> None:
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            return
        indent = len(line) - len(line.lstrip(" "))
        self._dispatch(indent, stripped)

    def finish(self) -> dict[str, Any]:
        self._close_to(_State.TOP)
        return self.result

    # -- transitions ----------------------------------------------------

    def _dispatch(self, indent: int, text: str) -> None:
        if self.state is _State.NESTED:
            self._in_nested(indent, text)
        elif self.state is _State.ITEM:
            self._in_item(indent, text)
        elif self.state is _State.LIST:
            self._in_list(indent, text)
        else:
            self._at_top(indent, text)

    def _at_top(self, indent: int, text: str) -> None:
        if indent != 0:
            raise SchemaParseError(f"unexpected indentation: {text!r}")
        key, value = split_key_value(text)
        if value == "":
            self.state = _State.LIST
            self.list_key = key
            self.list_items = []
            self.list_indent = None
        else:
            self.result[key] = parse_value(value)

    def _in_list(self, indent: int, text: str) -> None:
        if indent == 0:
            self._close_to(_State.TOP)
            self._at_top(indent, text)
            return
        if text == "[]":
            return
        if text == "-" or text.startswith("- "):
            self._open_item(indent, text)
            return
        raise SchemaParseError(f"expected list item: {text!r}")

    def _in_item(self, indent: int, text: str) -> None:
        if self.list_indent is None:
            raise SchemaParseError(f"list item outside a list: {text!r}")
        if indent <= self.list_indent:
            if indent == self.list_indent and (
                text == "-" or text.startswith("- ")
            ):
                self._close_to(_State.LIST)
                self._open_item(indent, text)
                return
            self._close_to(_State.LIST)
            self._in_list(indent, text)
            return
        self._item_field(text)

    def _in_nested(self, indent: int, text: str) -> None:
        if self.nested_indent is None:
            if indent <= self.field_indent:
                self._close_to(_State.ITEM)
                self._in_item(indent, text)
                return
            self.nested_indent = indent
        if indent < self.nested_indent:
            self._close_to(_State.ITEM)
            self._in_item(indent, text)
            return
        if indent > self.nested_indent:
            raise SchemaParseError(f"nesting too deep: {text!r}")
        key, value = split_key_value(text)
        self.nested[key] = parse_value(value)

    def _open_item(self, indent: int, text: str) -> None:
        self.state = _State.ITEM
        self.list_indent = indent
        self.item = {}
        rest = text[1:]
        inline = rest.lstrip(" ")
        self.field_indent = indent + 1 + (len(rest) - len(inline))
        if inline:
            self._item_field(inline)

    def _item_field(self, text: str) -> None:
        key, value = split_key_value(text)
        if value == "":
            self.state = _State.NESTED
            self.nested_key = key
            self.nested = {}
            self.nested_indent = None
        else:
            self.item[key] = parse_value(value)

    def _close_to(self, target: _State) -> None:
        """Close open levels down to *target*, committing their contents."""
        order = [_State.TOP, _State.LIST, _State.ITEM, _State.NESTED]
        while order.index(self.state) > order.index(target):
            if self.state is _State.NESTED:
                if self.nested_key is None:
                    raise SchemaParseError("nested mapping without a key")
                self.item[self.nested_key] = self.nested
                self.nested_key = None
                self.nested = {}
                self.nested_indent = None
                self.state = _State.ITEM
            elif self.state is _State.ITEM:
                self.list_items.append(self.item)
                self.item = {}
                self.state = _State.LIST
            else:
                if self.list_key is None:
                    raise SchemaParseError("list without a key")
                self.result[self.list_key] = self.list_items
                self.list_key = None
                self.list_items = []
                self.list_indent = None
                self.state = _State.TOP


def parse_schema_dict(text: str) -> dict[str, Any]:
    """Parse schema text into a plain dict.

    Raises:
        SchemaParseError: If the text uses syntax outside the subset.
    """
    parser = _SchemaParser()
    for line in text.split("\n"):
        parser.feed(line.rstrip("\r"))
    return parser.finish()


def parse_schema(text: str) -> SchemaDocument | None:
    """Parse ``schema.yaml`` text into a document.

    Returns:
        The document, or ``None`` when the text is malformed or does not
        describe a valid schema.
    """
    try:
        data = parse_schema_dict(text)
    except SchemaParseError as exc:
        logger.debug("Unparseable schema text: %s", exc)
        return None
    data = {k: v for k, v in data.items() if v is not None or k == "updated_at"}
    for key in ("data_sources", "properties"):
        if key not in data:
            data[key] = []
    for prop in data.get("properties") or []:
        if isinstance(prop, dict) and prop.get("config") is None:
            prop["config"] = {}
    try:
        return SchemaDocument.model_validate(data)
    except ValidationError as exc:
        logger.debug("Invalid schema document: %s", exc)
        return None


# =============================================================================
# File I/O
# =============================================================================


def read_schema(path: Path) -> SchemaDocument | None:
    """Read and parse a schema file.

    Returns:
        The document, or ``None`` if the file is missing, unreadable or
        malformed.
    """
    if not path.is_file():
        return None
    try:
        content, _ = read_file_with_encoding(path)
    except OSError as exc:
        logger.debug("Cannot read %s: %s", path, exc)
        return None
    return parse_schema(content)


def write_schema(path: Path, doc: SchemaDocument) -> None:
    """Serialize *doc* to *path*, creating parent directories."""
    write_file(path, serialize_schema(doc))
