"""Reader and writer for page files (``<slug>.md``).

A page file is Markdown with a leading YAML front-matter block holding the
page metadata and hash stamps::

    ---
    id: page_1
    title: Meeting notes
    ...
    ---

    Body text.

Unlike ``schema.yaml`` this header is plain YAML, handled by PyYAML.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from lumifyhub_sync.file_handler import read_file_with_encoding, write_file

from .models import PageDocument

logger = logging.getLogger(__name__)

PAGE_SUFFIX = ".md"
FRONT_MATTER_DELIMITER = "---"

_META_FIELDS = (
    "id",
    "title",
    "workspace_id",
    "workspace_slug",
    "slug",
    "updated_at",
    "local_hash",
    "remote_hash",
)


def serialize_page(page: PageDocument) -> str:
    """Render a page as front matter followed by its body."""
    meta = {field: getattr(page, field) for field in _META_FIELDS}
    header = yaml.safe_dump(
        meta, sort_keys=False, allow_unicode=True, default_flow_style=False
    )
    body = page.content.strip()
    text = f"{FRONT_MATTER_DELIMITER}\n{header}{FRONT_MATTER_DELIMITER}\n"
    if body:
        text += f"\n{body}\n"
    return text


def split_front_matter(text: str) -> tuple[str, str] | None:
    """Split *text* into (header, body), or ``None`` without a header."""
    text = text.lstrip("\ufeff")
    lines = text.split("\n")
    if not lines or lines[0].rstrip("\r") != FRONT_MATTER_DELIMITER:
        return None
    for idx in range(1, len(lines)):
        if lines[idx].rstrip("\r") == FRONT_MATTER_DELIMITER:
            header = "\n".join(lines[1:idx])
            body = "\n".join(lines[idx + 1 :])
            return header, body
    return None


def parse_page(text: str) -> PageDocument | None:
    """Parse a page file.

    Returns:
        The page with its body stripped of surrounding whitespace, or
        ``None`` if the header is missing or invalid.
    """
    parts = split_front_matter(text)
    if parts is None:
        logger.debug("Page text has no front matter")
        return None
    header, body = parts
    try:
        meta: Any = yaml.safe_load(header)
    except yaml.YAMLError as exc:
        logger.debug("Invalid page front matter: %s", exc)
        return None
    if not isinstance(meta, dict):
        return None

    data = {k: v for k, v in meta.items() if k in _META_FIELDS}
    if data.get("updated_at") is not None:
        data["updated_at"] = str(data["updated_at"])
    for key in ("local_hash", "remote_hash", "title"):
        if data.get(key) is None:
            data.pop(key, None)
    try:
        return PageDocument.model_validate(
            {**data, "content": body.strip()}
        )
    except ValidationError as exc:
        logger.debug("Invalid page metadata: %s", exc)
        return None


def read_page(path: Path) -> PageDocument | None:
    """Read and parse a page file; ``None`` if missing or malformed."""
    if not path.is_file():
        return None
    try:
        content, _ = read_file_with_encoding(path)
    except OSError as exc:
        logger.debug("Cannot read %s: %s", path, exc)
        return None
    return parse_page(content)


def write_page(path: Path, page: PageDocument) -> None:
    """Serialize *page* to *path*, creating parent directories."""
    write_file(path, serialize_page(page))
