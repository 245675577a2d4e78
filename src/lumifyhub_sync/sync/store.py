"""Local record stores.

The mirror keeps one directory tree per record kind, each rooted at a
directory passed in by the caller:

* ``DatabaseStore``: ``<root>/<workspace>/<slug>/schema.yaml`` and
  ``<root>/<workspace>/<slug>/data.csv``.
* ``PageStore``: ``<root>/<workspace>/<slug>.md``.

Saving a record stamps ``local_hash = remote_hash``, so a freshly pulled
or pushed record starts out in sync.  Enumeration skips records that fail
to parse instead of aborting the listing.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

from pydantic import BaseModel

from lumifyhub_sync.file_handler import remove_tree
from lumifyhub_sync.validators import require_slug

from .models import LocalDatabase, LocalPage, PageDocument, Row, SchemaDocument
from .page_codec import PAGE_SUFFIX, read_page, write_page
from .schema_codec import SCHEMA_FILENAME, read_schema, write_schema
from .table_codec import DATA_FILENAME, read_rows, write_rows

logger = logging.getLogger(__name__)


def _subdirs(path: Path) -> Iterator[Path]:
    if not path.is_dir():
        return
    for child in sorted(path.iterdir()):
        if child.is_dir() and not child.name.startswith("."):
            yield child


# ---------------------------------------------------------------------------
# Databases
# ---------------------------------------------------------------------------


class DatabaseStore:
    """Load, save and enumerate database records.

    Args:
        root: Directory holding one sub-directory per workspace.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, workspace_slug: str, slug: str) -> Path:
        """Directory of the record ``workspace_slug/slug``."""
        require_slug(workspace_slug, "Workspace slug")
        require_slug(slug, "Database slug")
        return self.root / workspace_slug / slug

    def load(self, workspace_slug: str, slug: str) -> LocalDatabase | None:
        """Load a database record.

        Returns:
            The record, or ``None`` if it does not exist or its schema
            cannot be parsed.
        """
        return self._load_dir(self.path_for(workspace_slug, slug))

    def save(
        self,
        workspace_slug: str,
        slug: str,
        schema_doc: SchemaDocument,
        rows: list[Row],
        remote_hash: str,
    ) -> LocalDatabase:
        """Persist a record with both hash stamps set to *remote_hash*.

        The data file is written before the schema that carries the
        stamps.
        """
        path = self.path_for(workspace_slug, slug)
        stamped = schema_doc.model_copy(
            update={"local_hash": remote_hash, "remote_hash": remote_hash}
        )
        write_rows(path / DATA_FILENAME, rows, stamped.properties)
        write_schema(path / SCHEMA_FILENAME, stamped)
        logger.debug(
            "Saved database %s/%s (%d rows, hash %s)",
            workspace_slug,
            slug,
            len(rows),
            remote_hash,
        )
        return LocalDatabase(
            path=path,
            workspace_slug=workspace_slug,
            slug=slug,
            schema_doc=stamped,
            rows=list(rows),
        )

    def delete(self, workspace_slug: str, slug: str) -> bool:
        """Remove a record directory recursively.

        Returns:
            ``True`` if the record existed.
        """
        removed = remove_tree(self.path_for(workspace_slug, slug))
        if removed:
            logger.info("Deleted local database %s/%s", workspace_slug, slug)
        return removed

    def list_all(self) -> list[LocalDatabase]:
        """Load every database record under the root.

        Directories without a valid schema are logged and skipped.
        """
        databases = []
        for workspace_dir in _subdirs(self.root):
            for db_dir in _subdirs(workspace_dir):
                record = self._load_dir(db_dir)
                if record is None:
                    logger.warning(
                        "Skipping %s: no valid %s", db_dir, SCHEMA_FILENAME
                    )
                    continue
                databases.append(record)
        return databases

    def _load_dir(self, path: Path) -> LocalDatabase | None:
        schema_doc = read_schema(path / SCHEMA_FILENAME)
        if schema_doc is None:
            return None
        rows = read_rows(path / DATA_FILENAME, schema_doc.properties)
        return LocalDatabase(
            path=path,
            workspace_slug=path.parent.name,
            slug=path.name,
            schema_doc=schema_doc,
            rows=rows,
        )


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


class SearchHit(BaseModel):
    """A page matching a search query."""

    path: Path
    title: str
    workspace_slug: str
    slug: str
    matches: list[str]

    model_config = {"frozen": True}


class PageStore:
    """Load, save, enumerate and search page records.

    Args:
        root: Directory holding one sub-directory per workspace.
    """

    MAX_MATCHES = 3
    MATCH_WIDTH = 100

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, workspace_slug: str, slug: str) -> Path:
        """File of the record ``workspace_slug/slug``."""
        require_slug(workspace_slug, "Workspace slug")
        require_slug(slug, "Page slug")
        return self.root / workspace_slug / f"{slug}{PAGE_SUFFIX}"

    def load(self, workspace_slug: str, slug: str) -> LocalPage | None:
        """Load a page record, or ``None`` if missing or malformed."""
        return self._load_file(self.path_for(workspace_slug, slug))

    def save(
        self,
        workspace_slug: str,
        slug: str,
        page: PageDocument,
        remote_hash: str,
    ) -> LocalPage:
        """Persist a page with both hash stamps set to *remote_hash*."""
        path = self.path_for(workspace_slug, slug)
        stamped = page.model_copy(
            update={
                "local_hash": remote_hash,
                "remote_hash": remote_hash,
                "content": page.content.strip(),
            }
        )
        write_page(path, stamped)
        logger.debug(
            "Saved page %s/%s (hash %s)", workspace_slug, slug, remote_hash
        )
        return LocalPage(
            path=path, workspace_slug=workspace_slug, slug=slug, page=stamped
        )

    def delete(self, workspace_slug: str, slug: str) -> bool:
        """Remove a page file.

        Returns:
            ``True`` if the page existed.
        """
        removed = remove_tree(self.path_for(workspace_slug, slug))
        if removed:
            logger.info("Deleted local page %s/%s", workspace_slug, slug)
        return removed

    def list_all(self) -> list[LocalPage]:
        """Load every page under the root, skipping unparseable files."""
        pages = []
        for workspace_dir in _subdirs(self.root):
            for path in sorted(workspace_dir.glob(f"*{PAGE_SUFFIX}")):
                if path.name.startswith(".") or not path.is_file():
                    continue
                record = self._load_file(path)
                if record is None:
                    logger.warning("Skipping %s: no valid front matter", path)
                    continue
                pages.append(record)
        return pages

    def search(
        self, query: str, workspace_slug: str | None = None
    ) -> list[SearchHit]:
        """Case-insensitive search over page titles and bodies.

        Args:
            query: Text to look for.
            workspace_slug: Restrict the search to one workspace.

        Returns:
            Pages whose title or body contains *query*, each with up to
            three matching body lines.
        """
        needle = query.lower()
        hits = []
        for local in self.list_all():
            if workspace_slug and local.workspace_slug != workspace_slug:
                continue
            page = local.page
            title_match = needle in page.title.lower()
            matches = [
                line.strip()[: self.MATCH_WIDTH]
                for line in page.content.split("\n")
                if needle in line.lower()
            ]
            if title_match or matches:
                hits.append(
                    SearchHit(
                        path=local.path,
                        title=page.title,
                        workspace_slug=local.workspace_slug,
                        slug=local.slug,
                        matches=matches[: self.MAX_MATCHES],
                    )
                )
        return hits

    def _load_file(self, path: Path) -> LocalPage | None:
        page = read_page(path)
        if page is None:
            return None
        return LocalPage(
            path=path,
            workspace_slug=path.parent.name,
            slug=path.name[: -len(PAGE_SUFFIX)],
            page=page,
        )
