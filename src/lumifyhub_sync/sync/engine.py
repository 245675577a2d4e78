"""Sync engine that reconciles the local mirror with the remote service.

The ``SyncEngine`` ties together the record stores, the remote client and
the pure reconciliation functions.  For every record it:

1. Loads the local copy (if any) and classifies it (synced / modified).
2. Fetches the remote snapshot and fingerprints it.
3. Decides the action (create, pull, push, unchanged, conflict, skip).
4. Executes the action and saves the result with fresh hash stamps.

Records are processed one at a time and each record's save is the last
step of its reconciliation.  Error handling is per-record: a failure is
reported in the ``SyncReport`` and the pass continues with the next one.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from lumifyhub_sync.sync.hashing import database_fingerprint, page_fingerprint
from lumifyhub_sync.sync.models import (
    LocalDatabase,
    LocalPage,
    PullOutcome,
    RecordKind,
    StatusEntry,
    SyncAction,
    SyncReport,
    SyncResult,
    SyncStatus,
)
from lumifyhub_sync.sync.reconcile import (
    classify_database,
    classify_page,
    decide_pull,
    detect_row_changes,
)
from lumifyhub_sync.sync.rows import database_from_wire, page_from_wire, row_to_wire
from lumifyhub_sync.sync.store import DatabaseStore, PageStore

if TYPE_CHECKING:
    from lumifyhub_sync.core.client import LumifyClient

logger = logging.getLogger(__name__)

_PULL_ACTIONS = {
    PullOutcome.CREATED: SyncAction.CREATE_LOCAL,
    PullOutcome.PULLED: SyncAction.PULL,
    PullOutcome.UNCHANGED: SyncAction.UNCHANGED,
    PullOutcome.CONFLICT: SyncAction.CONFLICT,
}

CONFLICT_MESSAGE = "local changes not pushed; use --force to overwrite"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _matches_slug(slug: str, prefix: str | None) -> bool:
    return prefix is None or slug == prefix or slug.startswith(prefix)


class SyncEngine:
    """Pull and push pages and databases for one local mirror.

    Args:
        client: LumifyClient (or any object with the same methods).
        database_store: Store rooted at the database mirror directory.
        page_store: Store rooted at the page mirror directory.
    """

    def __init__(
        self,
        client: LumifyClient,
        database_store: DatabaseStore,
        page_store: PageStore,
    ) -> None:
        self.client = client
        self.database_store = database_store
        self.page_store = page_store

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self, workspace_slug: str | None = None) -> list[StatusEntry]:
        """Classify every local record without contacting the remote."""
        entries = [
            self._page_status(local)
            for local in self._local_pages(workspace_slug)
        ]
        entries.extend(
            self._database_status(local)
            for local in self._local_databases(workspace_slug)
        )
        return entries

    def _page_status(self, local: LocalPage) -> StatusEntry:
        return StatusEntry(
            kind=RecordKind.PAGE,
            workspace_slug=local.workspace_slug,
            slug=local.slug,
            title=local.page.title,
            status=classify_page(local),
            current_hash=page_fingerprint(local.page.content),
            local_hash=local.page.local_hash,
            remote_hash=local.page.remote_hash,
        )

    def _database_status(self, local: LocalDatabase) -> StatusEntry:
        schema_doc = local.schema_doc
        return StatusEntry(
            kind=RecordKind.DATABASE,
            workspace_slug=local.workspace_slug,
            slug=local.slug,
            title=schema_doc.title,
            status=classify_database(local),
            current_hash=database_fingerprint(schema_doc, local.rows),
            local_hash=schema_doc.local_hash,
            remote_hash=schema_doc.remote_hash,
            row_count=len(local.rows),
        )

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    def pull(
        self, workspace_slug: str | None = None, force: bool = False
    ) -> SyncReport:
        """Pull pages, then databases."""
        started_at = _now()
        results = self._pull_page_results(workspace_slug, force)
        results += self._pull_database_results(workspace_slug, None, force)
        return self._report("pull", force, results, started_at)

    def pull_pages(
        self, workspace_slug: str | None = None, force: bool = False
    ) -> SyncReport:
        started_at = _now()
        results = self._pull_page_results(workspace_slug, force)
        return self._report("pull", force, results, started_at)

    def pull_databases(
        self,
        workspace_slug: str | None = None,
        slug: str | None = None,
        force: bool = False,
    ) -> SyncReport:
        """Pull databases, optionally only those whose slug starts with *slug*."""
        started_at = _now()
        results = self._pull_database_results(workspace_slug, slug, force)
        return self._report("pull", force, results, started_at)

    def _pull_page_results(
        self, workspace_slug: str | None, force: bool
    ) -> list[SyncResult]:
        try:
            remote_pages = self.client.get_pages(workspace_slug)
        except Exception as exc:
            logger.error("Failed to list pages: %s", exc)
            return [
                self._listing_error(RecordKind.PAGE, workspace_slug, exc)
            ]
        return self._each(
            RecordKind.PAGE,
            remote_pages,
            lambda payload: self._pull_page(payload, force),
        )

    def _pull_page(self, payload: dict[str, Any], force: bool) -> SyncResult:
        remote = page_from_wire(payload)
        ws, slug = remote.workspace_slug, remote.slug
        remote_hash = page_fingerprint(remote.content)

        local = self.page_store.load(ws, slug)
        outcome = decide_pull(
            classify_page(local) if local else None,
            local.page.remote_hash if local else "",
            remote_hash,
            force,
        )
        if outcome in (PullOutcome.CREATED, PullOutcome.PULLED):
            self.page_store.save(ws, slug, remote, remote_hash)
            logger.info("Pulled page %s/%s", ws, slug)
        elif outcome == PullOutcome.CONFLICT:
            logger.warning("Page conflict: %s/%s", ws, slug)
        return SyncResult(
            kind=RecordKind.PAGE,
            workspace_slug=ws,
            slug=slug,
            action=_PULL_ACTIONS[outcome],
            success=True,
            error=CONFLICT_MESSAGE
            if outcome == PullOutcome.CONFLICT
            else None,
        )

    def _pull_database_results(
        self,
        workspace_slug: str | None,
        slug: str | None,
        force: bool,
    ) -> list[SyncResult]:
        try:
            summaries = self.client.get_databases(workspace_slug)
        except Exception as exc:
            logger.error("Failed to list databases: %s", exc)
            return [
                self._listing_error(RecordKind.DATABASE, workspace_slug, exc)
            ]

        selected = [
            s for s in summaries if _matches_slug(s.get("slug") or "", slug)
        ]
        if slug is not None and not selected:
            return [
                SyncResult(
                    kind=RecordKind.DATABASE,
                    workspace_slug=workspace_slug or "",
                    slug=slug,
                    action=SyncAction.SKIP,
                    success=False,
                    error=f"Database not found: {slug}",
                )
            ]
        return self._each(
            RecordKind.DATABASE,
            selected,
            lambda summary: self._pull_database(summary, force),
        )

    def _pull_database(
        self, summary: dict[str, Any], force: bool
    ) -> SyncResult:
        payload = self.client.get_database(summary["id"])
        remote_schema, remote_rows = database_from_wire(payload)
        ws = remote_schema.workspace_slug or summary["workspace_slug"]
        slug = remote_schema.slug or summary["slug"]
        remote_hash = database_fingerprint(remote_schema, remote_rows)

        local = self.database_store.load(ws, slug)
        outcome = decide_pull(
            classify_database(local) if local else None,
            local.schema_doc.remote_hash if local else "",
            remote_hash,
            force,
        )
        if outcome in (PullOutcome.CREATED, PullOutcome.PULLED):
            self.database_store.save(
                ws, slug, remote_schema, remote_rows, remote_hash
            )
            logger.info(
                "Pulled database %s/%s (%d rows)", ws, slug, len(remote_rows)
            )
        elif outcome == PullOutcome.CONFLICT:
            logger.warning("Database conflict: %s/%s", ws, slug)
        return SyncResult(
            kind=RecordKind.DATABASE,
            workspace_slug=ws,
            slug=slug,
            action=_PULL_ACTIONS[outcome],
            success=True,
            error=CONFLICT_MESSAGE
            if outcome == PullOutcome.CONFLICT
            else None,
        )

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    def push(
        self, workspace_slug: str | None = None, force: bool = False
    ) -> SyncReport:
        """Push modified pages, then modified databases."""
        started_at = _now()
        results = self._push_page_results(workspace_slug, force)
        results += self._push_database_results(workspace_slug, None)
        return self._report("push", force, results, started_at)

    def push_pages(
        self, workspace_slug: str | None = None, force: bool = False
    ) -> SyncReport:
        """Send modified page bodies to the remote.

        Unless *force* is set, a page whose remote body changed since the
        last pull is reported as a conflict and left alone.
        """
        started_at = _now()
        results = self._push_page_results(workspace_slug, force)
        return self._report("push", force, results, started_at)

    def push_databases(
        self, workspace_slug: str | None = None, slug: str | None = None
    ) -> SyncReport:
        """Send row changes of modified databases to the remote.

        The remote rows fetched just before the write are the diff
        baseline, so rows edited remotely since the last pull are
        overwritten with the local version.
        """
        started_at = _now()
        results = self._push_database_results(workspace_slug, slug)
        return self._report("push", False, results, started_at)

    def _push_page_results(
        self, workspace_slug: str | None, force: bool
    ) -> list[SyncResult]:
        modified = [
            local
            for local in self._local_pages(workspace_slug)
            if classify_page(local) == SyncStatus.MODIFIED
        ]
        if not modified:
            logger.info("No modified pages to push")
        return self._each(
            RecordKind.PAGE,
            modified,
            lambda local: self._push_page(local, force),
        )

    def _push_page(self, local: LocalPage, force: bool) -> SyncResult:
        page = local.page
        ws, slug = local.workspace_slug, local.slug

        if not force:
            remote = page_from_wire(self.client.get_page(page.id))
            if page_fingerprint(remote.content) != page.remote_hash:
                logger.warning("Page changed remotely: %s/%s", ws, slug)
                return SyncResult(
                    kind=RecordKind.PAGE,
                    workspace_slug=ws,
                    slug=slug,
                    action=SyncAction.CONFLICT,
                    success=True,
                    error="remote changed since last pull; pull first or use --force",
                )

        updated = self.client.update_page(page.id, page.content, page.title)
        stored = page_from_wire(updated, workspace_slug=ws)
        self.page_store.save(ws, slug, stored, page_fingerprint(stored.content))
        logger.info("Pushed page %s/%s", ws, slug)
        return SyncResult(
            kind=RecordKind.PAGE,
            workspace_slug=ws,
            slug=slug,
            action=SyncAction.PUSH,
            success=True,
        )

    def _push_database_results(
        self, workspace_slug: str | None, slug: str | None
    ) -> list[SyncResult]:
        modified = [
            local
            for local in self._local_databases(workspace_slug)
            if _matches_slug(local.slug, slug)
            and classify_database(local) == SyncStatus.MODIFIED
        ]
        if not modified:
            logger.info("No modified databases to push")
        return self._each(RecordKind.DATABASE, modified, self._push_database)

    def _push_database(self, local: LocalDatabase) -> SyncResult:
        schema_doc = local.schema_doc
        ws, slug = local.workspace_slug, local.slug
        properties = schema_doc.properties

        baseline = self.client.get_database(schema_doc.id)
        _, remote_rows = database_from_wire(baseline)
        changes = detect_row_changes(local.rows, remote_rows, properties)

        if changes.is_empty:
            logger.info("Skipped %s/%s: no row changes", ws, slug)
            return SyncResult(
                kind=RecordKind.DATABASE,
                workspace_slug=ws,
                slug=slug,
                action=SyncAction.SKIP,
                success=True,
                error="no row changes",
            )

        create = []
        for row in changes.create:
            wire = row_to_wire(row, properties)
            del wire["id"]
            create.append(wire)
        update = [row_to_wire(row, properties) for row in changes.update]

        result = self.client.batch_update_rows(
            schema_doc.id, create=create, update=update, delete=changes.delete
        )
        for message in result.errors:
            logger.warning("Row error in %s/%s: %s", ws, slug, message)

        # The re-fetched state is the new baseline; it includes any
        # normalisation the service applied to the written rows.
        refreshed = self.client.get_database(schema_doc.id)
        new_schema, new_rows = database_from_wire(refreshed)
        new_hash = database_fingerprint(new_schema, new_rows)
        self.database_store.save(ws, slug, new_schema, new_rows, new_hash)

        logger.info(
            "Pushed database %s/%s (%d created, %d updated, %d deleted)",
            ws,
            slug,
            result.created,
            result.updated,
            result.deleted,
        )
        return SyncResult(
            kind=RecordKind.DATABASE,
            workspace_slug=ws,
            slug=slug,
            action=SyncAction.PUSH,
            success=True,
            rows_created=result.created,
            rows_updated=result.updated,
            rows_deleted=result.deleted,
            row_errors=result.errors,
        )

    # ------------------------------------------------------------------
    # New pages
    # ------------------------------------------------------------------

    def create_page(
        self,
        title: str,
        content: str,
        workspace_slug: str,
        parent_id: str | None = None,
    ) -> LocalPage:
        """Create a page remotely and save it to the mirror in sync."""
        payload = self.client.create_page(
            title, content, workspace_slug, parent_id
        )
        page = page_from_wire(payload, workspace_slug=workspace_slug)
        local = self.page_store.save(
            workspace_slug, page.slug, page, page_fingerprint(page.content)
        )
        logger.info("Created page %s/%s", workspace_slug, page.slug)
        return local

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _local_pages(self, workspace_slug: str | None) -> list[LocalPage]:
        return [
            p
            for p in self.page_store.list_all()
            if workspace_slug is None or p.workspace_slug == workspace_slug
        ]

    def _local_databases(
        self, workspace_slug: str | None
    ) -> list[LocalDatabase]:
        return [
            db
            for db in self.database_store.list_all()
            if workspace_slug is None or db.workspace_slug == workspace_slug
        ]

    def _each(
        self,
        kind: RecordKind,
        items: Iterable[Any],
        handler: Callable[[Any], SyncResult],
    ) -> list[SyncResult]:
        """Run *handler* per item, turning exceptions into failed results."""
        results = []
        for item in items:
            try:
                results.append(handler(item))
            except Exception as exc:
                ws, slug = self._identify(item)
                logger.error("Error syncing %s %s/%s: %s", kind.value, ws, slug, exc)
                results.append(
                    SyncResult(
                        kind=kind,
                        workspace_slug=ws,
                        slug=slug,
                        action=SyncAction.SKIP,
                        success=False,
                        error=str(exc),
                    )
                )
        return results

    @staticmethod
    def _identify(item: Any) -> tuple[str, str]:
        if isinstance(item, (LocalPage, LocalDatabase)):
            return item.workspace_slug, item.slug
        if isinstance(item, dict):
            return (
                str(item.get("workspace_slug") or ""),
                str(item.get("slug") or item.get("id") or ""),
            )
        return "", ""

    @staticmethod
    def _listing_error(
        kind: RecordKind, workspace_slug: str | None, exc: Exception
    ) -> SyncResult:
        return SyncResult(
            kind=kind,
            workspace_slug=workspace_slug or "",
            slug="",
            action=SyncAction.SKIP,
            success=False,
            error=f"Failed to list {kind.value}s: {exc}",
        )

    @staticmethod
    def _report(
        operation: str,
        force: bool,
        results: list[SyncResult],
        started_at: str,
    ) -> SyncReport:
        return SyncReport(
            operation=operation,
            force=force,
            results=results,
            started_at=started_at,
            completed_at=_now(),
        )
