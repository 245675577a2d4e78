"""Sync classification and row diffing.

Everything here is a pure function of the snapshots it is handed: no
disk access, no remote calls.  The engine feeds it local records loaded
by the store and remote snapshots fetched by the client.
"""

from __future__ import annotations

from collections.abc import Iterable

from .hashing import database_fingerprint, page_fingerprint
from .models import (
    LocalDatabase,
    LocalPage,
    PropertyDescriptor,
    PullOutcome,
    Row,
    RowChanges,
    SyncStatus,
)


def _status(current_hash: str, stored_local_hash: str) -> SyncStatus:
    if current_hash != stored_local_hash:
        return SyncStatus.MODIFIED
    return SyncStatus.SYNCED


def classify_database(local: LocalDatabase) -> SyncStatus:
    """Return MODIFIED if the record drifted from its last synced state."""
    current = database_fingerprint(local.schema_doc, local.rows)
    return _status(current, local.schema_doc.local_hash)


def classify_page(local: LocalPage) -> SyncStatus:
    """Return MODIFIED if the page body drifted from its last synced state."""
    current = page_fingerprint(local.page.content)
    return _status(current, local.page.local_hash)


def decide_pull(
    local_status: SyncStatus | None,
    stored_remote_hash: str,
    remote_hash: str,
    force: bool = False,
) -> PullOutcome:
    """Decide what a pull does with one record.

    Args:
        local_status: Classification of the local copy, or ``None`` when
            there is no local copy.
        stored_remote_hash: ``remote_hash`` stamp of the local copy.
        remote_hash: Fingerprint of the freshly fetched remote snapshot.
        force: Overwrite local modifications.

    Returns:
        CREATED for a first pull, CONFLICT when unpushed local edits would
        be lost, UNCHANGED when the last pull already reflects the remote,
        PULLED otherwise.
    """
    if local_status is None:
        return PullOutcome.CREATED
    if force:
        return PullOutcome.PULLED
    if local_status != SyncStatus.SYNCED:
        return PullOutcome.CONFLICT
    if stored_remote_hash == remote_hash:
        return PullOutcome.UNCHANGED
    return PullOutcome.PULLED


def _normalize(value: str | None) -> str | None:
    return None if value == "" else value


def is_row_modified(
    local: Row, remote: Row, properties: Iterable[PropertyDescriptor]
) -> bool:
    """Compare title, data source and every schema property.

    Empty strings and ``None`` are treated as equal.
    """
    if local.title != remote.title:
        return True
    if _normalize(local.data_source_id) != _normalize(remote.data_source_id):
        return True
    for prop in properties:
        pid = prop.property_id
        if _normalize(local.properties.get(pid)) != _normalize(
            remote.properties.get(pid)
        ):
            return True
    return False


def detect_row_changes(
    local_rows: list[Row],
    remote_rows: list[Row],
    properties: list[PropertyDescriptor],
) -> RowChanges:
    """Compute the operations that turn the remote row set into the local one.

    Rows are matched by id.  ``create`` and ``update`` follow the order of
    *local_rows*; ``delete`` follows the order of *remote_rows*.
    """
    remote_by_id = {r.id: r for r in remote_rows}
    local_ids = {r.id for r in local_rows}

    create: list[Row] = []
    update: list[Row] = []
    for row in local_rows:
        remote = remote_by_id.get(row.id)
        if remote is None:
            create.append(row)
        elif is_row_modified(row, remote, properties):
            update.append(row)

    delete = [r.id for r in remote_rows if r.id not in local_ids]
    return RowChanges(create=create, update=update, delete=delete)
