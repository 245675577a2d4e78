"""Local mirror and reconciliation engine.

Public API for keeping a local, editable copy of LumifyHub pages and
databases in step with the remote service.

Architecture
------------
Every local record carries two hash stamps written when it was last
saved in sync: ``local_hash`` (the fingerprint of the record as saved)
and ``remote_hash`` (the fingerprint of the remote state that save
reflected).  Recomputing the fingerprint and comparing it with
``local_hash`` tells whether the record was edited locally; comparing a
fresh remote fingerprint with ``remote_hash`` tells whether the remote
moved on.  Conflicts are reported, never merged.

Modules:

- ``models``       -- pydantic data contracts.
- ``hashing``      -- order-independent content fingerprints.
- ``schema_codec`` -- ``schema.yaml`` reader/writer.
- ``table_codec``  -- ``data.csv`` reader/writer.
- ``page_codec``   -- page Markdown with YAML front matter.
- ``store``        -- ``DatabaseStore`` and ``PageStore``.
- ``rows``         -- conversion to and from API payloads.
- ``reconcile``    -- classification, pull decisions, row diffing.
- ``engine``       -- ``SyncEngine``: pull, push and status passes.
- ``reporter``     -- human-readable and JSON report formatting.

Usage example
-------------
::

    from lumifyhub_sync.config import load_config
    from lumifyhub_sync.core.client import LumifyClient
    from lumifyhub_sync.sync import (
        DatabaseStore, PageStore, SyncEngine, format_sync_report,
    )

    config = load_config()
    engine = SyncEngine(
        client=LumifyClient(config),
        database_store=DatabaseStore(config.databases_dir),
        page_store=PageStore(config.pages_dir),
    )

    report = engine.pull(workspace_slug="acme")
    print(format_sync_report(report))
"""

from .engine import SyncEngine
from .models import (
    LocalDatabase,
    LocalPage,
    Row,
    RowChanges,
    SchemaDocument,
    SyncAction,
    SyncReport,
    SyncResult,
    SyncStatus,
)
from .reporter import (
    format_status_report,
    format_sync_report,
    report_to_json,
    status_to_json,
)
from .store import DatabaseStore, PageStore

__all__ = [
    "DatabaseStore",
    "LocalDatabase",
    "LocalPage",
    "PageStore",
    "Row",
    "RowChanges",
    "SchemaDocument",
    "SyncAction",
    "SyncEngine",
    "SyncReport",
    "SyncResult",
    "SyncStatus",
    "format_status_report",
    "format_sync_report",
    "report_to_json",
    "status_to_json",
]
