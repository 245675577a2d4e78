"""Pydantic models for the local mirror and the sync engine.

Defines the core data contracts used across all sync modules:

- ``PropertyDescriptor`` / ``DataSourceDescriptor``: database schema parts.
- ``SchemaDocument``: the contents of a database's ``schema.yaml``.
- ``Row``: one database row as stored in ``data.csv``.
- ``PageDocument``: a page's metadata header plus its free-text body.
- ``LocalDatabase`` / ``LocalPage``: records loaded from the mirror.
- ``SyncStatus``, ``PullOutcome``, ``SyncAction``: classification enums.
- ``RowChanges`` / ``BatchResult``: row-level push operations and outcome.
- ``SyncResult`` / ``SyncReport``: per-record and per-pass results.

All models are frozen (immutable); use ``model_copy(update=...)`` to
derive a modified document.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, model_validator

# ---------------------------------------------------------------------------
# Database schema
# ---------------------------------------------------------------------------


class DataSourceDescriptor(BaseModel):
    """One origin of rows within a database.

    Attributes:
        id: Data source identifier.
        name: Display name.
        sort_order: Position among the database's data sources.
    """

    id: str
    name: str = ""
    sort_order: int = 0

    model_config = {"frozen": True, "coerce_numbers_to_str": True}


class PropertyDescriptor(BaseModel):
    """A column of a database.

    Attributes:
        property_id: Identifier; also the column name in ``data.csv``.
        property_name: Display name.
        property_type: ``text``, ``number``, ``select``, ``multi_select``,
            ``date``, ...
        data_source_id: Owning data source, if the property is scoped to one.
        sort_order: Column position.
        config: Open-ended type configuration (select options, formats).
    """

    property_id: str
    property_name: str = ""
    property_type: str = "text"
    data_source_id: str | None = None
    sort_order: int = 0
    config: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True, "coerce_numbers_to_str": True}


class SchemaDocument(BaseModel):
    """Schema of a database plus its sync stamps.

    ``local_hash`` is the fingerprint of the record as it was last saved
    in sync; ``remote_hash`` is the fingerprint of the remote state that
    save reflected.  Both are written by the store, never by the codec.
    """

    id: str
    title: str = ""
    workspace_id: str = ""
    workspace_slug: str = ""
    slug: str = ""
    updated_at: str | None = None
    local_hash: str = ""
    remote_hash: str = ""
    data_sources: list[DataSourceDescriptor] = Field(default_factory=list)
    properties: list[PropertyDescriptor] = Field(default_factory=list)

    model_config = {"frozen": True, "coerce_numbers_to_str": True}

    @model_validator(mode="after")
    def _check_unique_ids(self) -> SchemaDocument:
        property_ids = [p.property_id for p in self.properties]
        if len(property_ids) != len(set(property_ids)):
            raise ValueError("duplicate property_id in schema")
        source_ids = [ds.id for ds in self.data_sources]
        if len(source_ids) != len(set(source_ids)):
            raise ValueError("duplicate data source id in schema")
        return self

    def sorted_properties(self) -> list[PropertyDescriptor]:
        """Properties in column order (by ``sort_order``, stable)."""
        return sorted(self.properties, key=lambda p: p.sort_order)


class Row(BaseModel):
    """One database row in its local (text-or-null) representation.

    Attributes:
        id: Row identifier.
        title: Row title.
        data_source_id: Data source the row belongs to, if any.
        properties: Mapping of property id to text value or ``None``.
    """

    id: str
    title: str = ""
    data_source_id: str | None = None
    properties: dict[str, str | None] = Field(default_factory=dict)

    model_config = {"frozen": True, "coerce_numbers_to_str": True}


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


class PageDocument(BaseModel):
    """A page: metadata header plus free-text content."""

    id: str
    title: str = ""
    workspace_id: str = ""
    workspace_slug: str = ""
    slug: str = ""
    updated_at: str | None = None
    local_hash: str = ""
    remote_hash: str = ""
    content: str = ""

    model_config = {"frozen": True, "coerce_numbers_to_str": True}


# ---------------------------------------------------------------------------
# Loaded records
# ---------------------------------------------------------------------------


class LocalDatabase(BaseModel):
    """A database record loaded from the mirror."""

    path: Path
    workspace_slug: str
    slug: str
    schema_doc: SchemaDocument
    rows: list[Row] = Field(default_factory=list)

    model_config = {"frozen": True}


class LocalPage(BaseModel):
    """A page record loaded from the mirror."""

    path: Path
    workspace_slug: str
    slug: str
    page: PageDocument

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class SyncStatus(str, Enum):
    """Local sync state of a record, derived from its hash stamps."""

    SYNCED = "synced"
    MODIFIED = "modified"
    CONFLICT = "conflict"


class PullOutcome(str, Enum):
    """Decision for pulling one record from the remote."""

    CREATED = "created"
    PULLED = "pulled"
    UNCHANGED = "unchanged"
    CONFLICT = "conflict"


class SyncAction(str, Enum):
    """Action recorded for one record in a sync pass."""

    SKIP = "skip"
    UNCHANGED = "unchanged"
    CREATE_LOCAL = "create_local"
    PULL = "pull"
    PUSH = "push"
    CONFLICT = "conflict"


class RecordKind(str, Enum):
    PAGE = "page"
    DATABASE = "database"


# ---------------------------------------------------------------------------
# Row operations
# ---------------------------------------------------------------------------


class RowChanges(BaseModel):
    """Operations needed to make the remote row set match the local one.

    Attributes:
        create: Local rows whose id is unknown to the remote baseline.
        update: Local rows that differ from their remote counterpart.
        delete: Ids of baseline rows that no longer exist locally.
    """

    create: list[Row] = Field(default_factory=list)
    update: list[Row] = Field(default_factory=list)
    delete: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def is_empty(self) -> bool:
        return not (self.create or self.update or self.delete)


class BatchResult(BaseModel):
    """Outcome of a remote batch row write.

    Individual rows may fail; ``errors`` carries one message per rejected
    row and the other operations still count as applied.
    """

    created: int = 0
    updated: int = 0
    deleted: int = 0
    errors: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class SyncResult(BaseModel):
    """Result of reconciling one record.

    Attributes:
        kind: Page or database.
        workspace_slug: Workspace the record belongs to.
        slug: Record slug.
        action: Action that was performed (or decided).
        success: Whether the reconciliation completed.
        error: Error or explanatory message.
        rows_created: Rows created remotely during a push.
        rows_updated: Rows updated remotely during a push.
        rows_deleted: Rows deleted remotely during a push.
        row_errors: Per-row messages reported by the remote.
    """

    kind: RecordKind
    workspace_slug: str
    slug: str
    action: SyncAction
    success: bool
    error: str | None = None
    rows_created: int = 0
    rows_updated: int = 0
    rows_deleted: int = 0
    row_errors: list[str] = []

    model_config = {"frozen": True}

    @property
    def record_path(self) -> str:
        return f"{self.workspace_slug}/{self.slug}"


class StatusEntry(BaseModel):
    """Sync status of one local record, as shown by ``status``."""

    kind: RecordKind
    workspace_slug: str
    slug: str
    title: str
    status: SyncStatus
    current_hash: str
    local_hash: str
    remote_hash: str
    row_count: int | None = None

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for one pull or push pass.

    Attributes:
        operation: ``pull`` or ``push``.
        force: Whether local modifications were allowed to be overwritten.
        results: Individual record results.
        started_at: ISO 8601 timestamp when the pass started.
        completed_at: ISO 8601 timestamp when the pass completed.
    """

    operation: str
    force: bool = False
    results: list[SyncResult] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _with_action(self, action: SyncAction) -> list[SyncResult]:
        return [
            r for r in self.results if r.action == action and r.success
        ]

    @property
    def created_local(self) -> list[SyncResult]:
        """Records pulled for the first time."""
        return self._with_action(SyncAction.CREATE_LOCAL)

    @property
    def pulled(self) -> list[SyncResult]:
        """Records overwritten with newer remote content."""
        return self._with_action(SyncAction.PULL)

    @property
    def pushed(self) -> list[SyncResult]:
        """Records whose local edits were sent to the remote."""
        return self._with_action(SyncAction.PUSH)

    @property
    def unchanged(self) -> list[SyncResult]:
        return self._with_action(SyncAction.UNCHANGED)

    @property
    def skipped(self) -> list[SyncResult]:
        return self._with_action(SyncAction.SKIP)

    @property
    def conflicts(self) -> list[SyncResult]:
        return self._with_action(SyncAction.CONFLICT)

    @property
    def errors(self) -> list[SyncResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    @property
    def changed(self) -> bool:
        """True when at least one local file was written."""
        return bool(self.created_local or self.pulled or self.pushed)

