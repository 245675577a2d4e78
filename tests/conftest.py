"""Shared pytest fixtures for lumifyhub-sync tests."""

from __future__ import annotations

import copy
from typing import Any
from unittest.mock import MagicMock

import pytest

from lumifyhub_sync.config import Config
from lumifyhub_sync.core.client import ApiError
from lumifyhub_sync.sync.models import BatchResult
from lumifyhub_sync.sync.store import DatabaseStore, PageStore


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep the developer's environment out of config resolution."""
    for var in (
        "LUMIFYHUB_API_URL",
        "LUMIFYHUB_TOKEN",
        "LUMIFYHUB_PAGES_DIR",
        "LUMIFYHUB_DATABASES_DIR",
        "LUMIFYHUB_GIT_COMMIT",
        "LUMIFYHUB_DEBUG",
        "LUMIFYHUB_TIMEOUT",
        "LUMIFYHUB_CONFIG",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def mock_config(tmp_path):
    """Create a Config pointing at temporary mirror roots."""
    return Config(
        api_url="https://hub.example.com",
        token="test-token",
        pages_dir=tmp_path / "pages",
        databases_dir=tmp_path / "databases",
        git_commit=False,
    )


@pytest.fixture
def mock_lumify_client(mock_config):
    """Create a mock LumifyClient instance for testing."""
    from lumifyhub_sync.core.client import LumifyClient

    client = MagicMock(spec=LumifyClient)
    client.config = mock_config
    return client


@pytest.fixture
def database_store(tmp_path) -> DatabaseStore:
    return DatabaseStore(tmp_path / "databases")


@pytest.fixture
def page_store(tmp_path) -> PageStore:
    return PageStore(tmp_path / "pages")


# ---------------------------------------------------------------------------
# In-memory remote
# ---------------------------------------------------------------------------


class FakeLumifyClient:
    """Minimal LumifyClient replacement for testing.

    Holds pages and databases in dicts keyed by id.  Database rows are
    kept in the flat wire form (``_id``, ``_title``, ``_data_source_id``
    plus one key per property id).
    """

    def __init__(self) -> None:
        self.workspaces: list[dict[str, Any]] = [
            {"id": "ws_1", "name": "Acme Corp", "slug": "acme"}
        ]
        self.pages: dict[str, dict[str, Any]] = {}
        self.databases: dict[str, dict[str, Any]] = {}
        self.update_calls: list[tuple] = []
        self.batch_calls: list[dict[str, Any]] = []
        self.row_errors: list[str] = []
        self.failing_ids: set[str] = set()
        self.token_valid = True
        self._next_row = 1

    # -- setup helpers -------------------------------------------------

    def add_page(
        self,
        page_id: str,
        slug: str,
        content: str,
        workspace_slug: str = "acme",
        title: str | None = None,
    ) -> dict[str, Any]:
        page = {
            "id": page_id,
            "title": title or slug.replace("-", " ").title(),
            "slug": slug,
            "content": content,
            "workspace_id": "ws_1",
            "workspace_slug": workspace_slug,
            "updated_at": "2026-01-01T00:00:00Z",
            "page_type": "page",
        }
        self.pages[page_id] = page
        return page

    def add_database(
        self,
        db_id: str,
        slug: str,
        properties: list[dict[str, Any]],
        rows: list[dict[str, Any]],
        workspace_slug: str = "acme",
        data_sources: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        database = {
            "id": db_id,
            "title": slug.replace("-", " ").title(),
            "slug": slug,
            "workspace_id": "ws_1",
            "workspace_slug": workspace_slug,
            "updated_at": "2026-01-01T00:00:00Z",
            "data_sources": data_sources or [],
            "properties": properties,
            "rows": rows,
        }
        self.databases[db_id] = database
        return database

    def _check(self, record_id: str) -> None:
        if record_id in self.failing_ids:
            raise ApiError(f"Failed to fetch {record_id}: boom", 500)

    # -- client API ----------------------------------------------------

    def validate_token(self) -> dict[str, Any]:
        if not self.token_valid:
            return {"valid": False}
        return {"valid": True, "email": "dev@example.com", "userId": "u1"}

    def get_workspaces(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self.workspaces)

    def get_pages(self, workspace_slug: str | None = None) -> list[dict[str, Any]]:
        return [
            copy.deepcopy(p)
            for p in self.pages.values()
            if workspace_slug is None or p["workspace_slug"] == workspace_slug
        ]

    def get_page(self, page_id: str) -> dict[str, Any]:
        self._check(page_id)
        if page_id not in self.pages:
            raise ApiError("Failed to fetch page: Not Found", 404)
        return copy.deepcopy(self.pages[page_id])

    def update_page(
        self, page_id: str, content: str, title: str | None = None
    ) -> dict[str, Any]:
        self._check(page_id)
        self.update_calls.append((page_id, content, title))
        page = self.pages[page_id]
        page["content"] = content
        if title:
            page["title"] = title
        page["updated_at"] = "2026-02-01T00:00:00Z"
        # Update responses omit the workspace slug.
        response = copy.deepcopy(page)
        del response["workspace_slug"]
        return response

    def create_page(
        self,
        title: str,
        content: str,
        workspace_slug: str,
        parent_id: str | None = None,
    ) -> dict[str, Any]:
        page_id = f"page_{len(self.pages) + 1}"
        page = self.add_page(
            page_id,
            "-".join(title.lower().split()),
            content,
            workspace_slug=workspace_slug,
            title=title,
        )
        page["parent_id"] = parent_id
        # Create responses omit the workspace slug.
        response = copy.deepcopy(page)
        del response["workspace_slug"]
        return response

    def get_databases(
        self, workspace_slug: str | None = None
    ) -> list[dict[str, Any]]:
        return [
            {
                k: db[k]
                for k in (
                    "id",
                    "title",
                    "slug",
                    "workspace_id",
                    "workspace_slug",
                    "updated_at",
                )
            }
            for db in self.databases.values()
            if workspace_slug is None or db["workspace_slug"] == workspace_slug
        ]

    def get_database(self, database_id: str) -> dict[str, Any]:
        self._check(database_id)
        if database_id not in self.databases:
            raise ApiError("Failed to fetch database: Not Found", 404)
        return copy.deepcopy(self.databases[database_id])

    def batch_update_rows(
        self,
        database_id: str,
        create: list[dict[str, Any]],
        update: list[dict[str, Any]],
        delete: list[str],
    ) -> BatchResult:
        self.batch_calls.append(
            copy.deepcopy(
                {"create": create, "update": update, "delete": delete}
            )
        )
        rows = self.databases[database_id]["rows"]
        for op in create:
            rows.append(
                {
                    "_id": f"new_{self._next_row}",
                    "_title": op["title"],
                    "_data_source_id": op["data_source_id"],
                    **op["properties"],
                }
            )
            self._next_row += 1
        by_id = {r["_id"]: r for r in rows}
        for op in update:
            row = by_id[op["id"]]
            row["_title"] = op["title"]
            row["_data_source_id"] = op["data_source_id"]
            row.update(op["properties"])
        rows[:] = [r for r in rows if r["_id"] not in set(delete)]
        return BatchResult(
            created=len(create),
            updated=len(update),
            deleted=len(delete),
            errors=list(self.row_errors),
        )


@pytest.fixture
def fake_client() -> FakeLumifyClient:
    return FakeLumifyClient()


@pytest.fixture
def tasks_properties() -> list[dict[str, Any]]:
    """Property payloads for a small task tracker database."""
    return [
        {
            "property_id": "status",
            "property_name": "Status",
            "property_type": "select",
            "data_source_id": None,
            "sort_order": 0,
            "config": {
                "options": [
                    {"id": "opt_todo", "name": "Todo"},
                    {"id": "opt_done", "name": "Done"},
                ]
            },
        },
        {
            "property_id": "points",
            "property_name": "Points",
            "property_type": "number",
            "data_source_id": None,
            "sort_order": 1,
            "config": {},
        },
        {
            "property_id": "notes",
            "property_name": "Notes",
            "property_type": "text",
            "data_source_id": None,
            "sort_order": 2,
            "config": {},
        },
    ]

