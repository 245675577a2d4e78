import logging
import threading
from typing import Any

import requests

from ..config import Config
from ..sync.models import BatchResult

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """A request to the LumifyHub API failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotAuthenticatedError(ApiError):
    """No token is configured, or the service rejected it."""


class LumifyClient:
    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()
        self.base_url = self._get_base_url()

    @property
    def session(self) -> requests.Session:
        """The current thread's session."""
        return self._get_session()

    def _get_base_url(self) -> str:
        return f"{self.config.api_url.rstrip('/')}/api/cli"

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        if not self.config.token:
            raise NotAuthenticatedError(
                "Not authenticated. Set LUMIFYHUB_TOKEN or add 'token' to config.yml."
            )
        session = requests.Session()
        session.headers.update(
            {
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.config.token}",
            }
        )
        return session

    def _request(
        self,
        method: str,
        path: str,
        action: str,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        """
        Send a request and return the ``data`` member of the JSON reply.

        Raises:
            ApiError: On a non-2xx status or an unreadable body.
            NotAuthenticatedError: On 401, or when no token is configured.
        """
        url = f"{self.base_url}{path}"
        logger.debug("%s %s", method, url)
        response = self._get_session().request(
            method,
            url,
            params=params,
            json=payload,
            timeout=(10, self.config.timeout),
        )
        if not response.ok:
            message = self._error_message(response) or response.reason
            error_cls = (
                NotAuthenticatedError
                if response.status_code == 401
                else ApiError
            )
            raise error_cls(
                f"Failed to {action}: {message}", response.status_code
            )
        try:
            body = response.json()
        except ValueError:
            raise ApiError(
                f"Failed to {action}: response is not JSON",
                response.status_code,
            ) from None
        if not isinstance(body, dict) or "data" not in body:
            raise ApiError(
                f"Failed to {action}: response has no data",
                response.status_code,
            )
        return body["data"]

    @staticmethod
    def _error_message(response: requests.Response) -> str | None:
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return None

    def validate_token(self) -> dict[str, Any]:
        """
        Check the configured token.

        Returns:
            ``{"valid": bool, "email": ..., "userId": ...}``; an invalid
            token yields ``{"valid": False}`` instead of raising.
        """
        response = self._get_session().get(
            f"{self.base_url}/auth/validate",
            timeout=(10, self.config.timeout),
        )
        if not response.ok:
            return {"valid": False}
        data = response.json()
        return {
            "valid": True,
            "email": data.get("email"),
            "userId": data.get("userId"),
        }

    def get_workspaces(self) -> list[dict[str, Any]]:
        return self._request("GET", "/workspaces", "fetch workspaces")

    def get_pages(self, workspace_slug: str | None = None) -> list[dict[str, Any]]:
        """
        List pages with their content, optionally for one workspace.
        """
        params = {"workspace": workspace_slug} if workspace_slug else None
        return self._request("GET", "/pages", "fetch pages", params=params)

    def get_page(self, page_id: str) -> dict[str, Any]:
        return self._request("GET", f"/pages/{page_id}", "fetch page")

    def update_page(
        self, page_id: str, content: str, title: str | None = None
    ) -> dict[str, Any]:
        """
        Replace a page's content (and optionally its title).

        Returns:
            The updated page as stored by the service.
        """
        return self._request(
            "PUT",
            f"/pages/{page_id}",
            "update page",
            payload={"content": content, "title": title},
        )

    def create_page(
        self,
        title: str,
        content: str,
        workspace_slug: str,
        parent_id: str | None = None,
    ) -> dict[str, Any]:
        payload = {
            "title": title,
            "content": content,
            "workspace_slug": workspace_slug,
        }
        if parent_id:
            payload["parent_id"] = parent_id
        return self._request("POST", "/pages", "create page", payload=payload)

    def get_databases(
        self, workspace_slug: str | None = None
    ) -> list[dict[str, Any]]:
        """
        List database summaries (id, slug, workspace, timestamps).
        """
        params = {"workspace": workspace_slug} if workspace_slug else None
        return self._request(
            "GET", "/databases", "fetch databases", params=params
        )

    def get_database(self, database_id: str) -> dict[str, Any]:
        """
        Fetch a database with its data sources, properties and rows.
        """
        return self._request(
            "GET", f"/databases/{database_id}", "fetch database"
        )

    def batch_update_rows(
        self,
        database_id: str,
        create: list[dict[str, Any]],
        update: list[dict[str, Any]],
        delete: list[str],
    ) -> BatchResult:
        """
        Create, update and delete rows in one request.

        Args:
            database_id: Target database.
            create: Rows without ``id``.
            update: Rows with ``id``.
            delete: Row ids.

        Returns:
            Per-operation counts plus per-row error messages. Rows that
            fail do not roll back the others.
        """
        data = self._request(
            "POST",
            f"/databases/{database_id}/rows/batch",
            "batch update rows",
            payload={"create": create, "update": update, "delete": delete},
        )
        if not isinstance(data, dict):
            raise ApiError("Failed to batch update rows: malformed response")
        return BatchResult(
            created=int(data.get("created") or 0),
            updated=int(data.get("updated") or 0),
            deleted=int(data.get("deleted") or 0),
            errors=[str(e) for e in data.get("errors") or []],
        )
