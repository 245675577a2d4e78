from unittest.mock import Mock, patch

import pytest
import requests

from lumifyhub_sync.config import Config
from lumifyhub_sync.core.client import ApiError, LumifyClient, NotAuthenticatedError


def _response(status_code=200, body=None, reason="OK", json_error=False):
    response = Mock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.reason = reason
    if json_error:
        response.json.side_effect = ValueError("not json")
    else:
        response.json.return_value = body
    return response


# LumifyClient construction
def test_base_url_construction(mock_config):
    """The API lives under /api/cli of the service URL."""
    client = LumifyClient(mock_config)
    assert client.base_url == "https://hub.example.com/api/cli"


def test_session_headers(mock_config):
    """Sessions carry the bearer token and a JSON content type."""
    client = LumifyClient(mock_config)
    assert client.session.headers["Authorization"] == "Bearer test-token"
    assert client.session.headers["Content-Type"] == "application/json"


def test_session_is_reused(mock_config):
    client = LumifyClient(mock_config)
    assert client.session is client.session


def test_missing_token_raises(tmp_path):
    """Requests without a token fail before anything is sent."""
    client = LumifyClient(Config(token=None, pages_dir=tmp_path))
    with pytest.raises(NotAuthenticatedError):
        client.get_workspaces()


# Request handling
@patch("lumifyhub_sync.core.client.requests.Session.request")
def test_get_pages_with_workspace(mock_request, mock_config):
    """get_pages passes the workspace filter and unwraps data."""
    pages = [{"id": "p1", "slug": "notes"}]
    mock_request.return_value = _response(body={"data": pages})

    client = LumifyClient(mock_config)
    result = client.get_pages("acme")

    assert result == pages
    args, kwargs = mock_request.call_args
    assert args == ("GET", "https://hub.example.com/api/cli/pages")
    assert kwargs["params"] == {"workspace": "acme"}
    assert kwargs["timeout"] == (10, mock_config.timeout)


@patch("lumifyhub_sync.core.client.requests.Session.request")
def test_get_databases_without_workspace(mock_request, mock_config):
    mock_request.return_value = _response(body={"data": []})

    client = LumifyClient(mock_config)
    assert client.get_databases() == []

    _, kwargs = mock_request.call_args
    assert kwargs["params"] is None


@patch("lumifyhub_sync.core.client.requests.Session.request")
def test_update_page_sends_content_and_title(mock_request, mock_config):
    mock_request.return_value = _response(body={"data": {"id": "p1"}})

    client = LumifyClient(mock_config)
    client.update_page("p1", "Body", "Title")

    args, kwargs = mock_request.call_args
    assert args == ("PUT", "https://hub.example.com/api/cli/pages/p1")
    assert kwargs["json"] == {"content": "Body", "title": "Title"}


@patch("lumifyhub_sync.core.client.requests.Session.request")
def test_create_page_with_parent(mock_request, mock_config):
    mock_request.return_value = _response(body={"data": {"id": "p2"}})

    client = LumifyClient(mock_config)
    result = client.create_page("New", "Body", "acme", parent_id="p1")

    assert result == {"id": "p2"}
    args, kwargs = mock_request.call_args
    assert args[0] == "POST"
    assert kwargs["json"] == {
        "title": "New",
        "content": "Body",
        "workspace_slug": "acme",
        "parent_id": "p1",
    }


@patch("lumifyhub_sync.core.client.requests.Session.request")
def test_batch_update_rows(mock_request, mock_config):
    """Batch writes return counts plus per-row errors."""
    mock_request.return_value = _response(
        body={
            "data": {
                "created": 1,
                "updated": 2,
                "deleted": 0,
                "errors": ["row r9: invalid option"],
            }
        }
    )

    client = LumifyClient(mock_config)
    result = client.batch_update_rows(
        "db_1", create=[{"title": "A"}], update=[], delete=["r3"]
    )

    assert (result.created, result.updated, result.deleted) == (1, 2, 0)
    assert result.errors == ["row r9: invalid option"]
    args, kwargs = mock_request.call_args
    assert args[1] == "https://hub.example.com/api/cli/databases/db_1/rows/batch"
    assert kwargs["json"] == {
        "create": [{"title": "A"}],
        "update": [],
        "delete": ["r3"],
    }


@patch("lumifyhub_sync.core.client.requests.Session.request")
def test_batch_update_rows_malformed_response(mock_request, mock_config):
    mock_request.return_value = _response(body={"data": ["unexpected"]})

    client = LumifyClient(mock_config)
    with pytest.raises(ApiError, match="malformed response"):
        client.batch_update_rows("db_1", create=[], update=[], delete=[])


# Error handling
@patch("lumifyhub_sync.core.client.requests.Session.request")
def test_error_body_message(mock_request, mock_config):
    """The service's error field becomes the exception message."""
    mock_request.return_value = _response(
        status_code=404, body={"error": "Database not found"}, reason="Not Found"
    )

    client = LumifyClient(mock_config)
    with pytest.raises(ApiError) as exc_info:
        client.get_database("db_x")

    assert str(exc_info.value) == "Failed to fetch database: Database not found"
    assert exc_info.value.status_code == 404


@patch("lumifyhub_sync.core.client.requests.Session.request")
def test_error_without_body_uses_reason(mock_request, mock_config):
    mock_request.return_value = _response(
        status_code=500, reason="Internal Server Error", json_error=True
    )

    client = LumifyClient(mock_config)
    with pytest.raises(ApiError, match="Internal Server Error"):
        client.get_workspaces()


@patch("lumifyhub_sync.core.client.requests.Session.request")
def test_unauthorized_raises_not_authenticated(mock_request, mock_config):
    mock_request.return_value = _response(
        status_code=401, body={"error": "Invalid token"}, reason="Unauthorized"
    )

    client = LumifyClient(mock_config)
    with pytest.raises(NotAuthenticatedError, match="Invalid token"):
        client.get_pages()


@patch("lumifyhub_sync.core.client.requests.Session.request")
def test_non_json_success_body(mock_request, mock_config):
    mock_request.return_value = _response(json_error=True)

    client = LumifyClient(mock_config)
    with pytest.raises(ApiError, match="not JSON"):
        client.get_page("p1")


@patch("lumifyhub_sync.core.client.requests.Session.request")
def test_missing_data_member(mock_request, mock_config):
    mock_request.return_value = _response(body={"pages": []})

    client = LumifyClient(mock_config)
    with pytest.raises(ApiError, match="has no data"):
        client.get_pages()


@patch("lumifyhub_sync.core.client.requests.Session.request")
def test_network_errors_propagate(mock_request, mock_config):
    mock_request.side_effect = requests.ConnectionError("refused")

    client = LumifyClient(mock_config)
    with pytest.raises(requests.ConnectionError):
        client.get_workspaces()


# Token validation
@patch("lumifyhub_sync.core.client.requests.Session.get")
def test_validate_token_valid(mock_get, mock_config):
    mock_get.return_value = _response(
        body={"email": "dev@example.com", "userId": "u1"}
    )

    client = LumifyClient(mock_config)

    assert client.validate_token() == {
        "valid": True,
        "email": "dev@example.com",
        "userId": "u1",
    }
    assert mock_get.call_args[0][0] == "https://hub.example.com/api/cli/auth/validate"


@patch("lumifyhub_sync.core.client.requests.Session.get")
def test_validate_token_invalid(mock_get, mock_config):
    mock_get.return_value = _response(status_code=401, reason="Unauthorized")

    client = LumifyClient(mock_config)

    assert client.validate_token() == {"valid": False}
