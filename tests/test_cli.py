"""Tests for the lumifyhub-sync command line."""

import json
from unittest.mock import patch

import pytest

from lumifyhub_sync import __version__
from lumifyhub_sync.cli import build_parser, main, note_title, snapshot
from lumifyhub_sync.config import Config
from lumifyhub_sync.core.client import ApiError
from lumifyhub_sync.sync.models import SyncAction, SyncReport, SyncResult, RecordKind


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path, monkeypatch):
    """No .env or config file from the developer's machine."""
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


@pytest.fixture
def run(tmp_path, fake_client):
    """Run the CLI against the fake client with temporary mirror roots."""

    def _run(*args):
        argv = [
            "--pages-dir",
            str(tmp_path / "pages"),
            "--databases-dir",
            str(tmp_path / "databases"),
            "--no-git",
            *args,
        ]
        with patch("lumifyhub_sync.cli.setup_logging"):
            return main(argv, client=fake_client)

    return _run


@pytest.fixture
def seeded(fake_client, tasks_properties):
    fake_client.add_page("page_1", "meeting-notes", "Discuss the widget roadmap")
    fake_client.add_database(
        "db_1",
        "tasks",
        tasks_properties,
        [
            {
                "_id": "r1",
                "_title": "Task",
                "_data_source_id": None,
                "status": "opt_todo",
                "points": 1,
                "notes": None,
            }
        ],
    )
    return fake_client


class TestParser:
    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_db_push_has_no_force(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["db", "push", "--force"])

    def test_db_pull_slug_and_force(self):
        args = build_parser().parse_args(["db", "pull", "tasks", "-f", "-w", "acme"])
        assert (args.slug, args.force, args.workspace) == ("tasks", True, "acme")


class TestCommands:
    def test_pull_then_status(self, run, seeded, capsys):
        assert run("pull") == 0
        out = capsys.readouterr().out
        assert "Pull report" in out
        assert "page acme/meeting-notes" in out
        assert "database acme/tasks" in out

        assert run("status") == 0
        out = capsys.readouterr().out
        assert "    meeting-notes" in out
        assert "tasks (1 rows)" in out
        assert "All records are synced." in out

    def test_pull_json(self, run, seeded, capsys):
        assert run("pull", "--json") == 0
        data = json.loads(capsys.readouterr().out)
        assert data["counts"]["created_local"] == 2

    def test_db_status_lists_databases_only(self, run, seeded, capsys):
        run("pull")
        capsys.readouterr()

        assert run("db", "status", "--json") == 0
        data = json.loads(capsys.readouterr().out)
        assert [e["slug"] for e in data] == ["tasks"]

    def test_db_list(self, run, seeded, capsys):
        run("db", "pull")
        capsys.readouterr()

        assert run("db", "list") == 0
        out = capsys.readouterr().out
        assert "acme/tasks: Tasks" in out
        assert "Rows: 1  Properties: 3" in out

    def test_db_list_empty(self, run, capsys):
        assert run("db", "list") == 0
        assert "No local databases found" in capsys.readouterr().out

    def test_db_pull_unknown_slug_fails(self, run, seeded, capsys):
        assert run("db", "pull", "nope") == 1
        assert "Database not found: nope" in capsys.readouterr().out

    def test_push_without_changes(self, run, seeded, capsys):
        run("pull")
        capsys.readouterr()

        assert run("push") == 0
        assert "Processed 0 records" in capsys.readouterr().out
        assert seeded.batch_calls == []
        assert seeded.update_calls == []

    def test_conflict_exits_zero(self, run, seeded, tmp_path, capsys):
        run("pull")
        page = tmp_path / "pages" / "acme" / "meeting-notes.md"
        page.write_text(page.read_text().replace("widget", "gadget"))
        seeded.pages["page_1"]["content"] = "Changed remotely"
        capsys.readouterr()

        assert run("pull") == 0
        assert "Conflicts:" in capsys.readouterr().out

    def test_search(self, run, seeded, capsys):
        run("pull")
        capsys.readouterr()

        assert run("search", "WIDGET") == 0
        out = capsys.readouterr().out
        assert 'Found 1 result(s) for "WIDGET"' in out
        assert "... Discuss the widget roadmap" in out

        assert run("search", "zebra") == 0
        assert 'No results found for "zebra"' in capsys.readouterr().out

    def test_workspaces(self, run, capsys):
        assert run("workspaces") == 0
        out = capsys.readouterr().out
        assert "Acme Corp" in out
        assert "-w acme" in out

    def test_new_page_in_only_workspace(self, run, fake_client, tmp_path, capsys):
        assert run("new", "Road Map", "--content", "Draft") == 0

        out = capsys.readouterr().out
        assert "Created: Road Map" in out
        assert "  Workspace: acme" in out
        path = tmp_path / "pages" / "acme" / "road-map.md"
        assert path.is_file()
        assert "Draft" in path.read_text()

    def test_new_page_from_file(self, run, fake_client, tmp_path):
        body = tmp_path / "body.md"
        body.write_text("# From a file\n")

        assert run("new", "Imported", "-w", "acme", "--from-file", str(body)) == 0
        (page,) = fake_client.pages.values()
        assert page["content"] == "# From a file\n"

    def test_new_page_needs_workspace_choice(self, run, fake_client, capsys):
        fake_client.workspaces.append({"id": "ws_2", "name": "Other", "slug": "other"})

        assert run("new", "Road Map") == 1
        assert "--workspace" in capsys.readouterr().err
        assert fake_client.pages == {}

    def test_new_page_without_workspaces(self, run, fake_client, capsys):
        fake_client.workspaces = []

        assert run("new", "Road Map") == 1
        assert "No workspaces found" in capsys.readouterr().err
        assert fake_client.pages == {}

    def test_add_quick_note(self, run, fake_client, tmp_path, capsys):
        assert run("add", "Call the printer vendor about the lease") == 0

        out = capsys.readouterr().out
        assert "Added: Call the printer vendor about" in out
        (page,) = fake_client.pages.values()
        assert page["title"] == "Call the printer vendor about"
        assert page["content"] == "Call the printer vendor about the lease"
        path = tmp_path / "pages" / "acme" / "call-the-printer-vendor-about.md"
        assert path.is_file()
        assert str(path) in out

    def test_add_needs_workspace_choice(self, run, fake_client, capsys):
        fake_client.workspaces.append({"id": "ws_2", "name": "Other", "slug": "other"})

        assert run("add", "hello") == 1
        assert "--workspace" in capsys.readouterr().err

        assert run("add", "hello", "-w", "other") == 0
        (page,) = fake_client.pages.values()
        assert page["workspace_slug"] == "other"

    def test_whoami(self, run, capsys):
        assert run("whoami") == 0
        assert "Logged in as: dev@example.com" in capsys.readouterr().out

    def test_whoami_rejected_token(self, run, fake_client, capsys):
        fake_client.token_valid = False

        assert run("whoami") == 1
        assert "Token rejected" in capsys.readouterr().err

    def test_new_page_missing_file(self, run, tmp_path, capsys):
        assert run("new", "X", "-w", "acme", "--from-file", str(tmp_path / "no.md")) == 1
        assert "Cannot read" in capsys.readouterr().err

    def test_init_config(self, run, tmp_path, capsys):
        assert run("init-config") == 0
        path = tmp_path / "work" / ".lumifyhub" / "config.yml"
        assert path.is_file()
        assert str(path) in capsys.readouterr().out


class TestErrors:
    def test_remote_command_requires_token(self, tmp_path, capsys):
        with patch("lumifyhub_sync.cli.setup_logging"):
            code = main(["--pages-dir", str(tmp_path / "p"), "pull"])
        assert code == 1
        assert "Not authenticated" in capsys.readouterr().err

    def test_local_command_without_token(self, tmp_path, capsys):
        with patch("lumifyhub_sync.cli.setup_logging"):
            code = main(["--pages-dir", str(tmp_path / "p"), "status"])
        assert code == 0
        assert "No local records found" in capsys.readouterr().out

    def test_configuration_error(self, capsys):
        code = main(["--api-url", "not-a-url", "status"])
        assert code == 1
        assert "Configuration error" in capsys.readouterr().err

    def test_api_error_is_reported(self, run, fake_client, capsys):
        def fail():
            raise ApiError("Failed to fetch workspaces: Unauthorized", 401)

        fake_client.get_workspaces = fail

        assert run("workspaces") == 1
        assert "Error: Failed to fetch workspaces" in capsys.readouterr().err

    def test_record_errors_exit_one(self, run, seeded, capsys):
        seeded.failing_ids.add("db_1")
        assert run("pull") == 1
        assert "Errors:" in capsys.readouterr().out


class TestSnapshot:
    def _report(self, action):
        return SyncReport(
            operation="pull",
            results=[
                SyncResult(
                    kind=RecordKind.PAGE,
                    workspace_slug="acme",
                    slug="notes",
                    action=action,
                    success=True,
                )
            ],
            started_at="2026-01-01T00:00:00+00:00",
        )

    @patch("lumifyhub_sync.cli.GitSnapshotter")
    def test_commits_existing_roots_after_changes(self, mock_git, tmp_path):
        (tmp_path / "pages").mkdir()
        config = Config(
            pages_dir=tmp_path / "pages",
            databases_dir=tmp_path / "databases",
            git_commit=True,
        )

        snapshot(config, self._report(SyncAction.PULL))

        mock_git.assert_called_once_with(tmp_path / "pages", timeout=30)
        mock_git.return_value.commit_all.assert_called_once_with(
            "Pull from LumifyHub"
        )

    @patch("lumifyhub_sync.cli.GitSnapshotter")
    def test_skipped_without_changes_or_when_disabled(self, mock_git, tmp_path):
        (tmp_path / "pages").mkdir()
        config = Config(pages_dir=tmp_path / "pages", git_commit=True)
        snapshot(config, self._report(SyncAction.UNCHANGED))

        config.git_commit = False
        snapshot(config, self._report(SyncAction.PULL))

        mock_git.assert_not_called()


class TestNoteTitle:
    def test_first_words(self):
        assert note_title("  buy   milk\nand eggs today please ") == (
            "buy milk and eggs today"
        )

    def test_long_words_are_shortened(self):
        title = note_title("internationalisation considerations outstanding")
        assert title == "internationalisation considera..."
