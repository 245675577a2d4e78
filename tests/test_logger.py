"""Tests for logger.py: setup_logging() and JsonFormatter.

Strategy: Mock logging.basicConfig to verify setup_logging passes correct args,
since pytest's log capture plugin interferes with actual basicConfig calls.
"""

import json
import logging
import sys
from unittest.mock import patch

from lumifyhub_sync.logger import JsonFormatter, setup_logging


# ---------------------------------------------------------------------------
# setup_logging tests
# ---------------------------------------------------------------------------


class TestSetupLogging:
    @patch("lumifyhub_sync.logger.logging.basicConfig")
    def test_logs_to_stderr(self, mock_basic):
        """A StreamHandler on stderr is always installed."""
        setup_logging()

        mock_basic.assert_called_once()
        handlers = mock_basic.call_args[1]["handlers"]
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.StreamHandler)
        assert handlers[0].stream is sys.stderr

    @patch("lumifyhub_sync.logger.logging.basicConfig")
    def test_default_level_is_warning(self, mock_basic):
        setup_logging()
        assert mock_basic.call_args[1]["level"] == logging.WARNING

    @patch("lumifyhub_sync.logger.logging.basicConfig")
    def test_config_level_used_without_env(self, mock_basic):
        setup_logging(level="info")
        assert mock_basic.call_args[1]["level"] == logging.INFO

    @patch("lumifyhub_sync.logger.logging.basicConfig")
    def test_env_beats_config_level(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        setup_logging(level="INFO")
        assert mock_basic.call_args[1]["level"] == logging.ERROR

    @patch("lumifyhub_sync.logger.logging.basicConfig")
    def test_debug_beats_env(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        setup_logging(debug=True)
        assert mock_basic.call_args[1]["level"] == logging.DEBUG

    @patch("lumifyhub_sync.logger.logging.basicConfig")
    def test_unknown_level_falls_back_to_warning(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "CHATTY")
        setup_logging()
        assert mock_basic.call_args[1]["level"] == logging.WARNING

    @patch("lumifyhub_sync.logger.logging.basicConfig")
    def test_log_file_adds_handler(self, mock_basic, tmp_path):
        log_file = tmp_path / "sync.log"
        setup_logging(log_file=str(log_file))

        handlers = mock_basic.call_args[1]["handlers"]
        try:
            assert len(handlers) == 2
            assert isinstance(handlers[1], logging.FileHandler)
            assert handlers[1].baseFilename == str(log_file)
        finally:
            handlers[1].close()

    @patch("lumifyhub_sync.logger.logging.basicConfig")
    def test_json_format(self, mock_basic):
        setup_logging(debug_format="json")
        handlers = mock_basic.call_args[1]["handlers"]
        assert isinstance(handlers[0].formatter, JsonFormatter)

    @patch("lumifyhub_sync.logger.logging.basicConfig")
    def test_urllib3_silenced_unless_debug(self, mock_basic):
        logging.getLogger("urllib3").setLevel(logging.NOTSET)
        setup_logging()
        assert logging.getLogger("urllib3").level == logging.WARNING

        logging.getLogger("urllib3").setLevel(logging.NOTSET)
        setup_logging(debug=True)
        assert logging.getLogger("urllib3").level == logging.NOTSET


# ---------------------------------------------------------------------------
# JsonFormatter tests
# ---------------------------------------------------------------------------


class TestJsonFormatter:
    def _record(self, msg="hello %s", args=("world",), exc_info=None):
        return logging.LogRecord(
            name="lumifyhub_sync.sync.engine",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg=msg,
            args=args,
            exc_info=exc_info,
        )

    def test_single_line_json(self):
        output = JsonFormatter().format(self._record())

        assert "\n" not in output
        entry = json.loads(output)
        assert entry["level"] == "INFO"
        assert entry["logger"] == "lumifyhub_sync.sync.engine"
        assert entry["msg"] == "hello world"
        assert "ts" in entry
        assert "exc" not in entry

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            exc_info = sys.exc_info()

        entry = json.loads(JsonFormatter().format(self._record(exc_info=exc_info)))

        assert "RuntimeError: boom" in entry["exc"]
