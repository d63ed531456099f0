import json
import logging
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from unittest.mock import patch

import pydantic
import pytest
import structlog

from shared.logging import LoggingSettings, _serialize_values, log_file_path, setup_logging


@pytest.fixture(autouse=True)
def _cleanup_root_logger():
    """Close and remove all handlers from the root logger after each test."""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)


@pytest.fixture(autouse=True)
def _allow_file_logging():
    """Disable the _is_test guard so logging tests can create real file handlers."""
    with patch("shared.logging._is_test", return_value=False):
        yield


class _Color(Enum):
    RED = "red"


class TestSetupLogging:
    def test_configures_stdout_handler(self):
        setup_logging()
        root = logging.getLogger()

        assert root.level == logging.INFO
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0], logging.StreamHandler)
        assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)

    def test_configures_file_handler_in_log_dir(self, tmp_path):
        log_dir = tmp_path / "zombies"
        file_path = setup_logging(log_dir=log_dir)
        root = logging.getLogger()

        assert len(root.handlers) == 2
        assert isinstance(root.handlers[1], logging.FileHandler)
        assert file_path is not None
        assert file_path.parent == log_dir

    def test_log_file_named_after_service_and_time(self, tmp_path):
        fixed_time = datetime(2025, 3, 15, 10, 30, 45, tzinfo=UTC)
        assert log_file_path(tmp_path, fixed_time) == tmp_path / "zombies_2025-03-15_10-30-45.log"

    def test_creates_missing_log_dir(self, tmp_path):
        file_path = setup_logging(log_dir=tmp_path / "nested" / "logs")
        assert file_path is not None
        assert file_path.parent.is_dir()
        assert file_path.name.startswith("zombies_")

    def test_no_file_handler_under_test_guard(self, tmp_path):
        with patch("shared.logging._is_test", return_value=True):
            assert setup_logging(log_dir=tmp_path) is None
        assert not list(Path(tmp_path).iterdir())

    def test_level_from_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        setup_logging()
        assert logging.getLogger().level == logging.DEBUG

    def test_invalid_level_rejected(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "LOUD")
        with pytest.raises(pydantic.ValidationError, match="log_level"):
            setup_logging()

    def test_invalid_format_rejected(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "xml")
        with pytest.raises(pydantic.ValidationError, match="log_format"):
            setup_logging()

    def test_json_mode_writes_json_lines(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")
        file_path = setup_logging(log_dir=tmp_path)
        structlog.get_logger("zombies.test").info("match created", match_id="zm_1")
        for handler in logging.getLogger().handlers:
            handler.flush()

        line = file_path.read_text().strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "match created"
        assert record["match_id"] == "zm_1"
        assert record["level"] == "info"


class TestLoggingSettings:
    def test_defaults_to_info_console(self, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        settings = LoggingSettings()
        assert settings.level == logging.INFO
        assert settings.json_mode is False

    def test_values_are_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "JSON")
        monkeypatch.setenv("LOG_LEVEL", "warning")
        settings = LoggingSettings()
        assert settings.json_mode is True
        assert settings.level == logging.WARNING


class TestSerializeValues:
    def test_enums_and_datetimes_become_plain_values(self):
        ts = datetime(2025, 1, 1, tzinfo=UTC)
        result = _serialize_values(None, "info", {"color": _Color.RED, "at": ts, "n": 3})
        assert result == {"color": "red", "at": ts.isoformat(), "n": 3}

    def test_nested_dict_values(self):
        result = _serialize_values(None, "info", {"payload": {"color": _Color.RED, "x": 1}})
        assert result == {"payload": {"color": "red", "x": 1}}
