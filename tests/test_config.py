"""
Tests for configuration loading and logging helpers
"""

import logging
from datetime import datetime

import pytest
import pytz

import utils.others as otherutils
from utils.config import ConfigError, load_config, resolve_mode


class TestLoadConfig:
    """YAML loading"""

    def test_env_expansion(self, tmp_path, monkeypatch):
        """${VAR} references are expanded from the environment"""
        monkeypatch.setenv("BSKY_APP_PASSWORD", "s3cret")
        path = tmp_path / "config.yaml"
        path.write_text("bluesky:\n  prod:\n    app_password: ${BSKY_APP_PASSWORD}\n    max_length: 290\n")

        config = load_config(path)

        assert config["bluesky"]["prod"]["app_password"] == "s3cret"
        assert config["bluesky"]["prod"]["max_length"] == 290

    def test_unset_variable_left_as_written(self, tmp_path, monkeypatch):
        monkeypatch.delenv("MIRRORBOT_UNSET_VAR", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text("script:\n  log_file_name: ${MIRRORBOT_UNSET_VAR}\n")

        assert load_config(path)["script"]["log_file_name"] == "${MIRRORBOT_UNSET_VAR}"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("script: [unclosed\n")

        with pytest.raises(ConfigError):
            load_config(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigError):
            load_config(path)


class TestResolveMode:
    """env > yaml > prod"""

    def test_env_wins(self):
        assert resolve_mode({"script": {"mode": "prod"}}, "DEBUG") == "debug"

    def test_yaml_used_without_env(self):
        assert resolve_mode({"script": {"mode": "debug"}}, "") == "debug"

    def test_invalid_values_fall_through(self):
        assert resolve_mode({"script": {"mode": "staging"}}, "qa") == "prod"

    def test_default(self):
        assert resolve_mode({}) == "prod"


class TestLoggingHelpers:
    """utils.others"""

    def test_setup_logging_console(self):
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            otherutils.setup_logging({"script": {}}, console=True, debug=True)

            assert root.level == logging.DEBUG
            assert isinstance(root.handlers[0].formatter, otherutils.ColoredFormatter)
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_colored_formatter_keeps_record(self):
        formatter = otherutils.ColoredFormatter("%(levelname)s %(message)s")
        record = logging.LogRecord("x", logging.WARNING, __file__, 1, "hello", None, None)

        out = formatter.format(record)

        assert "WARNING" in out and "\033[" in out
        assert record.levelname == "WARNING"

    def test_local_timezone(self):
        assert otherutils.local_timezone({"script": {"timezone": "America/New_York"}}).zone == "America/New_York"
        assert otherutils.local_timezone({"script": {"timezone": "Not/AZone"}}) is pytz.utc
        assert otherutils.local_timezone({}) is pytz.utc

    def test_next_run_time(self):
        now = datetime(2025, 1, 1, 12, 0, tzinfo=pytz.utc)
        tz = pytz.timezone("America/New_York")

        assert otherutils.next_run_time(600, tz, now=now) == "2025-01-01 07:10:00 EST"
