"""Tests for runtime settings and logging setup."""

import logging

import pytest

from termflex.config import DEFAULTS, Settings
from termflex.exceptions import ConfigError
from termflex.log import TRACE, configure_logging, resolve_level, trace


class TestSettings:
    def test_defaults_without_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        settings = Settings()
        assert settings.source is None
        assert settings.get("frame_interval") == DEFAULTS["frame_interval"]
        assert settings.get_nested("expression_cache.ttl") == 300

    def test_file_in_working_directory_is_merged(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "termflex.yaml").write_text(
            "frame_interval: 0.1\nexpression_cache:\n  ttl: 10\n", encoding="utf-8"
        )
        settings = Settings()
        assert settings.source == "file"
        assert settings.get("frame_interval") == 0.1
        assert settings.get_nested("expression_cache.ttl") == 10
        assert settings.get_nested("expression_cache.max_size") == 1024

    def test_overrides_win_over_file(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text("default_width: 100\n", encoding="utf-8")
        settings = Settings(path, overrides={"default_width": 50})
        assert settings.get("default_width") == 50

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigError, match="settings file not found"):
            Settings(tmp_path / "missing.yaml")

    def test_file_must_hold_a_map(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="must contain a map"):
            Settings(path)

    def test_empty_file_keeps_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert Settings(path).get("default_height") == 24

    def test_get_nested_defaults(self, settings):
        assert settings.get_nested("expression_cache.nope", "x") == "x"
        assert settings.get_nested("frame_interval.deeper", 1) == 1
        assert settings.get_nested("", 2) == 2

    def test_as_dict_is_a_copy(self, settings):
        settings.as_dict()["expression_cache"]["ttl"] = 0
        assert settings.get_nested("expression_cache.ttl") == 300

    def test_reload_rereads_file(self, tmp_path):
        path = tmp_path / "s.yaml"
        path.write_text("frame_interval: 1\n", encoding="utf-8")
        settings = Settings(path)
        path.write_text("frame_interval: 2\n", encoding="utf-8")
        settings.reload()
        assert settings.get("frame_interval") == 2


class TestLogging:
    def teardown_method(self):
        for handler in list(logging.getLogger("termflex").handlers):
            logging.getLogger("termflex").removeHandler(handler)
            handler.close()

    def test_resolve_level_names(self):
        assert resolve_level("warn") == logging.WARNING
        assert resolve_level("TRACE") == TRACE
        assert resolve_level(logging.INFO) == logging.INFO
        assert resolve_level("none") > logging.CRITICAL

    def test_resolve_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("TERMFLEX_LOG_LEVEL", "debug")
        assert resolve_level() == logging.DEBUG

    def test_invalid_level(self):
        with pytest.raises(ValueError, match="invalid log level"):
            resolve_level("loud")

    def test_file_handler_and_trace(self, tmp_path):
        path = tmp_path / "termflex.log"
        logger = configure_logging("trace", log_file=path)
        assert logger.propagate is False
        assert len(logger.handlers) == 1
        trace(logging.getLogger("termflex.tests"), "hello %s", "there")
        logging.getLogger("termflex.tests").debug("debug line")
        content = path.read_text(encoding="utf-8")
        assert "[TRACE] hello there" in content
        assert "debug line" in content

    def test_reconfiguring_replaces_handlers(self, tmp_path):
        configure_logging("info", log_file=tmp_path / "a.log")
        logger = configure_logging("error", log_file=tmp_path / "b.log")
        assert len(logger.handlers) == 1
        assert logger.level == logging.ERROR
