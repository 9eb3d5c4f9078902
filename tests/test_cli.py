"""Tests for the termflex command line."""

import logging

import pytest
from typer.testing import CliRunner

from termflex.config import Settings
from termflex.dsl import load_config
from termflex_cli.main import _configure_run_logging, app

runner = CliRunner()

DEMO = """
name: demo
data:
  title: Demo
  user:
    name: ada
layout:
  children:
    - type: header
      id: title
      props: {content: "{{title}}"}
    - type: list
      id: todos
      height: flex
"""


@pytest.fixture
def demo_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "demo.tui.yaml"
    path.write_text(DEMO, encoding="utf-8")
    return path


class TestValidate:
    def test_valid_file(self, demo_file):
        result = runner.invoke(app, ["validate", str(demo_file)])
        assert result.exit_code == 0
        assert "OK" in result.output

    def test_invalid_file(self, tmp_path):
        path = tmp_path / "bad.tui.yaml"
        path.write_text("name: bad\nlogLevel: loud\n", encoding="utf-8")
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 1
        assert "logLevel" in result.output
        assert "invalid log level: 'loud'" in result.output

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["validate", str(tmp_path / "nope.tui.yaml")])
        assert result.exit_code == 1


class TestInspect:
    def test_prints_boxes_and_focus_order(self, demo_file):
        result = runner.invoke(app, ["inspect", str(demo_file), "-w", "40", "-h", "10"])
        assert result.exit_code == 0
        assert "demo (40x10)" in result.output
        assert "todos" in result.output
        assert "focus order: todos" in result.output


class TestDump:
    def test_initial_state_with_external_data(self, demo_file, tmp_path):
        extra = tmp_path / "extra.yaml"
        extra.write_text("title: From file\n", encoding="utf-8")
        result = runner.invoke(app, [
            "dump", str(demo_file), "--data-file", str(extra), "-d", "count=3", "-d", "flag=true",
        ])
        assert result.exit_code == 0
        assert '"title": "From file"' in result.output
        assert '"count": 3' in result.output
        assert '"flag": true' in result.output
        assert '"user.name": "ada"' in result.output

    def test_bad_pair(self, demo_file):
        result = runner.invoke(app, ["dump", str(demo_file), "-d", "novalue"])
        assert result.exit_code == 2


class TestRun:
    def teardown_method(self):
        logger = logging.getLogger("termflex")
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    def test_invalid_log_level_is_reported_cleanly(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "app.tui.yaml"
        path.write_text("name: bad\nlogLevel: verbose\nlayout:\n  type: text\n", encoding="utf-8")
        result = runner.invoke(app, ["run", str(path)])
        assert result.exit_code == 1
        assert "logLevel" in result.output
        assert "invalid log level: 'verbose'" in result.output
        assert not isinstance(result.exception, ValueError)

    def test_missing_layout_is_reported_cleanly(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "app.tui.yaml"
        path.write_text("name: empty\n", encoding="utf-8")
        result = runner.invoke(app, ["run", str(path)])
        assert result.exit_code == 1
        assert "layout is required" in result.output


class TestRunLogging:
    def teardown_method(self):
        logger = logging.getLogger("termflex")
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    def config(self):
        return load_config({"name": "x", "layout": {"type": "text"}})

    def test_nothing_is_written_to_the_terminal(self, settings):
        logger = _configure_run_logging(self.config(), settings, None)
        assert logger.handlers
        assert all(isinstance(handler, logging.NullHandler) for handler in logger.handlers)
        assert logger.propagate is False

    def test_log_file_is_used_when_given(self, settings, tmp_path):
        logger = _configure_run_logging(self.config(), settings, tmp_path / "run.log")
        assert [type(handler) for handler in logger.handlers] == [logging.FileHandler]

    def test_invalid_settings_level_falls_back_to_warn(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        settings = Settings(overrides={"log_level": "verbose"})
        logger = _configure_run_logging(self.config(), settings, None)
        assert logger.level == logging.WARNING
