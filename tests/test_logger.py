"""Tests for the JsonLog facade, end to end through the log file."""

import json
from datetime import datetime

import pytest

from jsonlog import Environment, InvalidLevel, JsonLog, JsonLogPretty, MaintenanceOnly
from jsonlog.config import SECTION
from jsonlog.formatter import SEPARATOR


class _FrozenClock:
    def __init__(self, moment):
        self.moment = moment

    def now(self):
        return self.moment


def _lines(log_file):
    if not log_file.exists():
        return []
    return [line for line in log_file.read_text(encoding="utf-8").splitlines() if line]


class TestLog:
    def test_warning_written(self, json_log, log_file):
        json_log.log("warning", "User {user} failed with {code}", {"user": "bob", "code": 42})

        lines = _lines(log_file)
        assert len(lines) == 1
        assert '"message":"User bob failed with 42"' in lines[0]
        assert '"level":"warning"' in lines[0]
        assert '"code":42' in lines[0]

        record = json.loads(lines[0])
        assert list(record)[0] == "message"
        assert record["site_id"] == "testsite"
        assert record["method"] == "cli"

    def test_below_threshold_writes_nothing(self, json_log, log_file):
        json_log.log("debug", "Noise", {})
        assert _lines(log_file) == []

    def test_rank_levels(self, json_log, log_file):
        json_log.log(3, "Numeric")
        json_log.log("2", "Stringed")
        levels = [json.loads(line)["level"] for line in _lines(log_file)]
        assert levels == ["error", "critical"]

    def test_invalid_level(self, json_log, log_file):
        with pytest.raises(InvalidLevel):
            json_log.log("verbose", "x")
        assert _lines(log_file) == []

    def test_threshold_from_config(self, config, cli_env, log_dir, log_file):
        log_dir.mkdir()
        config.set(SECTION, "threshold", "debug")
        JsonLog(config, cli_env).log("debug", "Now visible")
        assert json.loads(_lines(log_file)[0])["level"] == "debug"

    def test_disk_failure_does_not_raise(self, config, cli_env, caplog):
        json_log = JsonLog(config, cli_env)
        json_log.log("error", "Lost")
        assert "failed to write" in caplog.text

    def test_each_event_is_one_line(self, json_log, log_file):
        json_log.error("multi\nline <message>")
        json_log.error("second")
        lines = _lines(log_file)
        assert len(lines) == 2
        assert "<" not in lines[0]
        assert json.loads(lines[0])["message"] == "multi\nline <message>"

    @pytest.mark.parametrize("method,written", [
        ("emergency", True),
        ("alert", True),
        ("critical", True),
        ("error", True),
        ("warning", True),
        ("notice", False),
        ("info", False),
        ("debug", False),
    ])
    def test_shortcuts(self, json_log, log_file, method, written):
        getattr(json_log, method)("Shortcut {n}", {"n": 1})
        lines = _lines(log_file)
        assert bool(lines) is written
        if written:
            assert json.loads(lines[0])["level"] == method

    def test_context_not_mutated(self, json_log):
        context = {"exception": FileNotFoundError(2, "missing"), "log_custom_columns": {"a": 1}}
        json_log.error("x", context)
        assert "code" not in context
        assert "log_custom_columns" in context


class TestCompose:
    def test_returns_record_without_writing(self, json_log, log_file):
        record = json_log.compose("debug", "Composed {x}", {"x": "value"})
        assert record["message"] == "Composed value"
        assert record["level"] == "debug"
        assert _lines(log_file) == []

    def test_invalid_level(self, json_log):
        with pytest.raises(InvalidLevel):
            json_log.compose(9, "x")


class TestRequests:
    def test_begin_request_rebinds_request_columns(self, json_log, log_file, request_env):
        json_log.error("cli event")
        json_log.begin_request(request_env)
        json_log.error("request event")

        first, second = (json.loads(line) for line in _lines(log_file))
        assert first["method"] == "cli"
        assert second["method"] == "POST"
        assert second["request_uri"] == "/checkout?step=2"
        assert second["client_ip"] == "10.0.0.5"
        assert first["site_id"] == second["site_id"]

    def test_long_lived_logger_follows_the_date(self, config, cli_env, log_dir, request_env, monkeypatch):
        log_dir.mkdir()
        config.set(SECTION, "file_time", "Ymd")
        json_log = JsonLog(config, cli_env)

        monkeypatch.setattr("jsonlog.sink.datetime", _FrozenClock(datetime(2026, 1, 1, 23, 59)))
        json_log.error("day one")
        monkeypatch.setattr("jsonlog.sink.datetime", _FrozenClock(datetime(2026, 1, 2, 0, 1)))
        json_log.begin_request(request_env)
        json_log.error("day two")

        assert json.loads(_lines(log_dir / "testsite.20260101.json.log")[0])["message"] == "day one"
        assert json.loads(_lines(log_dir / "testsite.20260102.json.log")[0])["message"] == "day two"

    def test_request_mode_disables_truncate(self, json_log, request_env):
        json_log.begin_request(request_env)
        with pytest.raises(MaintenanceOnly):
            json_log.truncate_log_file()


class TestCommittable:
    def test_missing_path_verbose(self, config, cli_env, log_dir):
        result = JsonLog(config, cli_env).committable(verbose=True)
        assert result["success"] is False
        assert result["code"] == 10
        assert result["message"].startswith(
            "JsonLog is NOT committable; using configuration provided by Config instance."
        )
        assert "Path does not exist" in result["message"]

    def test_plain_bool(self, config, cli_env):
        assert JsonLog(config, cli_env).committable() is False

    def test_enable(self, config, cli_env, log_file):
        result = JsonLog(config, cli_env).committable(enable=True, verbose=True)
        assert result["success"] is True
        assert result["code"] == 0
        assert result["message"].startswith("JsonLog is committable;")
        assert log_file.is_file()
        assert _lines(log_file) == []

    def test_commit_on_success(self, config, cli_env, log_file):
        assert JsonLog(config, cli_env).committable(enable=True, commit_on_success=True) is True
        record = json.loads(_lines(log_file)[0])
        assert record["message"] == "JsonLog is committable."
        assert record["level"] == "info"


class TestTruncate:
    def test_truncate_log_file(self, json_log, log_file):
        json_log.error("one")
        json_log.error("two")
        assert json_log.truncate_log_file() == str(log_file)
        assert _lines(log_file) == []


class TestFormats:
    def test_pretty_from_config(self, config, cli_env, log_dir, log_file):
        log_dir.mkdir()
        config.set(SECTION, "format", "pretty")
        JsonLog(config, cli_env).error("Pretty")
        text = log_file.read_text(encoding="utf-8")
        assert text.startswith("{\n")
        assert json.loads(text)["message"] == "Pretty"

    def test_prettier_subclass(self, config, cli_env, log_dir, log_file):
        log_dir.mkdir()
        JsonLogPretty(config, cli_env).error("Line one\nLine two")
        text = log_file.read_text(encoding="utf-8")
        assert "Line one\nLine two" in text
        assert text.rstrip("\n").endswith(SEPARATOR)

    def test_explicit_formatter(self, config, cli_env, log_dir, log_file):
        log_dir.mkdir()
        JsonLog(config, cli_env, formatter=lambda record: record["message"]).error("raw")
        assert _lines(log_file) == ["raw"]

    def test_unknown_format_falls_back_to_compact(self, config, cli_env, log_dir, log_file, caplog):
        log_dir.mkdir()
        config.set(SECTION, "format", "jsonl")
        JsonLog(config, cli_env).error("Still written")
        lines = _lines(log_file)
        assert len(lines) == 1
        assert json.loads(lines[0])["message"] == "Still written"
        assert "invalid format" in caplog.text


class TestDefaults:
    def test_builds_own_config_and_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("JSONLOG_PATH", str(tmp_path))
        monkeypatch.setenv("JSONLOG_SITEID", "envsite")
        json_log = JsonLog()
        assert isinstance(json_log.environment, Environment)
        assert json_log.environment.cli is True
        json_log.error("From env")
        written = next(tmp_path.glob("envsite*.json.log"))
        record = json.loads(written.read_text(encoding="utf-8"))
        assert record["site_id"] == "envsite"
