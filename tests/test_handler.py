from __future__ import annotations

import json
import logging
import types
from datetime import datetime, timezone

import pytest

from telegraws import handler
from telegraws.collectors import CollectorResult
from telegraws.cycle import STATUS_SENT, CycleOutcome
from telegraws.logging import reset_logging
from telegraws.util.errors import ConfigError
from telegraws.window import compute_time_window

CONFIG = {
    "global": {
        "telegram": {"botToken": "111:token", "chatId": "-100"},
        "monitoring": {"timezone": "UTC", "defaultPeriod": 1, "dailyReportHour": 9},
    },
    "services": {"ec2": {"enabled": True, "instanceId": "i-1"}, "alb": {"enabled": True, "albName": "web"}},
}


@pytest.fixture(autouse=True)
def _isolated_logging():
    root = logging.getLogger()
    saved = (list(root.handlers), root.level)
    reset_logging()
    yield
    reset_logging()
    root.handlers, root.level = saved[0], saved[1]


def test_handler_runs_one_cycle_and_summarises(monkeypatch, tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(CONFIG), encoding="utf-8")
    monkeypatch.setenv("TELEGRAWS_CONFIG", str(path))
    window = compute_time_window("UTC", 1, 9, now=datetime(2024, 5, 6, 9, 0, tzinfo=timezone.utc))
    seen = {}

    def fake_run_cycle(cfg):
        seen["cfg"] = cfg
        return CycleOutcome(
            status=STATUS_SENT,
            window=window,
            text="report",
            results=[
                CollectorResult(service="ec2", resource="i-1", metrics={"CPUUtilization": 1.0}),
                CollectorResult(service="alb", resource="web", error="not found"),
            ],
        )

    monkeypatch.setattr(handler, "run_cycle", fake_run_cycle)

    summary = handler.lambda_handler({}, types.SimpleNamespace(aws_request_id="req-1"))

    assert summary == {"status": "sent", "daily": True, "collectors": 2, "failed": ["alb:web"]}
    assert seen["cfg"].json_logs is True
    assert seen["cfg"].config_path == path


def test_bundled_config_used_only_without_env(monkeypatch, tmp_path) -> None:
    bundled = tmp_path / "config.yaml"
    bundled.write_text("global: {}\n", encoding="utf-8")
    monkeypatch.setattr(handler, "BUNDLED_CONFIG", bundled)

    monkeypatch.delenv("TELEGRAWS_CONFIG", raising=False)
    assert handler._config_path() == bundled

    monkeypatch.setenv("TELEGRAWS_CONFIG", "/etc/telegraws.yaml")
    assert handler._config_path() is None


def _fake_cycle(cfg):
    return CycleOutcome(status=STATUS_SENT, text="report")


@pytest.mark.parametrize(
    "file_level, env_level, expected",
    [
        ("DEBUG", None, logging.DEBUG),
        ("DEBUG", "WARNING", logging.WARNING),
        (None, None, logging.INFO),
    ],
)
def test_handler_log_level_follows_config_precedence(monkeypatch, tmp_path, file_level, env_level, expected) -> None:
    data = json.loads(json.dumps(CONFIG))
    if file_level:
        data["global"]["runtime"] = {"logLevel": file_level}
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    monkeypatch.setenv("TELEGRAWS_CONFIG", str(path))
    if env_level:
        monkeypatch.setenv("TELEGRAWS_LOG_LEVEL", env_level)
    else:
        monkeypatch.delenv("TELEGRAWS_LOG_LEVEL", raising=False)
    monkeypatch.setattr(handler, "run_cycle", _fake_cycle)

    handler.lambda_handler({}, None)

    assert logging.getLogger().level == expected


def test_handler_config_failure_still_logs_and_raises(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("TELEGRAWS_CONFIG", str(tmp_path / "missing.json"))
    monkeypatch.delenv("TELEGRAWS_LOG_LEVEL", raising=False)

    with pytest.raises(ConfigError):
        handler.lambda_handler({}, None)

    assert logging.getLogger().level == logging.INFO
