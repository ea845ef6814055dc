"""Basic tests for opswatch."""

import logging
from pathlib import Path

import pytest
import structlog

from opswatch import __version__
from opswatch.config import Settings
from opswatch.errors import EventNotFoundError, OpswatchError
from opswatch.logging import configure_logging

ENV_VARS = (
    "OPSWATCH_HOME",
    "OPSWATCH_LOG_LEVEL",
    "OPSWATCH_POLL_INTERVAL",
    "OPSWATCH_HEALTH_INTERVAL",
    "OPSWATCH_METRICS_PORT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_version() -> None:
    """Test that version is defined."""
    assert __version__ == "0.1.0"


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Defaults apply when nothing is configured."""
    monkeypatch.setattr(Path, "home", lambda: tmp_path)

    settings = Settings.from_env()

    assert settings.data_dir == tmp_path / ".watchdog"
    assert settings.log_level == "INFO"
    assert settings.poll_interval == 5.0
    assert settings.health_interval == 30.0
    assert settings.chunk_size == 4000
    assert settings.chunk_delay == 0.5
    assert settings.queue_size == 16
    assert settings.metrics_port is None


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Test loading settings from environment variables."""
    monkeypatch.setenv("OPSWATCH_HOME", str(tmp_path))
    monkeypatch.setenv("OPSWATCH_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("OPSWATCH_POLL_INTERVAL", "2")
    monkeypatch.setenv("OPSWATCH_HEALTH_INTERVAL", "10")
    monkeypatch.setenv("OPSWATCH_METRICS_PORT", "9200")

    settings = Settings.from_env()

    assert settings.data_dir == tmp_path
    assert settings.log_level == "DEBUG"
    assert settings.poll_interval == 2.0
    assert settings.health_interval == 10.0
    assert settings.metrics_port == 9200


def test_settings_from_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """YAML settings fill in what the environment leaves unset."""
    monkeypatch.setenv("OPSWATCH_HOME", str(tmp_path))
    monkeypatch.setenv("OPSWATCH_LOG_LEVEL", "WARNING")
    (tmp_path / "settings.yaml").write_text(
        "log_level: DEBUG\n"
        "health_interval: 12\n"
        "metrics_port: 9300\n"
        "delivery:\n"
        "  chunk_size: 100\n"
        "  chunk_delay: 0\n"
    )

    settings = Settings.from_file()

    assert settings.log_level == "WARNING"  # env wins
    assert settings.health_interval == 12.0
    assert settings.metrics_port == 9300
    assert settings.chunk_size == 100
    assert settings.chunk_delay == 0.0


def test_settings_missing_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("OPSWATCH_HOME", str(tmp_path))

    settings = Settings.from_file()

    assert settings.data_dir == tmp_path
    assert settings.health_interval == 30.0


def test_event_not_found_message() -> None:
    error = EventNotFoundError("api-errors")
    assert isinstance(error, OpswatchError)
    assert str(error) == "Event 'api-errors' does not exist in configuration"
    assert error.event_name == "api-errors"


def test_configure_logging() -> None:
    """Root level follows the setting; HTTP and docker SDK chatter is kept quiet."""
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging("opswatch", "DEBUG")

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("docker").level == logging.WARNING
        assert logging.getLogger("urllib3").level == logging.WARNING
        bound = structlog.contextvars.get_contextvars()
        assert bound["service"] == "opswatch"
        assert bound["version"] == __version__
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
        structlog.reset_defaults()
        structlog.contextvars.clear_contextvars()
