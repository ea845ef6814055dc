"""Runtime settings for opswatch.

These are process settings (where documents live, log level, intervals), not
the operator-managed ``config.json`` document, which lives in ``opswatch.storage``.
"""

import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from opswatch.errors import ConfigurationError

SETTINGS_FILE = "settings.yaml"


def default_data_dir() -> Path:
    """Return ``~/.watchdog``, failing when no home directory can be resolved."""
    try:
        return Path.home() / ".watchdog"
    except RuntimeError as e:
        raise ConfigurationError(f"Fail to find home directory: {e}") from e


@dataclass
class Settings:
    """Process settings."""

    data_dir: Path
    log_level: str = "INFO"
    poll_interval: float = 5.0
    health_interval: float = 30.0
    chunk_size: int = 4000
    chunk_delay: float = 0.5
    queue_size: int = 16
    metrics_port: int | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        home = os.environ.get("OPSWATCH_HOME")
        metrics_port = os.environ.get("OPSWATCH_METRICS_PORT")

        return cls(
            data_dir=Path(home).expanduser() if home else default_data_dir(),
            log_level=os.environ.get("OPSWATCH_LOG_LEVEL", "INFO"),
            poll_interval=float(os.environ.get("OPSWATCH_POLL_INTERVAL", "5")),
            health_interval=float(os.environ.get("OPSWATCH_HEALTH_INTERVAL", "30")),
            metrics_port=int(metrics_port) if metrics_port else None,
        )

    @classmethod
    def from_file(cls, path: Path | None = None) -> "Settings":
        """Load settings from a YAML file, with env var overrides.

        Args:
            path: Settings file (default: ``<data_dir>/settings.yaml``)
        """
        settings = cls.from_env()
        path = path or settings.data_dir / SETTINGS_FILE

        if not path.exists():
            return settings

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        if "OPSWATCH_HOME" not in os.environ and "data_dir" in data:
            settings.data_dir = Path(data["data_dir"]).expanduser()
        if "OPSWATCH_LOG_LEVEL" not in os.environ:
            settings.log_level = data.get("log_level", settings.log_level)
        if "OPSWATCH_POLL_INTERVAL" not in os.environ:
            settings.poll_interval = float(data.get("poll_interval", settings.poll_interval))
        if "OPSWATCH_HEALTH_INTERVAL" not in os.environ:
            settings.health_interval = float(
                data.get("health_interval", settings.health_interval)
            )
        if "OPSWATCH_METRICS_PORT" not in os.environ and data.get("metrics_port"):
            settings.metrics_port = int(data["metrics_port"])

        if "delivery" in data:
            delivery = data["delivery"]
            settings.chunk_size = int(delivery.get("chunk_size", settings.chunk_size))
            settings.chunk_delay = float(delivery.get("chunk_delay", settings.chunk_delay))

        return settings
