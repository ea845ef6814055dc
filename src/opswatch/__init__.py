"""Chat-driven operations console and alerting engine for small server fleets."""

__version__ = "0.1.0"
