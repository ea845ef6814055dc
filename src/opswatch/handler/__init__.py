"""Inbound command parsing and handling."""

from .commands import (
    Alarm,
    AlarmAdd,
    AlarmList,
    AlarmRemove,
    Command,
    HealthCheck,
    HealthCheckAll,
    Logs,
    Nothing,
    parse,
)
from .handler import HELP_MESSAGE, REGISTRATION_REQUIRED_MESSAGE, Handler

__all__ = [
    "Alarm",
    "AlarmAdd",
    "AlarmList",
    "AlarmRemove",
    "Command",
    "HELP_MESSAGE",
    "Handler",
    "HealthCheck",
    "HealthCheckAll",
    "Logs",
    "Nothing",
    "REGISTRATION_REQUIRED_MESSAGE",
    "parse",
]
