"""Chat command grammar.

Whitespace-separated tokens, case-sensitive, dispatched on the first token:

    /health <name>          HealthCheck(name)
    /health                 HealthCheckAll
    /logs <name> <n>        Logs(name, n)      (n must be an integer)
    /alarm add <name>       Alarm(AlarmAdd(name))
    /alarm remove <name>    Alarm(AlarmRemove(name))
    /alarm list | /alarm    Alarm(AlarmList)
    anything else           Nothing
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import structlog

log = structlog.get_logger()

INTEGER = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class AlarmAdd:
    event_name: str


@dataclass(frozen=True)
class AlarmRemove:
    event_name: str


@dataclass(frozen=True)
class AlarmList:
    pass


AlarmCommand = AlarmAdd | AlarmRemove | AlarmList


@dataclass(frozen=True)
class Logs:
    server_name: str
    n: int


@dataclass(frozen=True)
class HealthCheck:
    server_name: str


@dataclass(frozen=True)
class HealthCheckAll:
    pass


@dataclass(frozen=True)
class Alarm:
    command: AlarmCommand


@dataclass(frozen=True)
class Nothing:
    pass


Command = Logs | HealthCheck | HealthCheckAll | Alarm | Nothing


def parse(text: str) -> Command:
    """Parse a chat message into a command. Never raises."""
    tokens = text.split()
    command = _parse_tokens(tokens)
    log.debug("Command parsed", text=text, command=command)
    return command


def _parse_tokens(tokens: list[str]) -> Command:
    if not tokens:
        return Nothing()

    head, args = tokens[0], tokens[1:]

    if head == "/health":
        if not args:
            return HealthCheckAll()
        if len(args) == 1:
            return HealthCheck(args[0])
        return Nothing()

    if head == "/logs":
        if len(args) == 2 and INTEGER.fullmatch(args[1]):
            return Logs(args[0], int(args[1]))
        return Nothing()

    if head == "/alarm":
        if not args or args == ["list"]:
            return Alarm(AlarmList())
        if len(args) == 2 and args[0] == "add":
            return Alarm(AlarmAdd(args[1]))
        if len(args) == 2 and args[0] == "remove":
            return Alarm(AlarmRemove(args[1]))
        return Nothing()

    return Nothing()
