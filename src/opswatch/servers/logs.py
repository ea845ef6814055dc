"""Bounded and live log retrieval through a server's log command.

The configured command is tokenised once at load time (``Server.log_command``).
For a bounded read the tail count is injected where the tool expects it:
container log tools (``docker logs``, ``kubectl logs``, ``docker compose logs``
and the like) take ``--tail N`` after the ``logs`` subcommand, everything else
gets ``-n N`` right after the program name. Follow flags are stripped for
bounded reads and added for live streams.

Live lines longer than ``LINE_LIMIT`` are dropped with a warning.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
from asyncio.subprocess import Process

import structlog

from .server import Server

log = structlog.get_logger()

CONTAINER_LOG_TOOLS = {"docker", "podman", "kubectl", "docker-compose", "podman-compose"}
COMPOSE_TOOLS = {"docker", "podman"}
FOLLOW_FLAGS = {"-f", "-F", "--follow"}
READ_TIMEOUT = 30.0
LINE_LIMIT = 1024 * 1024


def _logs_index(command: tuple[str, ...] | list[str]) -> int | None:
    """Position of the ``logs`` subcommand of a container tool, if any."""
    tokens = tuple(command)
    if len(tokens) < 2:
        return None
    tool = os.path.basename(tokens[0])
    if tool in CONTAINER_LOG_TOOLS and tokens[1] == "logs":
        return 1
    if tool in COMPOSE_TOOLS and tokens[1:3] == ("compose", "logs"):
        return 2
    return None


def _is_container_logs(command: tuple[str, ...] | list[str]) -> bool:
    return _logs_index(command) is not None


def _option_index(command: tuple[str, ...] | list[str]) -> int:
    at = _logs_index(command)
    return 1 if at is None else at + 1


def tail_args(command: tuple[str, ...] | list[str], n: int) -> list[str]:
    """Arguments for reading the last n lines without following."""
    args = [token for token in command if token not in FOLLOW_FLAGS]
    count = ["--tail", str(n)] if _is_container_logs(args) else ["-n", str(n)]
    at = _option_index(args)
    return args[:at] + count + args[at:]


def follow_args(command: tuple[str, ...] | list[str]) -> list[str]:
    """Arguments for following the log output."""
    args = list(command)
    if any(token in FOLLOW_FLAGS for token in args):
        return args
    flag = "--follow" if _is_container_logs(args) else "-f"
    at = _option_index(args)
    return args[:at] + [flag] + args[at:]


class LogStream:
    """Live lines from a follow-mode log process.

    The stream owns the subprocess: ``aclose`` kills and reaps it. Always
    consume it inside ``async with`` (or call ``aclose`` in a ``finally``) so
    the process is released even when the consuming task is cancelled.
    stdout and stderr are merged into one ordered sequence of lines. The
    stream ends only when the process exits.
    """

    def __init__(self, process: Process, server_name: str = ""):
        self.process = process
        self.server_name = server_name
        self._closed = False

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> LogStream:
        return self

    async def __anext__(self) -> str:
        if self._closed or self.process.stdout is None:
            raise StopAsyncIteration
        stdout = self.process.stdout
        oversized = False
        while True:
            try:
                raw = await stdout.readuntil(b"\n")
            except asyncio.IncompleteReadError as e:
                raw = b"" if oversized else e.partial
            except asyncio.LimitOverrunError as e:
                # Drain what is buffered and keep reading until the newline.
                await stdout.readexactly(e.consumed)
                oversized = True
                continue
            if oversized:
                log.warning(
                    "Oversized log line dropped", server=self.server_name, limit=LINE_LIMIT
                )
                oversized = False
                if raw:
                    continue
            if not raw:
                raise StopAsyncIteration
            return raw.decode("utf-8", errors="replace").rstrip("\r\n")

    async def aclose(self) -> None:
        """Terminate the log process. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self.process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                self.process.kill()
        await self.process.wait()
        log.debug("Log stream closed", server=self.server_name, pid=self.process.pid)

    async def __aenter__(self) -> LogStream:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def __del__(self) -> None:
        # Last resort for streams dropped without aclose()
        if not self._closed and self.process.returncode is None:
            with contextlib.suppress(ProcessLookupError, RuntimeError):
                self.process.kill()


class LogReader:
    """Runs a server's log command."""

    def __init__(self, timeout: float = READ_TIMEOUT):
        self.timeout = timeout

    async def read(self, server: Server, n: int) -> str | None:
        """Return the last n lines (stdout and stderr combined), or None on failure."""
        if not server.log_command:
            return None

        args = tail_args(server.log_command, n)
        log.debug("Running log command", server=server.name, args=args)
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            log.error("Fail to start log command", server=server.name, error=str(e))
            return None

        try:
            output, _ = await asyncio.wait_for(process.communicate(), self.timeout)
        except asyncio.TimeoutError:
            log.error("Log command timed out", server=server.name, timeout=self.timeout)
            return None
        finally:
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()

        text = output.decode("utf-8", errors="replace")
        if process.returncode != 0:
            log.error(
                "Log command failed",
                server=server.name,
                returncode=process.returncode,
                output=text[-500:],
            )
            return None
        return text

    async def read_follow(self, server: Server) -> LogStream | None:
        """Start the log command in follow mode. None if unavailable or it fails to spawn."""
        if not server.log_command:
            return None

        args = follow_args(server.log_command)
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                limit=LINE_LIMIT,
            )
        except OSError as e:
            log.error("Fail to start log stream", server=server.name, error=str(e))
            return None

        log.info("Log stream started", server=server.name, pid=process.pid)
        return LogStream(process, server.name)
