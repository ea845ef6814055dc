"""Inbound message handler: registration, auth gate, command execution, reply."""

from __future__ import annotations

import asyncio

import structlog

from opswatch.auth import AuthGate
from opswatch.clients import Message, MessageGateway
from opswatch.errors import OpswatchError
from opswatch.events import EventRouter
from opswatch.metrics import COMMANDS
from opswatch.servers import ServerManager

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

log = structlog.get_logger()

HELP_MESSAGE = """Invalid or unknown command.

Available commands:
- /logs <server_name> <lines>
  Fetches the last <lines> of logs from the specified server.
  Example: /logs main 100

- /health (server_name)
  (server_name): optional. If provided, returns the health status of the specified server.

- /alarm add <event_name>
  Subscribes this chat to an event.

- /alarm remove <event_name>
  Unsubscribes this chat from an event.

- /alarm list
  Lists the events this chat is subscribed to."""

REGISTRATION_REQUIRED_MESSAGE = "Registration required. Usage: /register <password>"
PASSWORD_NOT_REQUIRED_MESSAGE = "Password is not required"
REGISTERED_MESSAGE = "Successfully registered."
INVALID_PASSWORD_MESSAGE = "Invalid password. Usage: /register <password>"
LOGS_NOT_AVAILABLE_MESSAGE = "Logs are not available."


class Handler:
    """Single consumer of the inbound message queue."""

    name = "handler"
    interval = 0.0

    def __init__(
        self,
        gateway: MessageGateway,
        auth: AuthGate,
        server_manager: ServerManager,
        event_router: EventRouter,
        queue: asyncio.Queue[Message] | None = None,
    ):
        self.gateway = gateway
        self.auth = auth
        self.server_manager = server_manager
        self.event_router = event_router
        self.queue = queue

    async def on_tick(self) -> bool:
        if self.queue is None:
            return False
        message = await self.queue.get()
        try:
            await self.handle(message)
        except Exception:
            log.exception("Fail to handle message", client=message.client_name)
        finally:
            self.queue.task_done()
        return True

    async def handle(self, message: Message) -> None:
        tokens = message.text.split()
        if len(tokens) == 2 and tokens[0] == "/register":
            COMMANDS.labels(command="register").inc()
            response = await self.register(message, tokens[1])
            await self.reply(message, response)
            return

        try:
            subscriber_id = await self.identify(message)
        except OpswatchError as e:
            log.error("Fail to identify chat", client=message.client_name, error=str(e))
            await self.reply(message, f"[Err] {e}")
            return

        if subscriber_id is None:
            COMMANDS.labels(command="unauthorized").inc()
            await self.reply(message, REGISTRATION_REQUIRED_MESSAGE)
            return

        command = parse(message.text)
        COMMANDS.labels(command=_metric_label(command)).inc()
        try:
            response = await self.execute(command, subscriber_id)
        except OpswatchError as e:
            response = f"[Err] {e}"
        except Exception as e:
            log.exception("Command failed", command=repr(command))
            response = f"[Err] {e}"

        await self.reply(message, response)

    async def register(self, message: Message, password: str) -> str:
        if not self.auth.password_required():
            return PASSWORD_NOT_REQUIRED_MESSAGE
        if not self.auth.validate_password(password):
            log.warning("Invalid registration password", client=message.client_name)
            return INVALID_PASSWORD_MESSAGE
        try:
            await self.auth.register(message.client_name, message.chat_id)
        except OpswatchError as e:
            return f"Fail to register: {e}"
        return REGISTERED_MESSAGE

    async def identify(self, message: Message) -> str | None:
        """Resolve the subscriber id, or None if the chat must register first.

        Without a password every chat is accepted and registered on first use,
        so alarm subscriptions still have a stable id to hang on.
        """
        subscriber_id = await self.auth.authenticate(message.client_name, message.chat_id)
        if subscriber_id is not None or self.auth.password_required():
            return subscriber_id
        return await self.auth.register(message.client_name, message.chat_id)

    async def execute(self, command: Command, subscriber_id: str) -> str:
        if isinstance(command, Logs):
            logs = await self.server_manager.logs(command.server_name, command.n)
            return LOGS_NOT_AVAILABLE_MESSAGE if logs is None else logs

        if isinstance(command, HealthCheck):
            health = await self.server_manager.healthcheck(command.server_name)
            return format_health(command.server_name, health)

        if isinstance(command, HealthCheckAll):
            results = await self.server_manager.healthcheck_all()
            if not results:
                return "No servers configured."
            return "\n".join(format_health(name, health) for name, health in results)

        if isinstance(command, Alarm):
            return await self.execute_alarm(command, subscriber_id)

        if isinstance(command, Nothing):
            return HELP_MESSAGE

        raise TypeError(f"Unhandled command: {command!r}")

    async def execute_alarm(self, alarm: Alarm, subscriber_id: str) -> str:
        command = alarm.command
        if isinstance(command, AlarmAdd):
            await self.event_router.subscribe(subscriber_id, command.event_name)
            return "Successfully subscribed"

        if isinstance(command, AlarmRemove):
            await self.event_router.unsubscribe(subscriber_id, command.event_name)
            return "Successfully removed"

        if isinstance(command, AlarmList):
            events = await self.event_router.list_subscribed_events(subscriber_id)
            if not events:
                return "--- list ---\nNo subscribed events."
            body = "\n\n".join(
                f"---\nname: {event.name}\ntype: {event.type}\n"
                f"target: {event.target}\nkeyword: {event.keyword}"
                for event in events
            )
            return f"--- list ---\n{body}"

        raise TypeError(f"Unhandled alarm command: {command!r}")

    async def reply(self, message: Message, text: str) -> None:
        log.debug("Replying", client=message.client_name, chat_id=message.chat_id)
        await self.gateway.send_message(message.client_name, message.chat_id, text)


def format_health(server_name: str, health: object) -> str:
    return f"===\nServer: {server_name}\nHealth: {health}"


def _metric_label(command: Command) -> str:
    if isinstance(command, Logs):
        return "logs"
    if isinstance(command, HealthCheck):
        return "health"
    if isinstance(command, HealthCheckAll):
        return "health_all"
    if isinstance(command, Alarm):
        return "alarm"
    return "unknown"
