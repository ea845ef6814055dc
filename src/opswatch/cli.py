"""CLI for opswatch.

Usage:
    opswatch server add main --base-url http://10.0.0.5:8080 --health-path health
    opswatch client add ops-bot --token 123:abc
    opswatch password set hunter2
    opswatch event add api-errors --type logs --target main --keyword ERROR
    opswatch run
"""

import asyncio
from pathlib import Path

import click

from opswatch.admin import CLIENT_KINDS, EVENT_TYPES, ConfigAdmin
from opswatch.app import run as run_app
from opswatch.auth import AuthGate
from opswatch.clients import ClientRegistry
from opswatch.config import Settings
from opswatch.errors import OpswatchError
from opswatch.logging import configure_logging
from opswatch.models import ClientConfig, EventConfig, ServerConfig
from opswatch.scheduler import TaskScheduler
from opswatch.servers import Server, ServerDirectory, ServerManager
from opswatch.storage import Stores


@click.group()
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding config.json, chat_list.json and subscribe.json",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, data_dir: Path | None, verbose: bool) -> None:
    """Chat-driven server health and log console."""
    ctx.ensure_object(dict)
    try:
        settings = Settings.from_file()
    except OpswatchError as e:
        raise click.ClickException(str(e)) from e
    if data_dir is not None:
        settings.data_dir = data_dir
    if verbose:
        settings.log_level = "DEBUG"

    configure_logging("opswatch", settings.log_level)
    ctx.obj["settings"] = settings
    ctx.obj["stores"] = Stores(settings.data_dir)


def _run(coro):
    """Run a coroutine, turning operator-facing errors into CLI errors."""
    try:
        return asyncio.run(coro)
    except OpswatchError as e:
        raise click.ClickException(str(e)) from e


def _admin(ctx: click.Context) -> ConfigAdmin:
    return ConfigAdmin(ctx.obj["stores"])


# --- Server Commands ---


@main.group()
def server() -> None:
    """Manage monitored servers."""
    pass


@server.command("add")
@click.argument("name")
@click.option("--base-url", help="Base URL, e.g. http://10.0.0.5:8080")
@click.option("--container", "docker_container_name", help="Docker container name")
@click.option("--health-path", "health_check_path", help="HTTP health check path")
@click.option("--kill-path", help="HTTP path that makes the server shut down")
@click.option("--log-command", help="Command printing the server's log, e.g. 'docker logs api'")
@click.pass_context
def server_add(
    ctx: click.Context,
    name: str,
    base_url: str | None,
    docker_container_name: str | None,
    health_check_path: str | None,
    kill_path: str | None,
    log_command: str | None,
) -> None:
    """Add a server."""
    config = ServerConfig(
        name=name,
        base_url=base_url,
        docker_container_name=docker_container_name,
        health_check_path=health_check_path,
        kill_path=kill_path,
        log_command=log_command,
    )
    _run(_admin(ctx).add_server(config))
    click.echo(f"Server '{name}' added")


@server.command("list")
@click.pass_context
def server_list(ctx: click.Context) -> None:
    """List configured servers."""
    servers = _run(_admin(ctx).list_servers())

    click.echo("--- Server List ---")
    if not servers:
        click.echo("Empty Server")
        return

    for config in servers:
        srv = Server.from_config(config)
        command = " ".join(srv.log_command) if srv.log_command else "None"
        click.echo("=========")
        click.echo(f"Name: {srv.name}")
        click.echo(f"Base URL: {srv.base_url or 'None'}")
        click.echo(f"Container: {srv.docker_container_name or 'None'}")
        click.echo(f"Health Check URL: {srv.health_check_url() or 'None'}")
        click.echo(f"Kill URL: {srv.kill_url() or 'None'}")
        click.echo(f"Log command: {command}")
        click.echo("")


@server.command("remove")
@click.argument("name")
@click.pass_context
def server_remove(ctx: click.Context, name: str) -> None:
    """Remove a server."""
    if _run(_admin(ctx).remove_server(name)):
        click.echo(f"Server '{name}' removed")
    else:
        click.echo(f"Server '{name}' not found")


async def _with_manager(stores: Stores, action):
    directory = ServerDirectory(stores.config)
    await directory.load()
    manager = ServerManager(directory)
    try:
        return await action(manager)
    finally:
        await manager.aclose()


@server.command("health")
@click.argument("name", required=False)
@click.pass_context
def server_health(ctx: click.Context, name: str | None) -> None:
    """Run a health check now (all servers when NAME is omitted)."""

    async def check(manager: ServerManager):
        if name:
            return [(name, await manager.healthcheck(name))]
        return await manager.healthcheck_all()

    for server_name, health in _run(_with_manager(ctx.obj["stores"], check)):
        click.echo(f"{server_name}: {health}")


@server.command("kill")
@click.argument("name")
@click.option("--yes", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def server_kill(ctx: click.Context, name: str, yes: bool) -> None:
    """Send the kill request to a server."""
    if not yes:
        click.confirm(f"Send kill request to '{name}'?", abort=True)

    if _run(_with_manager(ctx.obj["stores"], lambda manager: manager.kill(name))):
        click.echo("Kill signal sent")
    else:
        click.echo(f"Fail to kill '{name}' (unknown server, no kill path or request failed)")
        raise SystemExit(1)


# --- Client Commands ---


@main.group()
def client() -> None:
    """Manage messaging clients."""
    pass


@client.command("add")
@click.argument("name")
@click.option("--kind", type=click.Choice(CLIENT_KINDS), default="telegram", show_default=True)
@click.option("--token", required=True, help="Bot token")
@click.pass_context
def client_add(ctx: click.Context, name: str, kind: str, token: str) -> None:
    """Add a messaging client."""
    _run(_admin(ctx).add_client(ClientConfig(name=name, kind=kind, token=token)))
    click.echo(f"Client '{name}' added")


@client.command("list")
@click.option("--show-token", is_flag=True, help="Print tokens in full")
@click.pass_context
def client_list(ctx: click.Context, show_token: bool) -> None:
    """List configured clients."""
    clients = _run(_admin(ctx).list_clients())

    click.echo("--- Client List ---")
    if not clients:
        click.echo("Empty Client")
        return

    for config in clients:
        token = config.token or "None"
        if config.token and not show_token:
            token = f"{config.token[:6]}..."
        click.echo("=========")
        click.echo(f"Name: {config.name}")
        click.echo(f"Kind: {config.kind}")
        click.echo(f"Token: {token}")
        click.echo("")


@client.command("remove")
@click.argument("name")
@click.pass_context
def client_remove(ctx: click.Context, name: str) -> None:
    """Remove a messaging client."""
    if _run(_admin(ctx).remove_client(name)):
        click.echo(f"Client '{name}' removed")
    else:
        click.echo(f"Client '{name}' not found")


# --- Password Commands ---


@main.group()
def password() -> None:
    """Manage the registration password."""
    pass


@password.command("set")
@click.argument("value")
@click.pass_context
def password_set(ctx: click.Context, value: str) -> None:
    """Require VALUE for /register."""
    stores = ctx.obj["stores"]
    _run(AuthGate(stores.config, stores.chats).set_password(value))
    click.echo("Password set")


@password.command("clear")
@click.pass_context
def password_clear(ctx: click.Context) -> None:
    """Disable the registration password."""
    stores = ctx.obj["stores"]
    _run(AuthGate(stores.config, stores.chats).set_password(None))
    click.echo("Password removed")


# --- Event Commands ---


@main.group()
def event() -> None:
    """Manage watched events."""
    pass


@event.command("add")
@click.argument("name")
@click.option("--type", "event_type", type=click.Choice(EVENT_TYPES), required=True)
@click.option("--target", required=True, help="Target server name")
@click.option("--keyword", required=True, help="Keyword that triggers the event")
@click.pass_context
def event_add(ctx: click.Context, name: str, event_type: str, target: str, keyword: str) -> None:
    """Add an event."""
    config = EventConfig(type=event_type, name=name, target=target, keyword=keyword)
    _run(_admin(ctx).add_event(config))
    click.echo(f"Event '{name}' added")


@event.command("list")
@click.pass_context
def event_list(ctx: click.Context) -> None:
    """List configured events."""
    events = _run(_admin(ctx).list_events())

    click.echo("--- Event List ---")
    if not events:
        click.echo("Empty Event")
        return

    click.echo(f"{'Name':<20} {'Type':<8} {'Target':<20} Keyword")
    click.echo("-" * 60)
    for config in events:
        click.echo(f"{config.name:<20} {config.type:<8} {config.target:<20} {config.keyword}")


@event.command("remove")
@click.argument("name")
@click.pass_context
def event_remove(ctx: click.Context, name: str) -> None:
    """Remove an event and its subscriptions."""
    if _run(_admin(ctx).remove_event(name)):
        click.echo(f"Event '{name}' removed")
    else:
        click.echo(f"Event '{name}' not found")


# --- Runtime Commands ---


@main.command("send")
@click.argument("client_name")
@click.argument("chat_id")
@click.argument("message")
@click.pass_context
def send(ctx: click.Context, client_name: str, chat_id: str, message: str) -> None:
    """Send a message through a configured client."""
    stores = ctx.obj["stores"]

    async def deliver() -> bool:
        registry = ClientRegistry(TaskScheduler(), stores.config, chunk_delay=0.5)
        await registry.load_clients()
        try:
            return await registry.send_message(client_name, chat_id, message)
        finally:
            await registry.aclose()

    if _run(deliver()):
        click.echo("Message sent!")
    else:
        click.echo("Failed to send message")
        raise SystemExit(1)


@main.command("run")
@click.pass_context
def run(ctx: click.Context) -> None:
    """Run the bot, adapters and watchers until interrupted."""
    settings = ctx.obj["settings"]
    click.echo("Starting opswatch...")
    click.echo(f"  Data directory: {settings.data_dir}")
    click.echo(f"  Metrics port: {settings.metrics_port or 'disabled'}")
    click.echo("")
    _run(run_app(settings))


if __name__ == "__main__":
    main()
