"""CLI commands for application lifecycle."""

from __future__ import annotations

from rich.table import Table

from cumulus.broker import UserBroker, parse_scale
from cumulus.cli.common import close, console, current_user, fail, open_broker, run
from cumulus.errors import CumulusError


def _user_broker(namespace: str | None, config_path: str | None) -> UserBroker:
    return open_broker(config_path).for_user(current_user(namespace))


def create_app(
    name: str,
    framework: str,
    services: list[str] | None = None,
    start: bool = True,
    namespace: str | None = None,
    config_path: str | None = None,
) -> None:
    """Create an application and, by default, boot it."""
    ub = _user_broker(namespace, config_path)

    try:
        handles = run(
            ub.broker, ub.create_application(name, framework, services or [], start=start)
        )
    except CumulusError as e:
        raise fail(e) from e

    state = "started" if start else "created"
    console.print(f"[green]Application {name} {state} with {len(handles)} containers.[/green]")


def list_apps(namespace: str | None = None, config_path: str | None = None) -> None:
    """List the caller's applications."""
    ub = _user_broker(namespace, config_path)
    try:
        records = ub.list_applications()
    finally:
        close(ub.broker)

    if not records:
        console.print("[dim]No applications.[/dim]")
        return

    table = Table(title="Applications")
    table.add_column("Name", style="cyan")
    table.add_column("Framework")
    table.add_column("Services")
    table.add_column("Scaling")
    table.add_column("Created")

    for record in records:
        table.add_row(
            record.name,
            record.framework,
            ", ".join(record.services) or "-",
            str(record.scaling),
            record.created_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)


def info_app(name: str, namespace: str | None = None, config_path: str | None = None) -> None:
    """Show an application's details."""
    ub = _user_broker(namespace, config_path)
    try:
        info = run(ub.broker, ub.get_application_info(name))
    except CumulusError as e:
        raise fail(e) from e

    console.print(f"\n[bold cyan]{info.name}[/bold cyan] ({info.namespace})")
    console.print(f"  URL: {info.url}")
    console.print(f"  SSH: {info.ssh_url}")
    console.print(f"  Created: {info.created_at:%Y-%m-%d %H:%M:%S}")
    if info.framework:
        console.print(f"  Framework: {info.framework.display_name} {info.framework.version}")
    for service in info.services:
        console.print(f"  Service: {service.display_name} {service.version}")
    console.print(f"  Scaling: {info.scaling}")


def control_app(
    action: str, name: str, namespace: str | None = None, config_path: str | None = None
) -> None:
    """Start, stop or restart an application."""
    ub = _user_broker(namespace, config_path)
    operations = {
        "start": ub.start_application,
        "stop": ub.stop_application,
        "restart": ub.restart_application,
    }
    try:
        run(ub.broker, operations[action](name))
    except CumulusError as e:
        raise fail(e) from e

    console.print(f"[green]Application {name}: {action} done.[/green]")


def scale_app(
    name: str, scale: str, namespace: str | None = None, config_path: str | None = None
) -> None:
    """Scale an application to ``N``, or by ``+N`` / ``-N``."""
    ub = _user_broker(namespace, config_path)

    async def rescale() -> list:
        current = await ub.count_containers(name)
        return await ub.scale_application(name, parse_scale(scale, current))

    try:
        handles = run(ub.broker, rescale())
    except CumulusError as e:
        raise fail(e) from e

    count = len(handles)
    console.print(f"[green]Application {name} now has {count} framework containers.[/green]")


def remove_app(name: str, namespace: str | None = None, config_path: str | None = None) -> None:
    """Remove an application and all of its containers."""
    ub = _user_broker(namespace, config_path)
    try:
        run(ub.broker, ub.remove_application(name))
    except CumulusError as e:
        raise fail(e) from e

    console.print(f"[yellow]Application {name} removed.[/yellow]")


def resync_proxy(config_path: str | None = None) -> None:
    """Rebuild all proxy routes from the running containers."""
    broker = open_broker(config_path)
    try:
        count = run(broker, broker.resync_proxy())
    except CumulusError as e:
        raise fail(e) from e

    console.print(f"[green]Republished {count} containers.[/green]")
