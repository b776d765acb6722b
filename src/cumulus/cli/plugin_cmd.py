"""CLI commands for plugin management."""

from __future__ import annotations

from rich.table import Table

from cumulus.cli.common import close, console, current_user, fail, open_broker
from cumulus.errors import CumulusError
from cumulus.hub.manifest import Category


def list_plugins(
    namespace: str | None = None,
    category: str | None = None,
    user_only: bool = False,
    config_path: str | None = None,
) -> None:
    """List the plugins visible to a namespace."""
    broker = open_broker(config_path)
    try:
        ub = broker.for_user(current_user(namespace))
        cat = Category(category) if category else None
        plugins = ub.get_user_plugins(cat) if user_only else ub.get_installed_plugins(cat)
    except (CumulusError, ValueError) as e:
        raise fail(e) from e
    finally:
        close(broker)

    if not plugins:
        console.print("[dim]No plugins installed.[/dim]")
        return

    table = Table(title="Installed Plugins")
    table.add_column("Name", style="cyan")
    table.add_column("Display Name")
    table.add_column("Version")
    table.add_column("Category")
    table.add_column("Scope")
    table.add_column("Shared")

    for plugin in plugins:
        table.add_row(
            plugin.name,
            plugin.display_name,
            plugin.version,
            plugin.category.value,
            plugin.namespace or "system",
            "yes" if plugin.shared else "-",
        )

    console.print(table)


def info_plugin(tag: str, namespace: str | None = None, config_path: str | None = None) -> None:
    """Show how a plugin reference resolves."""
    broker = open_broker(config_path)
    try:
        plugin = broker.for_user(current_user(namespace)).get_plugin_info(tag)
    except CumulusError as e:
        raise fail(e) from e
    finally:
        close(broker)

    console.print(f"\n[bold cyan]{plugin.display_name}[/bold cyan] ({plugin.name}) v{plugin.version}")
    if plugin.description:
        console.print(f"  {plugin.description}")
    if plugin.vendor:
        console.print(f"  Vendor: {plugin.vendor}")
    console.print(f"  Category: {plugin.category.value}")
    console.print(f"  Scope: {plugin.namespace or 'system'}")
    console.print(f"  Shared: {plugin.shared}")
    for endpoint in plugin.endpoints:
        console.print(f"  Endpoint: {endpoint.protocol} :{endpoint.port} {endpoint.path}")


def install_plugin(
    source: str,
    namespace: str | None = None,
    system: bool = False,
    config_path: str | None = None,
) -> None:
    """Install a plugin from a directory or archive."""
    broker = open_broker(config_path)
    try:
        if system:
            plugin = broker.hub.install_plugin("", source)
        else:
            plugin = broker.for_user(current_user(namespace)).install_plugin(source)
    except CumulusError as e:
        raise fail(e) from e
    finally:
        close(broker)

    scope = plugin.namespace or "system"
    console.print(f"[green]Installed {plugin.name}:{plugin.version} ({scope}).[/green]")


def remove_plugin(
    tag: str,
    namespace: str | None = None,
    system: bool = False,
    config_path: str | None = None,
) -> None:
    """Remove an installed plugin."""
    broker = open_broker(config_path)
    try:
        if system:
            broker.hub.remove_plugin(tag)
        else:
            broker.for_user(current_user(namespace)).remove_plugin(tag)
    except CumulusError as e:
        raise fail(e) from e
    finally:
        close(broker)

    console.print(f"[yellow]Removed {tag}.[/yellow]")
