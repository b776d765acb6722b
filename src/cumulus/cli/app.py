"""Main CLI application using Typer."""

import sys

import typer
from rich.console import Console

from cumulus import __version__

app = typer.Typer(
    name="cumulus",
    help="Cumulus - plugin resolution and application lifecycle broker",
    no_args_is_help=True,
)

console = Console()

CONFIG_HELP = "Path to config file (default: ~/.cumulus/cumulus.yaml)"
NAMESPACE_HELP = "Tenant namespace to act in"


@app.command()
def version():
    """Show cumulus version."""
    console.print(f"cumulus version {__version__}")


# Plugin commands
plugin_app = typer.Typer(help="Manage installed plugins")
app.add_typer(plugin_app, name="plugin")


@plugin_app.command("list")
def plugin_list(
    namespace: str = typer.Option(None, "--namespace", "-n", help=NAMESPACE_HELP),
    category: str = typer.Option(None, "--category", help="framework or service"),
    user_only: bool = typer.Option(False, "--user", help="Only the namespace's own plugins"),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """List plugins visible to a namespace."""
    from cumulus.cli.plugin_cmd import list_plugins

    list_plugins(
        namespace=namespace, category=category, user_only=user_only, config_path=config_path
    )


@plugin_app.command("info")
def plugin_info(
    tag: str = typer.Argument(..., help="Plugin tag, e.g. ns/name:version"),
    namespace: str = typer.Option(None, "--namespace", "-n", help=NAMESPACE_HELP),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Show how a plugin tag resolves."""
    from cumulus.cli.plugin_cmd import info_plugin

    info_plugin(tag, namespace=namespace, config_path=config_path)


@plugin_app.command("install")
def plugin_install(
    source: str = typer.Argument(..., help="Plugin directory or archive"),
    namespace: str = typer.Option(None, "--namespace", "-n", help=NAMESPACE_HELP),
    system: bool = typer.Option(False, "--system", help="Install as a system plugin"),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Install a plugin."""
    from cumulus.cli.plugin_cmd import install_plugin

    install_plugin(source, namespace=namespace, system=system, config_path=config_path)


@plugin_app.command("remove")
def plugin_remove(
    tag: str = typer.Argument(..., help="Plugin tag; omit the version to remove all"),
    namespace: str = typer.Option(None, "--namespace", "-n", help=NAMESPACE_HELP),
    system: bool = typer.Option(False, "--system", help="Remove a system plugin"),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Remove a plugin."""
    from cumulus.cli.plugin_cmd import remove_plugin

    remove_plugin(tag, namespace=namespace, system=system, config_path=config_path)


# Application commands
app_app = typer.Typer(help="Manage applications")
app.add_typer(app_app, name="app")


@app_app.command("create")
def app_create(
    name: str = typer.Argument(..., help="Application name"),
    framework: str = typer.Argument(..., help="Framework plugin tag"),
    services: list[str] = typer.Option(None, "--service", "-s", help="Service plugin tag"),
    no_start: bool = typer.Option(False, "--no-start", help="Create without starting"),
    namespace: str = typer.Option(None, "--namespace", "-n", help=NAMESPACE_HELP),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Create an application from a framework and optional services."""
    from cumulus.cli.app_cmd import create_app

    create_app(
        name,
        framework,
        services=services,
        start=not no_start,
        namespace=namespace,
        config_path=config_path,
    )


@app_app.command("list")
def app_list(
    namespace: str = typer.Option(None, "--namespace", "-n", help=NAMESPACE_HELP),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """List applications."""
    from cumulus.cli.app_cmd import list_apps

    list_apps(namespace=namespace, config_path=config_path)


@app_app.command("info")
def app_info(
    name: str = typer.Argument(..., help="Application name"),
    namespace: str = typer.Option(None, "--namespace", "-n", help=NAMESPACE_HELP),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Show application details."""
    from cumulus.cli.app_cmd import info_app

    info_app(name, namespace=namespace, config_path=config_path)


@app_app.command("start")
def app_start(
    name: str = typer.Argument(..., help="Application name"),
    namespace: str = typer.Option(None, "--namespace", "-n", help=NAMESPACE_HELP),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Start an application."""
    from cumulus.cli.app_cmd import control_app

    control_app("start", name, namespace=namespace, config_path=config_path)


@app_app.command("stop")
def app_stop(
    name: str = typer.Argument(..., help="Application name"),
    namespace: str = typer.Option(None, "--namespace", "-n", help=NAMESPACE_HELP),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Stop an application."""
    from cumulus.cli.app_cmd import control_app

    control_app("stop", name, namespace=namespace, config_path=config_path)


@app_app.command("restart")
def app_restart(
    name: str = typer.Argument(..., help="Application name"),
    namespace: str = typer.Option(None, "--namespace", "-n", help=NAMESPACE_HELP),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Restart an application."""
    from cumulus.cli.app_cmd import control_app

    control_app("restart", name, namespace=namespace, config_path=config_path)


@app_app.command("scale")
def app_scale(
    name: str = typer.Argument(..., help="Application name"),
    scale: str = typer.Argument(..., help="Target count N, or +N / -N"),
    namespace: str = typer.Option(None, "--namespace", "-n", help=NAMESPACE_HELP),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Scale an application's framework containers."""
    from cumulus.cli.app_cmd import scale_app

    scale_app(name, scale, namespace=namespace, config_path=config_path)


@app_app.command("remove")
def app_remove(
    name: str = typer.Argument(..., help="Application name"),
    namespace: str = typer.Option(None, "--namespace", "-n", help=NAMESPACE_HELP),
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Remove an application and its containers."""
    from cumulus.cli.app_cmd import remove_app

    remove_app(name, namespace=namespace, config_path=config_path)


# Proxy commands
proxy_app = typer.Typer(help="Manage the routing proxy")
app.add_typer(proxy_app, name="proxy")


@proxy_app.command("resync")
def proxy_resync(
    config_path: str = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
):
    """Drop all routes and republish every running container."""
    from cumulus.cli.app_cmd import resync_proxy

    resync_proxy(config_path=config_path)


def main():
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
