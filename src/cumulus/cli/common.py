"""Helpers shared by the CLI command modules."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from pathlib import Path
from typing import TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from cumulus.broker import Broker, User, create_broker
from cumulus.config.loader import load_config
from cumulus.errors import CumulusError

console = Console()

T = TypeVar("T")


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def load_broker(config_path: str | None = None) -> Broker:
    """Build a broker from the config file (default location if None)."""
    config = load_config(Path(config_path).expanduser() if config_path else None)
    setup_logging(config.logging.level)
    return create_broker(config)


def open_broker(config_path: str | None = None) -> Broker:
    """Like :func:`load_broker`, exiting with an error message on failure."""
    try:
        return load_broker(config_path)
    except CumulusError as e:
        raise fail(e) from e


def current_user(namespace: str | None) -> User:
    import getpass

    return User(name=getpass.getuser(), namespace=namespace or "")


def run(broker: Broker, coro: Awaitable[T]) -> T:
    """Run one broker call to completion, closing the broker afterwards."""

    async def main() -> T:
        try:
            return await coro
        finally:
            await broker.close()

    return asyncio.run(main())


def close(broker: Broker) -> None:
    asyncio.run(broker.close())


def fail(error: Exception) -> typer.Exit:
    console.print(f"[red]Error: {escape(str(error))}[/red]")
    return typer.Exit(code=1)
