"""CLI utility functions"""

import shutil
from pathlib import Path
from typing import Tuple

import click
from rich.console import Console

from ..clock import AsyncioClock
from ..config import Settings, load_settings
from ..exception import ShellmuxException
from ..logging import setup_logging
from ..terminal import ConsoleSink, SessionManager
from ..transport import WebSocketConnector

INSTANCE_FLAG = ".shellmux_instance"


def get_instance_path(path: str | None = None) -> Path:
    """Get instance path, default to ~/.shellmux

    Args:
        path: Custom path (relative or absolute), None for default

    Returns:
        Resolved absolute path
    """
    if path is None:
        return Path.home() / ".shellmux"
    return Path(path).expanduser().resolve()


def is_initialized(instance_path: Path) -> bool:
    """Check if instance is initialized

    Args:
        instance_path: Instance directory path

    Returns:
        True if .shellmux_instance exists
    """
    return (instance_path / INSTANCE_FLAG).exists()


def prepare_instance(path: str | None, console: Console) -> Tuple[Path, Settings]:
    """Validate the instance, load its settings and start logging

    Aborts the command with a readable message on any failure.
    """
    instance_path = get_instance_path(path)

    if not is_initialized(instance_path):
        console.print(
            f"[red]Error: Not initialized at {instance_path}[/red]"
        )
        console.print(
            f"[yellow]Run: shellmux init {path if path else ''}[/yellow]"
        )
        raise click.Abort()

    try:
        settings = load_settings(instance_path)
    except ShellmuxException as e:
        console.print(f"[red]Error loading config: {e.message}[/red]")
        raise click.Abort()

    setup_logging(instance_path, settings.logging.level, settings.logging.console)
    return instance_path, settings


def build_manager(settings: Settings, console: Console) -> Tuple[SessionManager, WebSocketConnector]:
    """Wire a SessionManager to websocket transports and console sinks

    Must be called with a running event loop.
    """
    connector = WebSocketConnector(heartbeat=settings.server.heartbeat)
    fallback = (settings.terminal.cols, settings.terminal.rows)

    def viewport() -> Tuple[int, int]:
        size = shutil.get_terminal_size(fallback)
        return size.columns, size.lines

    manager = SessionManager.from_settings(
        settings,
        connector=connector,
        clock=AsyncioClock(),
        sink_factory=lambda session_id, name: ConsoleSink(console, name),
        viewport=viewport,
    )
    return manager, connector
