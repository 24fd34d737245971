"""Exec command implementation"""

import asyncio
import sys
from typing import List

import click
from rich.console import Console

from ...config import Settings
from ...enums import SessionState
from ...exception import ShellmuxException
from ...schema import SessionSummary
from ..util import build_manager, prepare_instance

console = Console()


async def _run_once(settings: Settings, command: str, wait: float, connect_timeout: float) -> bool:
    output = Console(file=sys.stdout, force_terminal=sys.stdout.isatty())
    manager, connector = build_manager(settings, output)
    settled = asyncio.Event()

    def on_change(summaries: List[SessionSummary]) -> None:
        for summary in summaries:
            if summary.is_active and summary.state in (SessionState.OPEN, SessionState.CLOSED):
                settled.set()

    manager.add_change_listener(on_change)
    try:
        manager.start()
        try:
            await asyncio.wait_for(settled.wait(), timeout=connect_timeout)
        except asyncio.TimeoutError:
            console.print(f"[red]Error: no connection within {connect_timeout}s[/red]")
            return False

        if not manager.run_command(command):
            console.print("[red]Error: terminal backend unreachable[/red]")
            return False

        await asyncio.sleep(wait)
        return True
    finally:
        manager.shutdown()
        await connector.aclose()


@click.command(name="exec", help="Run one command in a fresh session and stream its output")
@click.argument("command", type=str)
@click.option("--path", type=click.Path(), default=None, help="Instance directory (default: ~/.shellmux)")
@click.option("--wait", type=float, default=3.0, show_default=True, help="Seconds to stream output")
@click.option("--connect-timeout", type=float, default=10.0, show_default=True)
def exec_command(command: str, path: str, wait: float, connect_timeout: float):
    """Run one command in a fresh session

    Args:
        command: Command line sent to the remote shell
        path: Instance directory path
        wait: How long to stream output before closing the session
        connect_timeout: How long to wait for the first connection
    """
    _, settings = prepare_instance(path, console)
    settings.terminal.welcome_banner = False

    try:
        ok = asyncio.run(_run_once(settings, command, wait, connect_timeout))
    except ShellmuxException as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise click.Abort()
    if not ok:
        raise click.Abort()
