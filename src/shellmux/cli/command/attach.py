"""Attach command implementation"""

import asyncio
import logging

import click
from prompt_toolkit.patch_stdout import StdoutProxy, patch_stdout
from prompt_toolkit.shortcuts import PromptSession
from rich.console import Console

from ...config import Settings
from ...exception import ShellmuxException
from ..repl import MuxCommandHandler
from ..util import build_manager, prepare_instance

logger = logging.getLogger(__name__)

console = Console()


async def _interactive_loop(settings: Settings) -> None:
    output = Console(file=StdoutProxy(raw=True), force_terminal=True)
    manager, connector = build_manager(settings, output)
    handler = MuxCommandHandler(manager, output)
    manager.add_change_listener(handler.on_sessions_changed)

    def prompt_message() -> str:
        session = manager.active
        name = session.display_name if session is not None else "-"
        return f"[{name}]> "

    prompt_session = PromptSession()
    try:
        with patch_stdout(raw=True):
            manager.start()
            output.print("[dim]Type :help for multiplexer commands[/dim]")
            while True:
                try:
                    line = await prompt_session.prompt_async(prompt_message)
                except (EOFError, KeyboardInterrupt, asyncio.CancelledError):
                    break
                if not handler.handle(line):
                    break
                # prompt_toolkit owns SIGWINCH while prompting
                manager.on_viewport_resize()
    finally:
        manager.shutdown()
        await connector.aclose()
        logger.info("Interactive session ended")


@click.command(name="attach", help="Open an interactive multi-session terminal")
@click.argument(
    "path",
    type=click.Path(),
    required=False,
)
def attach(path: str = None):
    """Open an interactive multi-session terminal

    Args:
        path: Instance directory path (default: ~/.shellmux)
    """
    instance_path, settings = prepare_instance(path, console)

    console.print(f"[cyan]Attaching from {instance_path}[/cyan]")
    console.print(f"[cyan]Backend: {settings.server.base_url}[/cyan]")
    console.print("")

    try:
        asyncio.run(_interactive_loop(settings))
    except ShellmuxException as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise click.Abort()
