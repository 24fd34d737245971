"""Colon commands of the interactive multiplexer"""

import shlex
from typing import Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..enums import SessionState
from ..schema import SessionSummary
from ..terminal import SessionManager

HELP_TEXT = """[bold]Multiplexer commands[/bold]
  :new [name]        open a new session and switch to it
  :close [n|id]      close a session (default: active)
  :switch <n|id>     switch the active session
  :list              list sessions
  :clear             clear the active session's screen
  :cd <path>         change the active session's directory
  :reconnect         reconnect the active session
  :help              show this help
  :quit              close all sessions and exit
Any other line is run as a command in the active session."""


class MuxCommandHandler:
    """
    Interprets REPL input for a SessionManager.

    Plain lines become commands in the active session; lines starting with
    ':' control the multiplexer itself.
    """

    def __init__(self, manager: SessionManager, console: Console):
        self.manager = manager
        self.console = console
        self._last_states: Dict[str, SessionState] = {}

    def handle(self, line: str) -> bool:
        """
        Handle one line of input.

        Returns:
            False when the user asked to quit
        """
        if not line.startswith(":"):
            self.manager.run_command(line)
            return True

        try:
            parts = shlex.split(line[1:])
        except ValueError as e:
            self.console.print(f"[red]{escape(str(e))}[/red]")
            return True
        if not parts:
            return True

        command, args = parts[0].lower(), parts[1:]
        if command in ("quit", "q", "exit"):
            return False
        if command == "new":
            self.manager.create(" ".join(args) or None)
        elif command == "close":
            self._close(args)
        elif command == "switch":
            self._switch(args)
        elif command in ("list", "ls"):
            self.print_sessions()
        elif command == "clear":
            self.manager.clear()
        elif command == "cd":
            if not args:
                self.console.print("[red]Usage: :cd <path>[/red]")
            else:
                self.manager.change_directory(" ".join(args))
        elif command == "reconnect":
            session = self.manager.active
            if session is not None and not session.reconnect():
                self.console.print(f"[dim]{escape(session.display_name)} is {session.state.value}[/dim]")
        elif command == "help":
            self.console.print(HELP_TEXT)
        else:
            self.console.print(f"[red]Unknown command: :{escape(command)}[/red] (try :help)")
        return True

    def resolve(self, ref: str) -> Optional[str]:
        """Resolve a 1-based list position, full id or unique id prefix"""
        summaries = self.manager.list()
        if ref.isdigit():
            index = int(ref) - 1
            if 0 <= index < len(summaries):
                return summaries[index].id
            return None
        matches = [s.id for s in summaries if s.id == ref or s.id.startswith(ref)]
        if len(matches) == 1:
            return matches[0]
        return None

    def print_sessions(self) -> None:
        table = Table(show_header=True, header_style="bold")
        table.add_column("#", justify="right")
        table.add_column("Name")
        table.add_column("State")
        table.add_column("Id", style="dim")
        for index, summary in enumerate(self.manager.list(), start=1):
            marker = "*" if summary.is_active else ""
            table.add_row(
                f"{marker}{index}",
                escape(summary.display_name),
                summary.state.value,
                summary.id,
            )
        self.console.print(table)

    def on_sessions_changed(self, summaries: List[SessionSummary]) -> None:
        """Change listener: report connection state changes"""
        current = {s.id: s.state for s in summaries}
        for summary in summaries:
            previous = self._last_states.get(summary.id)
            if previous is None or previous == summary.state:
                continue
            if summary.state == SessionState.RECONNECTING:
                detail = f" ({summary.reconnect_attempts})" if summary.reconnect_attempts else ""
                self.console.print(f"[dim]{escape(summary.display_name)}: reconnecting{detail}[/dim]")
            elif summary.state == SessionState.CLOSED:
                self.console.print(
                    f"[red]{escape(summary.display_name)}: connection lost, "
                    f"send input or :reconnect to retry[/red]"
                )
            elif summary.state == SessionState.OPEN and previous != SessionState.CONNECTING:
                self.console.print(f"[green]{escape(summary.display_name)}: reconnected[/green]")
        self._last_states = current

    def _close(self, args: List[str]) -> None:
        if not args:
            target = self.manager.active_id
            if target is not None:
                self.manager.close(target)
            return
        target = self.resolve(args[0])
        if target is None:
            self.console.print(f"[red]No such session: {escape(args[0])}[/red]")
            return
        self.manager.close(target)

    def _switch(self, args: List[str]) -> None:
        if not args:
            self.console.print("[red]Usage: :switch <n|id>[/red]")
            return
        target = self.resolve(args[0])
        if target is None:
            self.console.print(f"[red]No such session: {escape(args[0])}[/red]")
            return
        self.manager.switch_active(target)
