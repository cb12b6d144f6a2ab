"""
External command runner.

Every git/gh invocation that forkflow performs goes through a CommandRunner,
so that debug mode can echo it, dry-run mode can skip it, and the full list
can be saved as an audit trail.
"""

import json
import shlex
import shutil
import subprocess
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Union

from rich.console import Console
from rich.markup import escape

from forkflow.errors import CommandFailedError

# Global console for rich output
console = Console()

HISTORY_FILE = ".ffw_history.json"


@dataclass
class CommandEntry:
    """Record of an external command."""
    command: str
    description: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
    executed: bool = False
    returncode: Optional[int] = None
    result: Optional[str] = None


class CommandRunner:
    """
    Runs external commands and keeps a log of them.

    Two entry points cover everything the workflow needs:

    * ``run`` executes a command and, with ``check=True``, raises
      CommandFailedError on a non-zero exit.
    * ``capture`` executes a read-only query and hands back output and
      status for the caller to branch on. Queries still execute in dry-run
      mode since they change nothing.
    """

    def __init__(self, debug: bool = False, dry_run: bool = False,
                 cwd: Optional[Union[str, Path]] = None):
        self.debug = debug
        self.dry_run = dry_run
        self.cwd = str(cwd) if cwd else None
        self.commands: List[CommandEntry] = []

    @staticmethod
    def format(args: Sequence[str]) -> str:
        """Render an argument list the way it would be typed in a shell."""
        return shlex.join(list(args))

    def log(self, args: Sequence[str], description: Optional[str] = None,
            announce_dry_run: bool = True) -> CommandEntry:
        """
        Record a command with an optional description.

        Args:
            args: The command as an argument list
            description: Optional description of what the command does
            announce_dry_run: Print the dry-run notice for this command
        """
        entry = CommandEntry(command=self.format(args), description=description)
        self.commands.append(entry)

        if self.debug:
            console.print(f"[cyan]\\[CMD][/cyan] {escape(entry.command)}")
            if description:
                console.print(f"      [dim]{escape(description)}[/dim]")

        if self.dry_run and announce_dry_run:
            console.print(f"[yellow]\\[DRY-RUN][/yellow] Would execute: {escape(entry.command)}")

        return entry

    def run(self, args: Sequence[str], description: Optional[str] = None,
            check: bool = True, capture_output: bool = True) -> subprocess.CompletedProcess:
        """
        Log and execute a command.

        Args:
            args: Command as an argument list (never passed through a shell)
            description: Optional description
            check: Raise CommandFailedError on non-zero exit
            capture_output: Capture stdout/stderr; pass False for commands
                that need the terminal (editors, ``git add -p``, ``gh --web``)

        Returns:
            CompletedProcess result
        """
        entry = self.log(args, description)

        if self.dry_run:
            return subprocess.CompletedProcess(args=list(args), returncode=0, stdout="", stderr="")

        return self._execute(entry, args, check=check, capture_output=capture_output)

    def capture(self, args: Sequence[str],
                description: Optional[str] = None) -> subprocess.CompletedProcess:
        """Execute a read-only query and return its output and status without raising."""
        entry = self.log(args, description, announce_dry_run=False)
        return self._execute(entry, args, check=False, capture_output=True)

    def succeeds(self, args: Sequence[str], description: Optional[str] = None) -> bool:
        """Execute a read-only query and report whether it exited 0."""
        return self.capture(args, description).returncode == 0

    @staticmethod
    def which(tool: str) -> bool:
        """
        Check whether a tool is available on PATH.

        Bash equivalent:
            command -v {tool}
        """
        return shutil.which(tool) is not None

    def _execute(self, entry: CommandEntry, args: Sequence[str], check: bool,
                 capture_output: bool) -> subprocess.CompletedProcess:
        entry.executed = True
        try:
            result = subprocess.run(
                list(args),
                cwd=self.cwd,
                capture_output=capture_output,
                text=True,
            )
        except FileNotFoundError:
            result = subprocess.CompletedProcess(
                args=list(args), returncode=127, stdout="",
                stderr=f"Command '{args[0]}' not found, but it is required. Please install it.",
            )

        entry.returncode = result.returncode
        entry.result = result.stdout if capture_output else "executed"

        if check and result.returncode != 0:
            raise CommandFailedError(entry.command, result.returncode, result.stderr)

        return result

    def save_history(self, filepath: str = HISTORY_FILE) -> None:
        """Save command history for audit/learning."""
        history = []
        for entry in self.commands:
            history.append({
                "command": entry.command,
                "description": entry.description,
                "timestamp": entry.timestamp.isoformat(),
                "executed": entry.executed,
                "returncode": entry.returncode,
                "result": entry.result
            })

        with open(filepath, "w") as f:
            json.dump(history, f, indent=2)

        if self.debug:
            console.print(f"[green]Command history saved to {filepath}[/green]")
