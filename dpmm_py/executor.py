"""
Command execution for dpmm.

Runs package manager commands with inherited stdin/stdout/stderr, or in
dry-run mode prints them without running anything.
"""

import logging
import shlex
import subprocess
from typing import List, Optional

from rich.console import Console

from dpmm_py.errors import ExecutionError

logger = logging.getLogger("dpmm.executor")


def format_command(argv: List[str]) -> str:
    """Return *argv* as a copy-pasteable shell command line."""
    return " ".join(shlex.quote(str(arg)) for arg in argv)


class CommandExecutor:
    """Executes commands synchronously, or renders them in dry-run mode."""

    def __init__(self, dry_run: bool = False, console: Optional[Console] = None):
        self.dry_run = dry_run
        self.console = console or Console()

    def execute(self, argv: List[str], heading: str = "Runs") -> None:
        """
        Run *argv* and wait for it to finish.

        Args:
            argv: Program followed by its arguments, passed without a shell
            heading: Label printed above the command in dry-run mode

        Raises:
            ExecutionError: If the program cannot be started or exits non-zero
        """
        cmd_str = format_command(argv)

        if self.dry_run:
            self.console.print(f"{heading}:", markup=False)
            self.console.print(cmd_str, markup=False, highlight=False)
            return

        logger.debug(f"Running command: {cmd_str}")
        try:
            result = subprocess.run(argv, check=False)
        except OSError as e:
            raise ExecutionError(f"Failed to run {cmd_str}: {e}", argv) from e

        if result.returncode != 0:
            raise ExecutionError(
                f"Command failed with exit code {result.returncode}: {cmd_str}",
                argv,
                result.returncode,
            )

    def show(self, heading: str, body: str) -> None:
        """Print a dry-run notice about a file that would be written."""
        self.console.print(f"{heading}:", markup=False)
        self.console.print(body, markup=False, highlight=False)
