"""Per-invocation application context threaded through dispatch."""

import logging
import sys
from dataclasses import dataclass, field
from typing import TextIO

from flatctl.config import Settings
from flatctl.constants import APP_NAME
from flatctl.installations import InstallationProvider


def _default_logger() -> logging.Logger:
    return logging.getLogger(APP_NAME)


@dataclass
class AppContext:
    """Everything a command needs besides its own arguments.

    ``prog`` is the displayed program name; it becomes ``"<prog> <command>"``
    once a command has been dispatched so usage hints name the subcommand.
    """

    settings: Settings
    installations: InstallationProvider
    prog: str = APP_NAME
    stdout: TextIO = field(default_factory=lambda: sys.stdout)
    stderr: TextIO = field(default_factory=lambda: sys.stderr)
    logger: logging.Logger = field(default_factory=_default_logger)
    in_completion: bool = False
    fancy_output: bool = False

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        *,
        prog: str = APP_NAME,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> "AppContext":
        """Build a context from settings (read from the environment if omitted)."""
        settings = settings if settings is not None else Settings.from_env()
        out = stdout if stdout is not None else sys.stdout
        err = stderr if stderr is not None else sys.stderr
        return cls(
            settings=settings,
            installations=InstallationProvider(settings),
            prog=prog,
            stdout=out,
            stderr=err,
            fancy_output=err.isatty(),
        )

    def enter_command(self, command_name: str) -> None:
        """Rename the program to name the dispatched subcommand."""
        self.prog = f"{self.prog} {command_name}"

    def print(self, text: str = "") -> None:
        print(text, file=self.stdout)
