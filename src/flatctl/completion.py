"""Hidden shell-completion protocol.

Shells call ``flatctl complete <current-word> <previous-word> <line>`` and
read one candidate per line from stdout. Nothing else may be written there.
"""

import logging
import shlex
from typing import Sequence, TextIO

from flatctl.columns import ALL_COLUMNS_KEYWORD, HELP_COLUMNS_KEYWORD, ColumnSpec
from flatctl.context import AppContext
from flatctl.errors import AppError
from flatctl.logging_utils import DETAIL_LOGGER_NAME
from flatctl.options import GLOBAL_OPTIONS, INFO_OPTIONS, TARGET_OPTIONS, OptionSpec
from flatctl.registry import Registry, command_names, extract_command, resolve

logger = logging.getLogger(DETAIL_LOGGER_NAME)

COLUMNS_PREFIX = "--columns="


def split_line(line: str) -> list[str]:
    """Split a shell line into words, tolerating one unterminated quote."""
    try:
        return shlex.split(line)
    except ValueError:
        pass
    for quote in ('"', "'"):
        try:
            return shlex.split(line + quote)
        except ValueError:
            continue
    return line.split()


class Completion:
    """Candidate writer for one completion request.

    ``argv`` holds the words of the line without the program name and
    without the word being completed.
    """

    def __init__(self, cur: str, prev: str, argv: list[str], out: TextIO):
        self.cur = cur
        self.prev = prev
        self.argv = argv
        self.out = out
        self.candidates: list[str] = []

    @classmethod
    def from_line(cls, cur: str, prev: str, line: str, out: TextIO) -> "Completion":
        words = split_line(line)
        argv = words[1:]
        if cur and argv and argv[-1] == cur:
            argv = argv[:-1]
        return cls(cur, prev, argv, out)

    def complete_word(self, word: str) -> None:
        """Offer ``word`` if it extends the current word."""
        if not word.startswith(self.cur):
            return
        self.candidates.append(word)
        print(word, file=self.out)

    def complete_options(self, options: Sequence[OptionSpec]) -> None:
        single_dash = self.cur.startswith("-") and not self.cur.startswith("--")
        for spec in options:
            if spec.hidden:
                continue
            if spec.takes_value:
                self.complete_word(f"--{spec.long}=")
            else:
                self.complete_word(f"--{spec.long} ")
            if spec.short and single_dash:
                self.complete_word(f"-{spec.short} ")

    def complete_columns(self, specs: Sequence[ColumnSpec]) -> None:
        """Offer column ids inside a comma separated ``--columns=`` value."""
        if not self.cur.startswith(COLUMNS_PREFIX):
            return
        value = self.cur[len(COLUMNS_PREFIX):]
        head = value[: value.rfind(",") + 1]
        chosen = set(head.split(","))
        ids = [spec.id for spec in specs] + [ALL_COLUMNS_KEYWORD, HELP_COLUMNS_KEYWORD]
        for column_id in ids:
            if column_id not in chosen:
                self.complete_word(f"{COLUMNS_PREFIX}{head}{column_id}")


def complete(ctx: AppContext, registry: Registry, cur: str, prev: str, line: str) -> int:
    """Answer one completion request; returns the exit status."""
    ctx.in_completion = True
    completion = Completion.from_line(cur, prev, line, ctx.stdout)
    match = extract_command(completion.argv, registry)

    if match.entry is None:
        for name in command_names(registry):
            completion.complete_word(f"{name} ")
        completion.complete_options(GLOBAL_OPTIONS)
        completion.complete_options(INFO_OPTIONS)
        completion.complete_options(TARGET_OPTIONS)
        return 0

    command = resolve(registry, match.entry)
    ctx.enter_command(match.name)
    completion.argv = match.residual
    if command.complete is None:
        completion.complete_options(GLOBAL_OPTIONS)
        return 0

    try:
        command.complete(ctx, completion)
    except AppError as e:
        logger.debug("Completion of %s failed: %s", command.name, e)
        return 1
    logger.debug("Offered %d candidates for %s", len(completion.candidates), command.name)
    return 0
