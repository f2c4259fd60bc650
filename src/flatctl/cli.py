"""CLI entry and startup wiring."""

import sys

from flatctl import completion, dispatcher
from flatctl.config import Settings
from flatctl.constants import COMPLETE_COMMAND
from flatctl.context import AppContext
from flatctl.errors import AppError
from flatctl.formatters import format_error


def main(argv: list[str] | None = None, settings: Settings | None = None) -> int:
    """Run one flatctl invocation and return its exit status.

    ``flatctl complete <current-word> <previous-word> <line>`` is answered by
    the completion protocol; everything else goes through the dispatcher.
    Informational flags and ``--help`` exit through ``SystemExit(0)``.
    """
    args = list(sys.argv[1:] if argv is None else argv)

    try:
        ctx = AppContext.create(settings)
    except AppError as exc:
        print(format_error(str(exc), sys.stderr.isatty()), file=sys.stderr)
        return 1

    if len(args) >= 3 and args[0] == COMPLETE_COMMAND:
        line = args[3] if len(args) > 3 else ""
        return completion.complete(ctx, dispatcher.BUILTIN_REGISTRY, args[1], args[2], line)

    try:
        return dispatcher.run(ctx, args)
    except AppError as exc:
        print(format_error(str(exc), ctx.fancy_output), file=ctx.stderr)
        return 1
