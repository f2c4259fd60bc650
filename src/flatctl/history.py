"""The ``history`` command: query past transactions from the history log."""

import logging
import pwd
from pathlib import Path
from typing import Callable, Iterator

from flatctl.columns import (
    ColumnSpec,
    render_column_help,
    required_fields,
    resolve_columns,
    split_column_args,
    wants_column_help,
)
from flatctl.completion import Completion
from flatctl.constants import (
    APP_NAME,
    COMMIT_DISPLAY_LENGTH,
    JOURNAL_FIELD_COMM,
    JOURNAL_FIELD_COMMIT,
    JOURNAL_FIELD_INSTALLATION,
    JOURNAL_FIELD_MESSAGE_ID,
    JOURNAL_FIELD_OPERATION,
    JOURNAL_FIELD_REF,
    JOURNAL_FIELD_REMOTE,
    JOURNAL_FIELD_RESULT,
    JOURNAL_FIELD_TIMESTAMP,
    JOURNAL_FIELD_TOOL,
    JOURNAL_FIELD_TOOL_VERSION,
    JOURNAL_FIELD_UID,
    SUCCESS_GLYPH,
    TRANSACTION_MESSAGE_ID,
)
from flatctl.context import AppContext
from flatctl.errors import usage_error
from flatctl.formatters import TablePrinter
from flatctl.journal import JournalEntry, open_journal
from flatctl.logging_utils import DETAIL_LOGGER_NAME
from flatctl.options import (
    GLOBAL_OPTIONS,
    TARGET_OPTIONS,
    DirFlags,
    OptionSpec,
    parse_options,
)
from flatctl.refs import try_decompose_ref
from flatctl.time_utils import TimeRange, datetime_to_usec, format_time_of_day, parse_time

logger = logging.getLogger(DETAIL_LOGGER_NAME)

HISTORY_FLAGS = DirFlags.ALL_DIRS | DirFlags.OPTIONAL_REPO

HISTORY_OPTIONS: tuple[OptionSpec, ...] = (
    OptionSpec("since", action="store", help="Only show changes after TIME", metavar="TIME"),
    OptionSpec("until", action="store", help="Only show changes before TIME", metavar="TIME"),
    OptionSpec(
        "columns",
        action="append",
        help="What information to show",
        metavar="FIELD,…",
    ),
    OptionSpec("show-columns", help="Show available columns"),
)

HISTORY_COLUMNS: tuple[ColumnSpec, ...] = (
    ColumnSpec("time", "Time", "Show when the change happened", fields=(JOURNAL_FIELD_TIMESTAMP,)),
    ColumnSpec("change", "Change", "Show the kind of change", fields=(JOURNAL_FIELD_OPERATION,)),
    ColumnSpec(
        "installation",
        "Installation",
        "Show the affected installation",
        fields=(JOURNAL_FIELD_INSTALLATION,),
    ),
    ColumnSpec(
        "ref",
        "Ref",
        "Show the ref",
        default_visible=False,
        all_in_all_mode=False,
        fields=(JOURNAL_FIELD_REF,),
    ),
    ColumnSpec("application", "Application", "Show the application/runtime ID", fields=(JOURNAL_FIELD_REF,)),
    ColumnSpec("arch", "Arch", "Show the architecture", default_visible=False, fields=(JOURNAL_FIELD_REF,)),
    ColumnSpec("branch", "Branch", "Show the branch", fields=(JOURNAL_FIELD_REF,)),
    ColumnSpec("remote", "Remote", "Show the remote", fields=(JOURNAL_FIELD_REMOTE,)),
    ColumnSpec("commit", "Commit", "Show the current commit", fields=(JOURNAL_FIELD_COMMIT,)),
    ColumnSpec("result", "Success", "Show whether change was successful", fields=(JOURNAL_FIELD_RESULT,)),
    ColumnSpec("user", "User", "Show the user doing the change", default_visible=False, fields=(JOURNAL_FIELD_UID,)),
    ColumnSpec("tool", "Tool", "Show the tool that was used", default_visible=False, fields=(JOURNAL_FIELD_TOOL,)),
    ColumnSpec(
        "version",
        "Version",
        "Show the flatctl version",
        default_visible=False,
        fields=(JOURNAL_FIELD_TOOL_VERSION,),
    ),
)


def entry_usec(entry: JournalEntry) -> int | None:
    """Timestamp of ``entry`` in microseconds, or None if absent or unreadable."""
    raw = entry.get(JOURNAL_FIELD_TIMESTAMP)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.debug("Ignoring bad timestamp %r on line %d", raw, entry.line_number)
        return None


def lookup_user_name(uid: str) -> str:
    """Account name for ``uid``; the raw id when it cannot be resolved."""
    try:
        return pwd.getpwuid(int(uid)).pw_name
    except (KeyError, ValueError, OverflowError):
        return uid


def _time_cell(entry: JournalEntry) -> str:
    usec = entry_usec(entry)
    if usec is None:
        return ""
    try:
        return format_time_of_day(usec)
    except ValueError:
        logger.debug("Ignoring out of range timestamp %d on line %d", usec, entry.line_number)
        return ""


def _ref_part(attribute: str) -> Callable[[JournalEntry], str]:
    def cell(entry: JournalEntry) -> str:
        ref = try_decompose_ref(entry.get(JOURNAL_FIELD_REF))
        return getattr(ref, attribute) if ref is not None else ""

    return cell


def _field(name: str) -> Callable[[JournalEntry], str]:
    def cell(entry: JournalEntry) -> str:
        return entry.get(name) or ""

    return cell


def _commit_cell(entry: JournalEntry) -> str:
    return (entry.get(JOURNAL_FIELD_COMMIT) or "")[:COMMIT_DISPLAY_LENGTH]


def _result_cell(entry: JournalEntry) -> str:
    return SUCCESS_GLYPH if entry.get(JOURNAL_FIELD_RESULT) == "0" else ""


def _user_cell(entry: JournalEntry) -> str:
    uid = entry.get(JOURNAL_FIELD_UID)
    return lookup_user_name(uid) if uid else ""


_PROJECTIONS: dict[str, Callable[[JournalEntry], str]] = {
    "time": _time_cell,
    "change": _field(JOURNAL_FIELD_OPERATION),
    "installation": _field(JOURNAL_FIELD_INSTALLATION),
    "ref": _field(JOURNAL_FIELD_REF),
    "application": _ref_part("app_id"),
    "arch": _ref_part("arch"),
    "branch": _ref_part("branch"),
    "remote": _field(JOURNAL_FIELD_REMOTE),
    "commit": _commit_cell,
    "result": _result_cell,
    "user": _user_cell,
    "tool": _field(JOURNAL_FIELD_TOOL),
    "version": _field(JOURNAL_FIELD_TOOL_VERSION),
}


def project_row(entry: JournalEntry, columns: list[ColumnSpec]) -> list[str]:
    return [_PROJECTIONS[column.id](entry) for column in columns]


def _in_time_range(entry: JournalEntry, time_range: TimeRange) -> bool:
    if not time_range.is_bounded:
        return True
    usec = entry_usec(entry)
    if usec is None:
        return False
    return time_range.contains_usec(usec)


def query_history(
    journal_path: str | Path,
    history_ids: set[str] | None,
    time_range: TimeRange,
    columns: list[ColumnSpec],
) -> Iterator[list[str]]:
    """Yield projected rows of matching transactions, newest first.

    ``history_ids`` restricts entries to those installations; None keeps
    every installation.

    Raises:
        StorageError: If the log cannot be opened or an entry is corrupt
    """
    logger.debug("Reading fields: %s", ", ".join(required_fields(columns)) or "none")
    with open_journal(journal_path) as journal:
        journal.add_match(JOURNAL_FIELD_COMM, APP_NAME)
        journal.add_match(JOURNAL_FIELD_MESSAGE_ID, TRANSACTION_MESSAGE_ID)

        for entry in journal.iter_backwards():
            if history_ids is not None and entry.get(JOURNAL_FIELD_INSTALLATION) not in history_ids:
                continue
            if not _in_time_range(entry, time_range):
                continue
            yield project_row(entry, columns)


def print_history(
    ctx: AppContext,
    history_ids: set[str] | None,
    time_range: TimeRange,
    columns: list[ColumnSpec],
) -> None:
    """Render the matching transactions as a table on stdout."""
    printer = TablePrinter(fancy=ctx.fancy_output)
    printer.set_titles([column.title for column in columns])

    count = 0
    for row in query_history(ctx.settings.history_log, history_ids, time_range, columns):
        printer.add_row(row)
        count += 1
    ctx.logger.debug("Found %d history entries in %s", count, ctx.settings.history_log)

    output = printer.render()
    if output:
        ctx.print(output)


def run_history(ctx: AppContext, args: list[str]) -> None:
    parsed = parse_options(ctx, args, HISTORY_OPTIONS, HISTORY_FLAGS, description="Show history")
    with parsed:
        values = parsed.values
        if parsed.args:
            raise usage_error("Too many arguments", ctx.prog)

        requested = split_column_args(values.columns)
        if values.show_columns or wants_column_help(requested):
            ctx.print(render_column_help(HISTORY_COLUMNS))
            return

        # Validated before the log is touched.
        columns = resolve_columns(HISTORY_COLUMNS, requested)

        since = parse_time(values.since) if values.since else None
        until = parse_time(values.until) if values.until else None
        time_range = TimeRange(since=since, until=until)
        if since is not None:
            logger.debug("History since %s (%d)", since.isoformat(), datetime_to_usec(since))
        if until is not None:
            logger.debug("History until %s (%d)", until.isoformat(), datetime_to_usec(until))

        print_history(ctx, parsed.targets.history_ids, time_range, columns)


def complete_history(ctx: AppContext, completion: Completion) -> None:
    with parse_options(ctx, completion.argv, HISTORY_OPTIONS, HISTORY_FLAGS):
        completion.complete_options(GLOBAL_OPTIONS)
        completion.complete_options(TARGET_OPTIONS)
        completion.complete_options(HISTORY_OPTIONS)
        completion.complete_columns(HISTORY_COLUMNS)
