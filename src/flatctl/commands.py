"""Local read-only commands: ``list``, ``remotes`` and ``remote-ls``."""

import logging

from flatctl.columns import (
    ColumnSpec,
    render_column_help,
    resolve_columns,
    split_column_args,
    wants_column_help,
)
from flatctl.completion import Completion
from flatctl.constants import COMMIT_DISPLAY_LENGTH
from flatctl.context import AppContext
from flatctl.errors import usage_error
from flatctl.formatters import TablePrinter
from flatctl.installations import InstallationDir, Remote
from flatctl.logging_utils import DETAIL_LOGGER_NAME
from flatctl.options import (
    GLOBAL_OPTIONS,
    TARGET_OPTIONS,
    DirFlags,
    OptionSpec,
    parse_options,
)
from flatctl.refs import Ref, try_decompose_ref

logger = logging.getLogger(DETAIL_LOGGER_NAME)

ALL_ARCHES = "*"

_COLUMNS_OPTION = OptionSpec("columns", action="append", help="What information to show", metavar="FIELD,…")
_SHOW_COLUMNS_OPTION = OptionSpec("show-columns", help="Show available columns")


def _print_table(ctx: AppContext, printer: TablePrinter) -> None:
    output = printer.render()
    if output:
        ctx.print(output)


def _kind_filter(app: bool, runtime: bool) -> tuple[str, ...]:
    """Ref kinds to show; both when neither flag is given."""
    if not app and not runtime:
        return ("app", "runtime")
    kinds = []
    if app:
        kinds.append("app")
    if runtime:
        kinds.append("runtime")
    return tuple(kinds)


# ============================================================================
# list
# ============================================================================

LIST_FLAGS = DirFlags.STANDARD_DIRS | DirFlags.OPTIONAL_REPO

LIST_OPTIONS: tuple[OptionSpec, ...] = (
    OptionSpec("app", help="List installed applications"),
    OptionSpec("runtime", help="List installed runtimes"),
    OptionSpec("arch", action="store", help="Arch to show", metavar="ARCH"),
    _COLUMNS_OPTION,
    _SHOW_COLUMNS_OPTION,
)

LIST_COLUMNS: tuple[ColumnSpec, ...] = (
    ColumnSpec("ref", "Ref", "Show the ref", default_visible=False),
    ColumnSpec("application", "Application", "Show the application ID"),
    ColumnSpec("branch", "Branch", "Show the branch"),
    ColumnSpec("arch", "Arch", "Show the architecture"),
    ColumnSpec("installation", "Installation", "Show the affected installation"),
    ColumnSpec("active", "Active commit", "Show the active commit", default_visible=False),
)


def _list_cell(column_id: str, ref: Ref, commit: str, installation: InstallationDir) -> str:
    if column_id == "ref":
        return str(ref)
    if column_id == "application":
        return ref.app_id
    if column_id == "branch":
        return ref.branch
    if column_id == "arch":
        return ref.arch
    if column_id == "installation":
        return installation.history_id
    return commit[:COMMIT_DISPLAY_LENGTH]


def run_list(ctx: AppContext, args: list[str]) -> None:
    parsed = parse_options(
        ctx, args, LIST_OPTIONS, LIST_FLAGS, description="List installed apps and/or runtimes"
    )
    with parsed:
        values = parsed.values
        if parsed.args:
            raise usage_error("Too many arguments", ctx.prog)

        requested = split_column_args(values.columns)
        if values.show_columns or wants_column_help(requested):
            ctx.print(render_column_help(LIST_COLUMNS))
            return
        columns = resolve_columns(LIST_COLUMNS, requested)

        kinds = _kind_filter(values.app, values.runtime)
        printer = TablePrinter(fancy=ctx.fancy_output)
        printer.set_titles([column.title for column in columns])

        for installation in parsed.targets:
            for ref_text, commit in installation.list_installed_refs():
                ref = try_decompose_ref(ref_text)
                if ref is None:
                    logger.debug("Skipping invalid deployment %s in %s", ref_text, installation.path)
                    continue
                if ref.kind not in kinds:
                    continue
                if values.arch and ref.arch != values.arch:
                    continue
                printer.add_row([_list_cell(column.id, ref, commit, installation) for column in columns])

        if printer.rows:
            _print_table(ctx, printer)


def complete_list(ctx: AppContext, completion: Completion) -> None:
    with parse_options(ctx, completion.argv, LIST_OPTIONS, LIST_FLAGS):
        completion.complete_options(GLOBAL_OPTIONS)
        completion.complete_options(TARGET_OPTIONS)
        completion.complete_options(LIST_OPTIONS)
        completion.complete_columns(LIST_COLUMNS)


# ============================================================================
# remotes
# ============================================================================

REMOTES_FLAGS = DirFlags.STANDARD_DIRS | DirFlags.OPTIONAL_REPO

REMOTES_OPTIONS: tuple[OptionSpec, ...] = (
    OptionSpec("show-disabled", help="Show disabled remotes"),
    _COLUMNS_OPTION,
    _SHOW_COLUMNS_OPTION,
)

REMOTES_COLUMNS: tuple[ColumnSpec, ...] = (
    ColumnSpec("name", "Name", "Show the name"),
    ColumnSpec("title", "Title", "Show the title", default_visible=False),
    ColumnSpec("url", "URL", "Show the URL", default_visible=False),
    ColumnSpec("installation", "Installation", "Show the installation", default_visible=False),
    ColumnSpec("options", "Options", "Show options"),
)


def _remote_options(remote: Remote, installation: InstallationDir) -> str:
    options = [installation.history_id]
    if remote.disabled:
        options.append("disabled")
    return ",".join(options)


def _remote_cell(column_id: str, remote: Remote, installation: InstallationDir) -> str:
    if column_id == "name":
        return remote.name
    if column_id == "title":
        return remote.title
    if column_id == "url":
        return remote.url
    if column_id == "installation":
        return installation.history_id
    return _remote_options(remote, installation)


def run_remotes(ctx: AppContext, args: list[str]) -> None:
    parsed = parse_options(ctx, args, REMOTES_OPTIONS, REMOTES_FLAGS, description="List remote repositories")
    with parsed:
        values = parsed.values
        if parsed.args:
            raise usage_error("Too many arguments", ctx.prog)

        requested = split_column_args(values.columns)
        if values.show_columns or wants_column_help(requested):
            ctx.print(render_column_help(REMOTES_COLUMNS))
            return
        columns = resolve_columns(REMOTES_COLUMNS, requested)

        printer = TablePrinter(fancy=ctx.fancy_output)
        printer.set_titles([column.title for column in columns])
        for installation in parsed.targets:
            for remote in installation.list_remotes():
                if remote.disabled and not values.show_disabled:
                    continue
                printer.add_row([_remote_cell(column.id, remote, installation) for column in columns])

        if printer.rows:
            _print_table(ctx, printer)


def complete_remotes(ctx: AppContext, completion: Completion) -> None:
    with parse_options(ctx, completion.argv, REMOTES_OPTIONS, REMOTES_FLAGS):
        completion.complete_options(GLOBAL_OPTIONS)
        completion.complete_options(TARGET_OPTIONS)
        completion.complete_options(REMOTES_OPTIONS)
        completion.complete_columns(REMOTES_COLUMNS)


# ============================================================================
# remote-ls
# ============================================================================

REMOTE_LS_FLAGS = DirFlags.ONE_DIR

REMOTE_LS_OPTIONS: tuple[OptionSpec, ...] = (
    OptionSpec("show-details", "d", help="Show arches and branches"),
    OptionSpec("runtime", help="Show only runtimes"),
    OptionSpec("app", help="Show only apps"),
    OptionSpec("updates", dest="only_updates", help="Show only those where updates are available"),
    OptionSpec("arch", action="store", help="Limit to this arch (* for all)", metavar="ARCH"),
)


def list_remote_names(
    installation: InstallationDir,
    remote_name: str,
    *,
    kinds: tuple[str, ...],
    arches: tuple[str, ...] | None,
    show_details: bool = False,
    only_updates: bool = False,
) -> list[tuple[str, str]]:
    """Sorted (name, commit) pairs of a remote's refs.

    The name is the application id, or the full ref with ``show_details``.
    ``arches`` None keeps every arch.

    Raises:
        NotFoundError: If the remote is not configured
    """
    names: dict[str, str] = {}
    for ref_text, checksum in installation.list_remote_refs(remote_name).items():
        ref = try_decompose_ref(ref_text)
        if ref is None:
            logger.debug("Invalid remote ref %s", ref_text)
            continue

        if only_updates:
            deployed = installation.read_active(ref_text)
            if deployed is None or deployed == checksum:
                continue

        if arches is not None and ref.arch not in arches:
            continue
        if ref.kind not in kinds:
            continue

        name = ref_text if show_details else ref.app_id
        names.setdefault(name, checksum)

    return sorted(names.items())


def run_remote_ls(ctx: AppContext, args: list[str]) -> None:
    parsed = parse_options(
        ctx,
        args,
        REMOTE_LS_OPTIONS,
        REMOTE_LS_FLAGS,
        description="Show available runtimes and applications",
        positional="REMOTE",
    )
    with parsed:
        values = parsed.values
        if not parsed.args:
            raise usage_error("REMOTE must be specified", ctx.prog)
        if len(parsed.args) > 1:
            raise usage_error("Too many arguments", ctx.prog)

        if values.arch == ALL_ARCHES:
            arches = None
        elif values.arch:
            arches = (values.arch,)
        else:
            arches = ctx.settings.supported_arches

        names = list_remote_names(
            parsed.targets[0],
            parsed.args[0],
            kinds=_kind_filter(values.app, values.runtime),
            arches=arches,
            show_details=values.show_details,
            only_updates=values.only_updates,
        )

        printer = TablePrinter(fancy=ctx.fancy_output)
        for name, checksum in names:
            printer.add_cell(name)
            if values.show_details:
                printer.add_cell(checksum, max_length=COMMIT_DISPLAY_LENGTH)
            printer.finish_row()
        _print_table(ctx, printer)


def complete_remote_ls(ctx: AppContext, completion: Completion) -> None:
    with parse_options(ctx, completion.argv, REMOTE_LS_OPTIONS, REMOTE_LS_FLAGS) as parsed:
        if parsed.args:
            return
        completion.complete_options(GLOBAL_OPTIONS)
        completion.complete_options(REMOTE_LS_OPTIONS)
        completion.complete_options(TARGET_OPTIONS)
        for remote in parsed.targets[0].list_remotes():
            completion.complete_word(f"{remote.name} ")
