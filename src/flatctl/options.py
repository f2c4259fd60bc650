"""Option-context layering and target installation resolution.

Every command parses its arguments in a single pass over the composition
of up to three option tables: target selection (when the command works on
installations), the command's own options, and the global options.
"""

import argparse
import enum
from dataclasses import dataclass
from typing import Iterator, NoReturn, Sequence

from flatctl import __version__
from flatctl.constants import APP_NAME, DEFAULT_INSTALLATION_ID
from flatctl.context import AppContext
from flatctl.errors import usage_error, with_help_hint, UsageError
from flatctl.installations import InstallationDir, InstallationProvider
from flatctl.logging_utils import setup_logging


@dataclass(frozen=True)
class OptionSpec:
    """One command-line flag.

    ``action`` is an argparse action: ``store_true``, ``count``, ``store``
    or ``append``.
    """

    long: str
    short: str | None = None
    action: str = "store_true"
    dest: str | None = None
    help: str = ""
    metavar: str | None = None
    hidden: bool = False

    @property
    def takes_value(self) -> bool:
        return self.action in ("store", "append")

    @property
    def dest_name(self) -> str:
        return self.dest or self.long.replace("-", "_")


GLOBAL_OPTIONS: tuple[OptionSpec, ...] = (
    OptionSpec("verbose", "v", action="count", help="Show debug information, -vv for more detail"),
    OptionSpec("ostree-verbose", help="Show repository debug information"),
    OptionSpec("help", "?", help="Show help options", hidden=True),
)

INFO_OPTIONS: tuple[OptionSpec, ...] = (
    OptionSpec("version", help="Print version information and exit"),
    OptionSpec("default-arch", help="Print default arch and exit"),
    OptionSpec("supported-arches", help="Print supported arches and exit"),
    OptionSpec("gl-drivers", help="Print active gl drivers and exit"),
    OptionSpec("installations", help="Print paths for system installations and exit"),
)

TARGET_OPTIONS: tuple[OptionSpec, ...] = (
    OptionSpec("user", help="Work on the user installation"),
    OptionSpec("system", help="Work on the system-wide installation (default)"),
    OptionSpec(
        "installation",
        action="append",
        dest="installations",
        help="Work on a non-default system-wide installation",
        metavar="NAME",
    ),
)


class DirFlags(enum.Flag):
    """How many installations a command operates on."""

    NO_DIR = enum.auto()
    ONE_DIR = enum.auto()
    STANDARD_DIRS = enum.auto()
    ALL_DIRS = enum.auto()
    # Modifier: open repositories only where the installation exists.
    OPTIONAL_REPO = enum.auto()


_DIR_MODES = (DirFlags.NO_DIR, DirFlags.ONE_DIR, DirFlags.STANDARD_DIRS, DirFlags.ALL_DIRS)


def dir_mode(flags: DirFlags) -> DirFlags:
    """Return the single directory mode in ``flags``.

    Raises:
        ValueError: If zero or several modes are set
    """
    modes = [mode for mode in _DIR_MODES if mode in flags]
    if len(modes) != 1:
        raise ValueError(f"Exactly one installation mode must be set, got {flags!r}")
    return modes[0]


class OptionParser(argparse.ArgumentParser):
    """ArgumentParser that raises UsageError instead of exiting."""

    def error(self, message: str) -> NoReturn:
        raise UsageError(with_help_hint(message, self.prog))


def build_parser(
    prog: str,
    *option_tables: Sequence[OptionSpec],
    description: str | None = None,
    positional: str | None = None,
) -> OptionParser:
    """Compose option tables, in the given order, into one parser.

    Raises:
        ValueError: If two tables register the same long or short name
    """
    parser = OptionParser(
        prog=prog,
        description=description,
        add_help=False,
        allow_abbrev=False,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    seen: set[str] = set()
    for table in option_tables:
        for spec in table:
            names = [f"--{spec.long}"]
            if spec.short:
                names.append(f"-{spec.short}")
            for name in names:
                if name in seen:
                    raise ValueError(f"Option {name} registered twice")
                seen.add(name)

            kwargs: dict = {
                "action": spec.action,
                "dest": spec.dest_name,
                "help": argparse.SUPPRESS if spec.hidden else spec.help,
            }
            if spec.action == "count":
                kwargs["default"] = 0
            if spec.takes_value and spec.metavar:
                kwargs["metavar"] = spec.metavar
            parser.add_argument(*names, **kwargs)

    parser.add_argument(
        "args",
        nargs="*",
        metavar=positional or "ARG",
        help=argparse.SUPPRESS,
    )
    return parser


@dataclass(frozen=True)
class GlobalOptions:
    verbose: int = 0
    ostree_verbose: bool = False

    @classmethod
    def from_namespace(cls, values: argparse.Namespace) -> "GlobalOptions":
        return cls(
            verbose=getattr(values, "verbose", 0) or 0,
            ostree_verbose=bool(getattr(values, "ostree_verbose", False)),
        )


@dataclass(frozen=True)
class TargetSelectors:
    """The target-selection flags as given on the command line."""

    user: bool = False
    system: bool = False
    installations: tuple[str, ...] = ()

    @classmethod
    def from_namespace(cls, values: argparse.Namespace) -> "TargetSelectors":
        return cls(
            user=bool(getattr(values, "user", False)),
            system=bool(getattr(values, "system", False)),
            installations=tuple(getattr(values, "installations", None) or ()),
        )

    @property
    def any(self) -> bool:
        return self.user or self.system or bool(self.installations)


def resolve_targets(
    provider: InstallationProvider,
    selectors: TargetSelectors,
    flags: DirFlags,
    prog: str = APP_NAME,
) -> list[InstallationDir]:
    """Turn selector flags into the ordered installations a command targets.

    Raises:
        UsageError: If a one-installation command gets several selectors
        NotFoundError: If a named installation does not exist
    """
    mode = dir_mode(flags)
    if mode == DirFlags.NO_DIR:
        return []

    if mode == DirFlags.ONE_DIR:
        selected = sum((selectors.user, selectors.system, bool(selectors.installations)))
        if selected > 1 or len(selectors.installations) > 1:
            raise usage_error(
                "Multiple installations specified for a command that works on one installation",
                prog,
            )
        if selectors.system or not (selectors.user or selectors.installations):
            return [provider.get_system_default()]
        if selectors.user:
            return [provider.get_user()]
        return [provider.get_system_by_id(selectors.installations[0])]

    if mode == DirFlags.ALL_DIRS and not selectors.any:
        dirs = [provider.get_system_default(), provider.get_user()]
        dirs.extend(
            installation
            for installation in provider.list_system()
            if installation.id != DEFAULT_INSTALLATION_ID
        )
        return dirs

    dirs = []
    # With nothing set the system installation comes first and acts as default.
    if selectors.system or not (selectors.user or selectors.installations):
        dirs.append(provider.get_system_default())
    if selectors.user or not (selectors.system or selectors.installations):
        dirs.append(provider.get_user())
    for installation_id in selectors.installations:
        if selectors.system and installation_id == DEFAULT_INSTALLATION_ID:
            continue
        dirs.append(provider.get_system_by_id(installation_id))
    return dirs


class TargetSelection:
    """The resolved installations of one command, with their open repositories.

    Use as a context manager; leaving it closes every repository handle.
    """

    def __init__(self, dirs: list[InstallationDir]):
        self.dirs = dirs

    def __iter__(self) -> Iterator[InstallationDir]:
        return iter(self.dirs)

    def __len__(self) -> int:
        return len(self.dirs)

    def __getitem__(self, index: int) -> InstallationDir:
        return self.dirs[index]

    @property
    def history_ids(self) -> set[str]:
        return {installation.history_id for installation in self.dirs}

    def acquire(self, optional: bool) -> None:
        """Open each repository; on failure, close what was already opened."""
        try:
            for installation in self.dirs:
                if optional:
                    installation.maybe_ensure_repo()
                else:
                    installation.ensure_repo()
        except Exception:
            self.close()
            raise

    def close(self) -> None:
        for installation in self.dirs:
            installation.close()

    def __enter__(self) -> "TargetSelection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


@dataclass
class ParsedOptions:
    args: list[str]
    values: argparse.Namespace
    global_options: GlobalOptions
    targets: TargetSelection | None = None

    def close(self) -> None:
        if self.targets is not None:
            self.targets.close()

    def __enter__(self) -> "ParsedOptions":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _print_informational(ctx: AppContext, values: argparse.Namespace) -> bool:
    """Answer an informational flag; returns False when none was given."""
    if getattr(values, "version", False):
        ctx.print(f"{APP_NAME} {__version__}")
    elif getattr(values, "default_arch", False):
        ctx.print(ctx.settings.default_arch)
    elif getattr(values, "supported_arches", False):
        for arch in ctx.settings.supported_arches:
            ctx.print(arch)
    elif getattr(values, "gl_drivers", False):
        for driver in ctx.settings.gl_drivers:
            ctx.print(driver)
    elif getattr(values, "installations", False) is True:
        for path in ctx.installations.system_paths():
            ctx.print(path)
    else:
        return False
    return True


def parse_options(
    ctx: AppContext,
    args: Sequence[str],
    options: Sequence[OptionSpec] = (),
    flags: DirFlags = DirFlags.NO_DIR,
    *,
    description: str | None = None,
    positional: str | None = None,
) -> ParsedOptions:
    """Parse a command's arguments and resolve its target installations.

    ``--help`` and the informational flags print their answer and raise
    ``SystemExit(0)``; that never happens under the completion protocol.

    Raises:
        UsageError: On malformed or conflicting flags
        NotFoundError: If a named installation does not exist
        StorageError: If a target repository cannot be opened
    """
    mode = dir_mode(flags)

    tables: list[Sequence[OptionSpec]] = []
    if mode != DirFlags.NO_DIR:
        tables.append(TARGET_OPTIONS)
    tables.append(options)
    tables.append(GLOBAL_OPTIONS)
    parser = build_parser(ctx.prog, *tables, description=description, positional=positional)

    values = parser.parse_intermixed_args(list(args))
    global_options = GlobalOptions.from_namespace(values)

    if not ctx.in_completion:
        ctx.logger = setup_logging(global_options.verbose, global_options.ostree_verbose, ctx.stderr)

        if values.help:
            ctx.print(parser.format_help().rstrip())
            raise SystemExit(0)

        if _print_informational(ctx, values):
            raise SystemExit(0)

    if global_options.verbose > 0 or global_options.ostree_verbose:
        ctx.fancy_output = False

    parsed = ParsedOptions(args=list(values.args), values=values, global_options=global_options)
    if mode == DirFlags.NO_DIR:
        return parsed

    dirs = resolve_targets(ctx.installations, TargetSelectors.from_namespace(values), flags, ctx.prog)
    selection = TargetSelection(dirs)
    selection.acquire(optional=DirFlags.OPTIONAL_REPO in flags)
    for installation in selection:
        ctx.logger.debug("Using installation %s (%s)", installation.id, installation.path)
    parsed.targets = selection
    return parsed
