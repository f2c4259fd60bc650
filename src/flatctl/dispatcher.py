"""Command dispatching for the flatctl CLI."""

from flatctl import commands, history
from flatctl.constants import APP_NAME, SUMMARY_DESCRIPTION_COLUMN
from flatctl.context import AppContext
from flatctl.errors import NotFoundError, usage_error, with_help_hint
from flatctl.options import INFO_OPTIONS, DirFlags, parse_options
from flatctl.registry import (
    Command,
    DeprecatedAlias,
    Registry,
    SectionHeader,
    build_registry,
    command_names,
    extract_command,
    resolve,
)

BUILTIN_REGISTRY: Registry = build_registry(
    SectionHeader("Manage installed applications and runtimes"),
    Command("list", "List installed apps and/or runtimes", commands.run_list, commands.complete_list),
    Command("history", "Show history", history.run_history, history.complete_history),
    SectionHeader("Manage remote repositories"),
    Command("remotes", "List all configured remotes", commands.run_remotes, commands.complete_remotes),
    DeprecatedAlias("remote-list", "remotes"),
    Command(
        "remote-ls",
        "List contents of a configured remote",
        commands.run_remote_ls,
        commands.complete_remote_ls,
    ),
)


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance between two strings (insert, delete, substitute)."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (char_a != char_b),
                )
            )
        previous = current
    return previous[-1]


def find_similar_command(word: str, registry: Registry = BUILTIN_REGISTRY) -> str | None:
    """Closest live command name to ``word``; the earliest one wins ties."""
    best: str | None = None
    best_distance = 0
    for name in command_names(registry):
        distance = levenshtein_distance(word, name)
        if best is None or distance < best_distance:
            best = name
            best_distance = distance
    return best


def render_command_summary(registry: Registry = BUILTIN_REGISTRY) -> str:
    """The "Builtin Commands:" block shown in top-level help."""
    lines = ["Builtin Commands:"]
    for entry in registry:
        if isinstance(entry, SectionHeader):
            lines.append(entry.title)
        elif isinstance(entry, Command):
            padding = " " * max(SUMMARY_DESCRIPTION_COLUMN - len(entry.name), 0)
            lines.append(f"  {entry.name}{padding}{entry.summary}")
    return "\n".join(lines)


def run(ctx: AppContext, args: list[str], registry: Registry = BUILTIN_REGISTRY) -> int:
    """Dispatch ``args`` to the matching command and return the exit status.

    Raises:
        NotFoundError: If the command name is unknown
        UsageError: If no command was given or its arguments are invalid
        AppError: Whatever the command itself reports
    """
    match = extract_command(args, registry)

    if match.entry is None:
        if match.name is not None:
            similar = find_similar_command(match.name, registry)
            if similar:
                message = f"'{match.name}' is not a {APP_NAME} command. Did you mean '{similar}'?"
            else:
                message = f"'{match.name}' is not a {APP_NAME} command"
            raise NotFoundError(with_help_hint(message, ctx.prog))

        # Exits early for --help, --version and the other informational flags.
        parse_options(
            ctx,
            match.residual,
            INFO_OPTIONS,
            DirFlags.NO_DIR,
            description=render_command_summary(registry),
            positional="COMMAND",
        )
        raise usage_error("No command specified", ctx.prog)

    command = resolve(registry, match.entry)
    ctx.enter_command(match.name)
    command.run(ctx, match.residual)
    return 0
