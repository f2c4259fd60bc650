"""Command registry entries and command-name extraction."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Sequence, Union

if TYPE_CHECKING:
    from flatctl.completion import Completion
    from flatctl.context import AppContext


@dataclass(frozen=True)
class SectionHeader:
    """Section break in the help summary; never matched as a command."""

    title: str


@dataclass(frozen=True)
class Command:
    """A dispatchable command.

    ``run`` receives the context and the arguments left after the command
    name; it reports failures by raising. ``complete`` produces completion
    candidates for the command's own arguments.
    """

    name: str
    summary: str
    run: Callable[["AppContext", list[str]], None]
    complete: Callable[["AppContext", "Completion"], None] | None = None


@dataclass(frozen=True)
class DeprecatedAlias:
    """An old command name that still dispatches to ``target``."""

    name: str
    target: str


RegistryEntry = Union[SectionHeader, Command, DeprecatedAlias]
Registry = tuple[RegistryEntry, ...]


@dataclass(frozen=True)
class CommandMatch:
    """Result of scanning arguments for a command name.

    ``name`` is the first non-flag token (None if there is none), ``entry``
    the registry entry it names (None if unknown), ``residual`` every other
    token in its original order.
    """

    name: str | None
    entry: Command | DeprecatedAlias | None
    residual: list[str]


def build_registry(*entries: RegistryEntry) -> Registry:
    """Freeze entries into a registry.

    Raises:
        ValueError: On a duplicate name or an alias to an unknown command
    """
    names: set[str] = set()
    for entry in entries:
        if isinstance(entry, SectionHeader):
            continue
        if entry.name in names:
            raise ValueError(f"Command '{entry.name}' registered twice")
        names.add(entry.name)

    command_names = {entry.name for entry in entries if isinstance(entry, Command)}
    for entry in entries:
        if isinstance(entry, DeprecatedAlias) and entry.target not in command_names:
            raise ValueError(f"Alias '{entry.name}' points to unknown command '{entry.target}'")
    return tuple(entries)


def lookup(registry: Registry, name: str) -> Command | DeprecatedAlias | None:
    for entry in registry:
        if isinstance(entry, (Command, DeprecatedAlias)) and entry.name == name:
            return entry
    return None


def resolve(registry: Registry, entry: Command | DeprecatedAlias) -> Command:
    """Follow an alias to the command it stands for."""
    if isinstance(entry, Command):
        return entry
    target = lookup(registry, entry.target)
    if not isinstance(target, Command):
        raise ValueError(f"Alias '{entry.name}' does not resolve to a command")
    return target


def command_names(registry: Registry) -> list[str]:
    """Names of live commands in registration order, aliases excluded."""
    return [entry.name for entry in registry if isinstance(entry, Command)]


def extract_command(args: Sequence[str], registry: Registry) -> CommandMatch:
    """Split ``args`` into the command name and the remaining tokens."""
    residual: list[str] = []
    name: str | None = None
    for arg in args:
        if name is None and not arg.startswith("-"):
            name = arg
            continue
        residual.append(arg)

    entry = lookup(registry, name) if name is not None else None
    return CommandMatch(name=name, entry=entry, residual=residual)
