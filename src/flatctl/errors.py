"""Custom exception hierarchy for flatctl."""


class AppError(Exception):
    """Base exception for app-specific failures."""


class UsageError(ValueError, AppError):
    """Bad or conflicting command-line input."""


class TimeParseError(UsageError):
    """A --since/--until expression could not be interpreted."""


class NotFoundError(LookupError, AppError):
    """Unknown command, installation, or remote."""


class ConfigError(ValueError, AppError):
    """Installation configuration validation errors."""


class StorageError(AppError):
    """History log or repository access failures."""


def with_help_hint(message: str, prog: str) -> str:
    """Append the standard pointer to the top-level help."""
    return f"{message}\n\nSee '{prog} --help'"


def usage_error(message: str, prog: str) -> UsageError:
    """Build a UsageError carrying the help hint for ``prog``."""
    return UsageError(with_help_hint(message, prog))
