"""Literal constants used by flatctl."""

APP_NAME = "flatctl"

# Reserved pseudo-command for shell completion; never listed in help.
COMPLETE_COMMAND = "complete"

# ============================================================================
# History log
# ============================================================================

# MESSAGE_ID stamped on every transaction entry written to the history log.
TRANSACTION_MESSAGE_ID = "c7b39b1e006b464599465e105b361485"

JOURNAL_FIELD_TIMESTAMP = "_SOURCE_REALTIME_TIMESTAMP"
JOURNAL_FIELD_COMM = "_COMM"
JOURNAL_FIELD_MESSAGE_ID = "MESSAGE_ID"
JOURNAL_FIELD_OPERATION = "OPERATION"
JOURNAL_FIELD_INSTALLATION = "INSTALLATION"
JOURNAL_FIELD_REF = "REF"
JOURNAL_FIELD_REMOTE = "REMOTE"
JOURNAL_FIELD_COMMIT = "COMMIT"
JOURNAL_FIELD_RESULT = "RESULT"
JOURNAL_FIELD_UID = "_UID"
JOURNAL_FIELD_TOOL = "TOOL"
JOURNAL_FIELD_TOOL_VERSION = "TOOL_VERSION"

# ============================================================================
# Display
# ============================================================================

COMMIT_DISPLAY_LENGTH = 12
SUCCESS_GLYPH = "✓"
TIME_OF_DAY_FORMAT = "%X"
COLUMN_SEPARATOR = "  "

# Command descriptions in the help summary start at this column.
SUMMARY_DESCRIPTION_COLUMN = 23

ERROR_PREFIX = "error:"
LOG_PREFIX = "F:"

ANSI_RED = "\033[31m"
ANSI_BOLD_ON = "\033[1m"
ANSI_BOLD_OFF = "\033[22m"
ANSI_COLOR_RESET = "\033[0m"

# ============================================================================
# Installations
# ============================================================================

DEFAULT_SYSTEM_DIR = "/var/lib/flatctl"
DEFAULT_USER_DIR = "~/.local/share/flatctl"
DEFAULT_CONFIG_DIR = "/etc/flatctl"
HISTORY_LOG_NAME = "history.jsonl"
INSTALLATIONS_CONFIG_SUBDIR = "installations.d"
INSTALLATIONS_CONFIG_SUFFIX = ".conf"

DEFAULT_INSTALLATION_ID = "default"
USER_INSTALLATION_ID = "user"
DEFAULT_GL_DRIVERS = ("default", "host")
