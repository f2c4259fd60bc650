"""Runtime settings: installation locations, history log, and host arch."""

import os
import platform
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from flatctl.constants import (
    DEFAULT_CONFIG_DIR,
    DEFAULT_GL_DRIVERS,
    DEFAULT_SYSTEM_DIR,
    DEFAULT_USER_DIR,
    HISTORY_LOG_NAME,
    INSTALLATIONS_CONFIG_SUBDIR,
)
from flatctl.errors import ConfigError

_MACHINE_ALIASES = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
}
_COMPAT_ARCHES = {
    "x86_64": "i386",
    "aarch64": "arm",
}
_I386_RE = re.compile(r"^i[3-6]86$")


def map_path(path: str) -> Path:
    """Resolve a settings path string, expanding ``~``.

    Relative paths are rejected; installation roots must be unambiguous.
    """
    if "\0" in path:
        raise ConfigError("Path cannot contain NUL bytes")
    candidate = Path(path).expanduser()
    if not candidate.is_absolute():
        raise ConfigError(f"Invalid path: {path}. Expected an absolute path or one starting with ~")
    return candidate


def normalize_arch(machine: str) -> str:
    """Map a ``platform.machine()`` value to the arch name used in refs."""
    machine = machine.lower()
    if machine in _MACHINE_ALIASES:
        return _MACHINE_ALIASES[machine]
    if _I386_RE.match(machine):
        return "i386"
    if machine.startswith("armv"):
        return "arm"
    return machine


@dataclass(frozen=True)
class Settings:
    """Per-invocation configuration, built once and passed down explicitly."""

    system_dir: Path
    user_dir: Path
    config_dir: Path
    history_log: Path
    default_arch: str
    gl_drivers: tuple[str, ...] = DEFAULT_GL_DRIVERS

    @property
    def supported_arches(self) -> tuple[str, ...]:
        """Default arch first, followed by the compat arch if there is one."""
        compat = _COMPAT_ARCHES.get(self.default_arch)
        if compat:
            return (self.default_arch, compat)
        return (self.default_arch,)

    @property
    def installations_config_dir(self) -> Path:
        return self.config_dir / INSTALLATIONS_CONFIG_SUBDIR

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from ``FLATCTL_*`` environment variables.

        FLATCTL_SYSTEM_DIR   default system installation root
        FLATCTL_USER_DIR     per-user installation root
        FLATCTL_CONFIG_DIR   directory holding installations.d/
        FLATCTL_HISTORY_LOG  history log path (default: <system dir>/history.jsonl)
        FLATCTL_GL_DRIVERS   colon-separated GL driver list
        FLATCTL_ARCH         override the detected default arch
        """
        env = os.environ if environ is None else environ

        system_dir = map_path(env.get("FLATCTL_SYSTEM_DIR") or DEFAULT_SYSTEM_DIR)
        user_dir = map_path(env.get("FLATCTL_USER_DIR") or DEFAULT_USER_DIR)
        config_dir = map_path(env.get("FLATCTL_CONFIG_DIR") or DEFAULT_CONFIG_DIR)

        history_raw = env.get("FLATCTL_HISTORY_LOG")
        history_log = map_path(history_raw) if history_raw else system_dir / HISTORY_LOG_NAME

        drivers_raw = env.get("FLATCTL_GL_DRIVERS")
        if drivers_raw:
            gl_drivers = tuple(part for part in drivers_raw.split(":") if part)
        else:
            gl_drivers = DEFAULT_GL_DRIVERS

        arch = env.get("FLATCTL_ARCH") or normalize_arch(platform.machine())

        return cls(
            system_dir=system_dir,
            user_dir=user_dir,
            config_dir=config_dir,
            history_log=history_log,
            default_arch=arch,
            gl_drivers=gl_drivers or DEFAULT_GL_DRIVERS,
        )
