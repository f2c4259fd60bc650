"""Installation directories and their repository handles.

Layout of one installation root::

    <root>/repo/config                          repository config (INI)
    <root>/repo/refs/remotes/<remote>/<ref>     cached remote ref -> commit
    <root>/<kind>/<id>/<arch>/<branch>/active   symlink to deployed commit

Extra system installations are declared in
``<config dir>/installations.d/*.conf``::

    [Installation "extra"]
    Path=/opt/flatctl/extra
    DisplayName=Extra installation
"""

import configparser
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from flatctl.config import Settings
from flatctl.constants import (
    DEFAULT_INSTALLATION_ID,
    INSTALLATIONS_CONFIG_SUFFIX,
    USER_INSTALLATION_ID,
)
from flatctl.errors import ConfigError, NotFoundError, StorageError
from flatctl.logging_utils import REPO_LOGGER_NAME
from flatctl.refs import REF_KINDS

logger = logging.getLogger(REPO_LOGGER_NAME)

_REMOTE_SECTION_RE = re.compile(r'^remote "(.+)"$')
_INSTALLATION_SECTION_RE = re.compile(r'^Installation "(.+)"$')
_DEFAULT_REPO_CONFIG = {"repo_version": "1", "mode": "bare-user-only"}


@dataclass(frozen=True)
class Remote:
    name: str
    url: str = ""
    title: str = ""
    disabled: bool = False


def _new_config_parser() -> configparser.ConfigParser:
    return configparser.ConfigParser(interpolation=None)


class Repo:
    """Open handle on an installation's repository."""

    def __init__(self, path: Path, config: configparser.ConfigParser):
        self.path = path
        self.config = config
        self.closed = False

    @classmethod
    def open(cls, path: Path) -> "Repo":
        config = _new_config_parser()
        config_path = path / "config"
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config.read_file(f)
        except (OSError, configparser.Error) as e:
            raise StorageError(f"Failed to open repository {path}: {e}") from e
        logger.debug("Opened repository %s", path)
        return cls(path, config)

    @classmethod
    def create(cls, path: Path) -> "Repo":
        config = _new_config_parser()
        config["core"] = dict(_DEFAULT_REPO_CONFIG)
        try:
            (path / "refs" / "remotes").mkdir(parents=True, exist_ok=True)
            with open(path / "config", "w", encoding="utf-8") as f:
                config.write(f)
        except OSError as e:
            raise StorageError(f"Failed to create repository {path}: {e}") from e
        logger.debug("Created repository %s", path)
        return cls(path, config)

    def remotes(self) -> list[Remote]:
        """Configured remotes in config-file order."""
        result: list[Remote] = []
        for section in self.config.sections():
            match = _REMOTE_SECTION_RE.match(section)
            if not match:
                continue
            values = self.config[section]
            result.append(
                Remote(
                    name=match.group(1),
                    url=values.get("url", ""),
                    title=values.get("xa.title", ""),
                    disabled=values.getboolean("xa.disable", fallback=False),
                )
            )
        return result

    def get_remote(self, name: str) -> Remote:
        for remote in self.remotes():
            if remote.name == name:
                return remote
        raise NotFoundError(f"Remote '{name}' not found")

    def remote_refs(self, remote_name: str) -> dict[str, str]:
        """Cached refs of ``remote_name`` mapped to their commit checksums."""
        self.get_remote(remote_name)
        base = self.path / "refs" / "remotes" / remote_name
        refs: dict[str, str] = {}
        if not base.is_dir():
            return refs
        try:
            for ref_file in sorted(base.rglob("*")):
                if not ref_file.is_file():
                    continue
                ref = ref_file.relative_to(base).as_posix()
                refs[ref] = ref_file.read_text(encoding="utf-8").strip()
        except OSError as e:
            raise StorageError(f"Failed to read refs of remote '{remote_name}': {e}") from e
        return refs

    def close(self) -> None:
        if not self.closed:
            logger.debug("Closed repository %s", self.path)
        self.closed = True


@dataclass
class InstallationDir:
    """One installation root a command can operate on."""

    id: str
    path: Path
    is_user: bool = False
    display_name: str = ""
    repo: Repo | None = field(default=None, repr=False, compare=False)

    @property
    def history_id(self) -> str:
        """Identifier recorded in the INSTALLATION field of history entries."""
        if self.is_user:
            return USER_INSTALLATION_ID
        if self.id != DEFAULT_INSTALLATION_ID:
            return self.id or "unknown"
        return "system"

    @property
    def repo_path(self) -> Path:
        return self.path / "repo"

    def ensure_repo(self) -> Repo:
        """Open the repository, creating it when missing.

        Raises:
            StorageError: If the repository cannot be created or opened
        """
        if self.repo is not None and not self.repo.closed:
            return self.repo
        if (self.repo_path / "config").exists():
            self.repo = Repo.open(self.repo_path)
        else:
            self.repo = Repo.create(self.repo_path)
        return self.repo

    def maybe_ensure_repo(self) -> Repo | None:
        """Open the repository only if the installation root exists."""
        if not self.path.exists():
            logger.debug("Installation %s does not exist at %s", self.id, self.path)
            return None
        return self.ensure_repo()

    def close(self) -> None:
        if self.repo is not None:
            self.repo.close()

    def list_remotes(self) -> list[Remote]:
        if self.repo is None:
            return []
        return self.repo.remotes()

    def list_remote_refs(self, remote_name: str) -> dict[str, str]:
        if self.repo is None:
            raise NotFoundError(f"Remote '{remote_name}' not found")
        return self.repo.remote_refs(remote_name)

    def _deploy_dir(self, ref: str) -> Path:
        return self.path.joinpath(*ref.split("/"))

    def read_active(self, ref: str) -> str | None:
        """Commit of the active deployment of ``ref``, or None if not deployed."""
        active = self._deploy_dir(ref) / "active"
        try:
            return os.readlink(active)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read deployment of {ref}: {e}") from e

    def list_installed_refs(self) -> list[tuple[str, str]]:
        """(ref, active commit) pairs for every deployed ref, sorted by ref."""
        installed: list[tuple[str, str]] = []
        for kind in REF_KINDS:
            kind_dir = self.path / kind
            if not kind_dir.is_dir():
                continue
            try:
                for branch_dir in sorted(kind_dir.glob("*/*/*")):
                    active = branch_dir / "active"
                    if not active.is_symlink():
                        continue
                    ref = branch_dir.relative_to(self.path).as_posix()
                    installed.append((ref, os.readlink(active)))
            except OSError as e:
                raise StorageError(f"Failed to list deployments in {kind_dir}: {e}") from e
        return sorted(installed)


class InstallationProvider:
    """Look up the installations known to this host."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def get_system_default(self) -> InstallationDir:
        return InstallationDir(
            id=DEFAULT_INSTALLATION_ID,
            path=self.settings.system_dir,
            display_name="Default system installation",
        )

    def get_user(self) -> InstallationDir:
        return InstallationDir(
            id=USER_INSTALLATION_ID,
            path=self.settings.user_dir,
            is_user=True,
            display_name="User installation",
        )

    def _configured_installations(self) -> list[InstallationDir]:
        config_dir = self.settings.installations_config_dir
        if not config_dir.is_dir():
            return []

        result: list[InstallationDir] = []
        seen: set[str] = set()
        for conf_path in sorted(config_dir.glob(f"*{INSTALLATIONS_CONFIG_SUFFIX}")):
            parser = _new_config_parser()
            try:
                with open(conf_path, "r", encoding="utf-8") as f:
                    parser.read_file(f)
            except (OSError, configparser.Error) as e:
                raise ConfigError(f"Invalid installation config {conf_path}: {e}") from e

            for section in parser.sections():
                match = _INSTALLATION_SECTION_RE.match(section)
                if not match:
                    continue
                installation_id = match.group(1)
                if installation_id in seen:
                    logger.debug("Ignoring duplicate installation %s in %s", installation_id, conf_path)
                    continue
                values = parser[section]
                raw_path = values.get("path")
                if not raw_path:
                    raise ConfigError(f"No Path for installation {installation_id} in {conf_path}")
                seen.add(installation_id)
                result.append(
                    InstallationDir(
                        id=installation_id,
                        path=Path(raw_path).expanduser(),
                        display_name=values.get("displayname", ""),
                    )
                )
        return result

    def list_system(self) -> list[InstallationDir]:
        """Every system installation, the default one first."""
        dirs = [self.get_system_default()]
        for installation in self._configured_installations():
            if installation.id == DEFAULT_INSTALLATION_ID:
                continue
            dirs.append(installation)
        return dirs

    def get_system_by_id(self, installation_id: str) -> InstallationDir:
        """Raises NotFoundError if no system installation has that id."""
        for installation in self.list_system():
            if installation.id == installation_id:
                return installation
        raise NotFoundError(f"Could not find installation {installation_id}")

    def system_paths(self) -> list[str]:
        return [str(installation.path) for installation in self.list_system()]
