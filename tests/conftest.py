"""Pytest configuration and fixtures for flatctl tests."""

import io
import logging
import os
from datetime import timezone
from pathlib import Path

import pytest

from flatctl.config import Settings
from flatctl.context import AppContext
from flatctl.logging_utils import DETAIL_LOGGER_NAME, REPO_LOGGER_NAME

APP_REF = "app/org.example.App/x86_64/stable"
RUNTIME_REF = "runtime/org.example.Platform/x86_64/23.08"
COMMIT_A = "a" * 64
COMMIT_B = "b" * 64


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo setup_logging() so tests do not leak handlers into each other."""
    yield
    app_logger = logging.getLogger("flatctl")
    for handler in list(app_logger.handlers):
        if not isinstance(handler, logging.NullHandler):
            app_logger.removeHandler(handler)
    app_logger.propagate = True
    app_logger.setLevel(logging.NOTSET)
    logging.getLogger(DETAIL_LOGGER_NAME).setLevel(logging.NOTSET)
    logging.getLogger(REPO_LOGGER_NAME).setLevel(logging.NOTSET)


@pytest.fixture
def utc_local(mocker):
    """Pin the local time zone to UTC."""
    mocker.patch("flatctl.time_utils.local_timezone", return_value=timezone.utc)
    return timezone.utc


@pytest.fixture
def settings(tmp_path):
    """Settings rooted in a temporary directory."""
    system_dir = tmp_path / "system"
    return Settings(
        system_dir=system_dir,
        user_dir=tmp_path / "user",
        config_dir=tmp_path / "etc",
        history_log=system_dir / "history.jsonl",
        default_arch="x86_64",
    )


@pytest.fixture
def ctx(settings):
    """Application context writing to in-memory streams."""
    return AppContext.create(settings, stdout=io.StringIO(), stderr=io.StringIO())


def write_installation_config(settings: Settings, name: str, installations: dict[str, Path]) -> Path:
    """Declare extra system installations in installations.d/<name>.conf."""
    config_dir = settings.installations_config_dir
    config_dir.mkdir(parents=True, exist_ok=True)
    lines = []
    for installation_id, path in installations.items():
        lines.append(f'[Installation "{installation_id}"]')
        lines.append(f"Path={path}")
        lines.append(f"DisplayName={installation_id.title()} installation")
        lines.append("")
    conf_path = config_dir / name
    conf_path.write_text("\n".join(lines), encoding="utf-8")
    return conf_path


def write_repo(root: Path, remotes: dict[str, dict[str, str]]) -> Path:
    """Create ``<root>/repo/config`` with the given remote sections."""
    repo = root / "repo"
    (repo / "refs" / "remotes").mkdir(parents=True, exist_ok=True)
    lines = ["[core]", "repo_version = 1", "mode = bare-user-only", ""]
    for name, values in remotes.items():
        lines.append(f'[remote "{name}"]')
        for key, value in values.items():
            lines.append(f"{key} = {value}")
        lines.append("")
    (repo / "config").write_text("\n".join(lines), encoding="utf-8")
    return repo


def write_remote_ref(root: Path, remote: str, ref: str, commit: str) -> None:
    ref_file = root / "repo" / "refs" / "remotes" / remote / ref
    ref_file.parent.mkdir(parents=True, exist_ok=True)
    ref_file.write_text(commit + "\n", encoding="utf-8")


def deploy(root: Path, ref: str, commit: str) -> None:
    """Mark ``ref`` as deployed at ``commit`` under an installation root."""
    deploy_dir = root.joinpath(*ref.split("/"))
    (deploy_dir / commit).mkdir(parents=True, exist_ok=True)
    os.symlink(commit, deploy_dir / "active")
