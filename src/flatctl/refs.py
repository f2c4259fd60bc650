"""Ref string decomposition: ``kind/id/arch/branch``."""

import re
from dataclasses import dataclass

REF_KINDS = ("app", "runtime")
MAX_NAME_LENGTH = 255

_NAME_ELEMENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")
_ARCH_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_BRANCH_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]*$")


@dataclass(frozen=True)
class Ref:
    kind: str
    app_id: str
    arch: str
    branch: str

    def __str__(self) -> str:
        return f"{self.kind}/{self.app_id}/{self.arch}/{self.branch}"


def validate_name(name: str) -> None:
    """Validate an application id such as ``org.example.App``.

    Raises:
        ValueError: If the id is empty, too long, has fewer than three
            dot-separated elements, or contains invalid characters
    """
    if not name:
        raise ValueError("Name can't be empty")
    if len(name) > MAX_NAME_LENGTH:
        raise ValueError(f"Name can't be longer than {MAX_NAME_LENGTH} characters")
    elements = name.split(".")
    if len(elements) < 3:
        raise ValueError(f"Names must contain at least 2 periods: {name}")
    for element in elements:
        if not _NAME_ELEMENT_RE.match(element):
            raise ValueError(f"Invalid name element '{element}' in {name}")


def decompose_ref(ref: str) -> Ref:
    """Split a ref string into its four parts.

    Raises:
        ValueError: If the ref is malformed
    """
    parts = ref.split("/")
    if len(parts) != 4:
        raise ValueError(f"Wrong number of components in {ref}")

    kind, app_id, arch, branch = parts
    if kind not in REF_KINDS:
        raise ValueError(f"{kind} is not application or runtime")
    validate_name(app_id)
    if not _ARCH_RE.match(arch):
        raise ValueError(f"Invalid arch {arch}")
    if not _BRANCH_RE.match(branch):
        raise ValueError(f"Invalid branch {branch}")

    return Ref(kind=kind, app_id=app_id, arch=arch, branch=branch)


def try_decompose_ref(ref: str | None) -> Ref | None:
    """Decompose ``ref``, returning None when it is absent or malformed."""
    if not ref:
        return None
    try:
        return decompose_ref(ref)
    except ValueError:
        return None
