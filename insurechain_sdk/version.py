"""
Package version lookup.

An installed distribution reports its metadata version. A source checkout
falls back to ``[project].version`` in the pyproject.toml beside the package.
"""
import importlib.metadata
import pathlib
from typing import Optional

import tomli

DISTRIBUTION = "insurechain-sdk"
DEFAULT_VERSION = "0.1.0"
PYPROJECT = pathlib.Path(__file__).resolve().parent.parent / "pyproject.toml"


def pyproject_version(path: pathlib.Path = PYPROJECT) -> Optional[str]:
    """``[project].version`` from a pyproject file, or None if it cannot be read."""
    try:
        with path.open("rb") as f:
            document = tomli.load(f)
    except (OSError, tomli.TOMLDecodeError):
        return None
    project = document.get("project")
    version = project.get("version") if isinstance(project, dict) else None
    return version if isinstance(version, str) else None


def resolve_version(distribution: str = DISTRIBUTION, path: pathlib.Path = PYPROJECT) -> str:
    try:
        return importlib.metadata.version(distribution)
    except importlib.metadata.PackageNotFoundError:
        return pyproject_version(path) or DEFAULT_VERSION


__version__ = resolve_version()
