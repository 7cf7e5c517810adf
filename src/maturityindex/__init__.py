"""maturityindex package."""

from __future__ import annotations

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

__all__ = ["APP_NAME", "__version__"]

APP_NAME = "FinOps Maturity Index"


def _version_from_pyproject() -> str | None:
    """Return `[project].version` from a source checkout, if there is one."""
    for base in Path(__file__).resolve().parents:
        pyproject = base / "pyproject.toml"
        if not pyproject.exists():
            continue
        with pyproject.open("rb") as handle:
            project = tomllib.load(handle).get("project", {})
        if project.get("name") != "maturityindex":
            continue
        found = project.get("version")
        return str(found) if found else None
    return None


_source_version = _version_from_pyproject()
if _source_version is not None:
    __version__ = _source_version
else:
    try:
        __version__ = version("maturityindex")
    except PackageNotFoundError:
        __version__ = "0+unknown"
