"""
Version information for the NFT minter.

Installed copies report the distribution metadata. A source checkout reads
the version from the pyproject.toml next to the package.
"""
import importlib.metadata
import pathlib

import tomli

DISTRIBUTION = "nft-minter"
FALLBACK_VERSION = "0.1.0"
PYPROJECT = pathlib.Path(__file__).resolve().parent.parent / "pyproject.toml"


def _version_from_pyproject(path: pathlib.Path) -> str:
    with path.open("rb") as f:
        project = tomli.load(f).get("project", {})
    return project["version"]


def get_version(pyproject: pathlib.Path = PYPROJECT) -> str:
    try:
        return importlib.metadata.version(DISTRIBUTION)
    except importlib.metadata.PackageNotFoundError:
        pass

    try:
        return _version_from_pyproject(pyproject)
    except (OSError, KeyError, tomli.TOMLDecodeError):
        return FALLBACK_VERSION


__version__ = get_version()
