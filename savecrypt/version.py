"""Version resolution for package metadata and the on-disk format version."""

from importlib.metadata import PackageNotFoundError, version as _package_version

# Bumped when the save format handling changes (key, markers, layout).
FORMAT_VERSION = "1"

try:
    __version__ = _package_version("savecrypt")
except PackageNotFoundError:
    __version__ = "0.0.0"


__all__ = ["FORMAT_VERSION", "__version__"]
