"""tel - browse named SQL queries in the terminal and resume where you left off."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("tel")
except PackageNotFoundError:
    __version__ = "unknown"

__all__ = ["__version__"]
