"""track: dispatch issues to coding agents and watch their pull requests.

Example:
    >>> from track import __version__
    >>> isinstance(__version__, str)
    True
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

__all__ = ["__version__"]

try:
    __version__ = version("track-dispatch")
except PackageNotFoundError:
    __version__ = "0.0.0"
