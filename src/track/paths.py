"""Path helpers for locating track data directories and files."""

import os
from pathlib import Path

from platformdirs import user_data_dir

TRACK_APP_NAME = "track"
TRACK_HOME_ENV = "TRACK_HOME"
DB_FILENAME = "track.db"
CONFIG_FILENAME = "config.json"


def track_home() -> Path:
    """Return the base track data directory.

    ``TRACK_HOME`` overrides the platform user data directory.

    Returns:
        Path to the track data directory.

    Example:
        >>> isinstance(track_home(), Path)
        True
    """
    override = os.environ.get(TRACK_HOME_ENV, "").strip()
    if override:
        return Path(override).expanduser()
    return Path(user_data_dir(TRACK_APP_NAME))


def db_path() -> Path:
    """Return the path to the shared issue database.

    Example:
        >>> db_path().name == DB_FILENAME
        True
    """
    return track_home() / DB_FILENAME


def config_path() -> Path:
    """Return the path to the user configuration file."""
    return track_home() / CONFIG_FILENAME
