"""Path utilities for competitions."""

import os
from pathlib import Path

DATA_DIR_ENV = "COMPETITIONS_DATA_DIR"


def get_data_dir() -> Path:
    """
    Get the data directory for the database.

    Returns:
        - $COMPETITIONS_DATA_DIR when set
        - .competitions/ in the current working directory otherwise
    """
    data_dir = Path(os.environ.get(DATA_DIR_ENV) or Path.cwd() / ".competitions")
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_default_db_path() -> Path:
    """Get the default SQLite database path."""
    return get_data_dir() / "competitions.sqlite"
