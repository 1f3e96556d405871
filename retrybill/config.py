"""Loading of application settings from a dotenv file."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import dotenv_values


def load_env(path: str | os.PathLike[str] = ".env") -> dict[str, str]:
    """Load variables from a dotenv file into ``os.environ``.

    Variables already present in the environment are left untouched.
    Returns the values read from the file.

    Raises:
        FileNotFoundError: if the file does not exist.
    """
    env_path = Path(path)
    if not env_path.is_file():
        raise FileNotFoundError(f"error loading env file: {env_path}")
    values = {
        key: value
        for key, value in dotenv_values(env_path).items()
        if value is not None
    }
    for key, value in values.items():
        os.environ.setdefault(key, value)
    return values