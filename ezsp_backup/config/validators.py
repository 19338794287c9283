from __future__ import annotations

import pathlib

import voluptuous as vol


def cv_backup_path(value: str | pathlib.Path) -> pathlib.Path:
    """Validate a backup file path. The file itself does not need to exist yet."""
    if not isinstance(value, (str, pathlib.Path)) or not str(value):
        raise vol.Invalid(f"{value!r} is not a valid file path")

    path = pathlib.Path(value)

    if path.is_dir():
        raise vol.Invalid(f"{value} is a directory, not a backup file")

    return path
