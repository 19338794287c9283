"""Config schemas and validation."""

from __future__ import annotations

import voluptuous as vol

import ezsp_backup
from ezsp_backup.config.validators import cv_backup_path

CONF_BACKUP_PATH = "backup_path"
CONF_BACKUP_SOURCE = "source"

CONF_BACKUP_SOURCE_DEFAULT = f"ezsp-backup@{ezsp_backup.__version__}"

SCHEMA_BACKUP = vol.Schema(
    {
        vol.Required(CONF_BACKUP_PATH): cv_backup_path,
        vol.Optional(CONF_BACKUP_SOURCE, default=CONF_BACKUP_SOURCE_DEFAULT): str,
    }
)
