from __future__ import annotations


class BackupException(Exception):
    """Base exception class"""


class DeviceQueryFailed(BackupException):
    """A coordinator command failed or returned malformed data"""


class BackupFileCorrupted(BackupException):
    """A stored backup could not be parsed"""


class UnknownBackupFormat(BackupException):
    """A stored backup is not an open coordinator backup"""


class UnsupportedBackupVersion(BackupException):
    """A stored open coordinator backup uses an unsupported format version"""

    def __init__(self, message: str, version: object) -> None:
        super().__init__(message)
        self.version = version


class WrongAdapterFormat(BackupException):
    """A stored open coordinator backup was created by a non-EZSP adapter"""
