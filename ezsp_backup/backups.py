"""Classes to capture and load EZSP network backups, including JSON serialization."""

from __future__ import annotations

import asyncio
import dataclasses
from datetime import datetime, timezone
import json
import logging
import math
import pathlib
import typing
from typing import Any

import voluptuous as vol

import ezsp_backup.config as conf
from ezsp_backup.exceptions import (
    BackupException,
    BackupFileCorrupted,
    DeviceQueryFailed,
    UnknownBackupFormat,
    UnsupportedBackupVersion,
    WrongAdapterFormat,
)
from ezsp_backup.ezsp.types import (
    EZSP_VERSION_KEY_DATA,
    EmberKeyData,
    EmberKeyStruct,
    EmberKeyType,
    EmberStatus,
)
import ezsp_backup.state
import ezsp_backup.types as t
from ezsp_backup.util import channels_mask_to_list, checked_int

if typing.TYPE_CHECKING:
    from ezsp_backup.session import DeviceSession

LOGGER = logging.getLogger(__name__)

OPEN_COORDINATOR_BACKUP_FORMAT = "zigpy/open-coordinator-backup"
BACKUP_FORMAT_VERSION = 1

# Standard Zigbee security level (ENC-MIC-32), the only one EmberZNet supports
SECURITY_LEVEL = 5

SCHEMA_BACKUP_FORMAT = vol.Schema(
    {
        vol.Required("metadata"): vol.Schema(
            {
                vol.Required("format"): OPEN_COORDINATOR_BACKUP_FORMAT,
                vol.Required("version"): vol.NotIn([None, 0, ""]),
            },
            extra=vol.ALLOW_EXTRA,
        )
    },
    extra=vol.ALLOW_EXTRA,
)

SCHEMA_EZSP_ADAPTER = vol.Schema(
    {
        vol.Required("metadata"): vol.Schema(
            {
                vol.Required("internal"): vol.Schema(
                    {
                        vol.Required("ezspVersion"): vol.All(
                            int, vol.Range(min=1)
                        )
                    },
                    extra=vol.ALLOW_EXTRA,
                )
            },
            extra=vol.ALLOW_EXTRA,
        )
    },
    extra=vol.ALLOW_EXTRA,
)


@dataclasses.dataclass(frozen=True)
class NetworkBackup(t.BaseDataclassMixin):
    """Security state of an EZSP coordinator.

    Only the attributes are frozen. Keys and addresses are list-based types, so
    their bytes can still be modified in place and backups are not hashable.
    Copy a key before changing it.
    """

    ezsp_version: int
    tc_link_key_hash: t.KeyData
    network_key: t.KeyData
    network_key_seq: t.uint8_t
    network_key_tx_counter: t.uint32_t
    pan_id: t.PanId
    extended_pan_id: t.ExtendedPanId
    channel_list: tuple[int, ...]
    channel: t.uint8_t
    nwk_update_id: t.uint8_t
    coordinator_ieee: t.EUI64
    security_level: t.uint8_t = t.uint8_t(SECURITY_LEVEL)
    network_key_distribute: bool = True
    devices: tuple[ezsp_backup.state.BackupDevice, ...] = ()
    backup_time: datetime = dataclasses.field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def __post_init__(self) -> None:
        for name in ("tc_link_key_hash", "network_key"):
            if len(getattr(self, name)) != t.KeyData._length:
                raise ValueError(f"Backup {name} must be {t.KeyData._length} bytes")

        if not self.channel_list:
            raise ValueError("Backup channel list is empty")

        if list(self.channel_list) != sorted(set(self.channel_list)):
            raise ValueError(f"Backup channel list is not ordered: {self.channel_list}")

    def is_compatible_with(self, backup: NetworkBackup) -> bool:
        """Two backups are compatible if, ignoring frame counters, the same external device
        will be able to join either network.
        """

        return (
            self.coordinator_ieee == backup.coordinator_ieee
            and self.extended_pan_id == backup.extended_pan_id
            and self.pan_id == backup.pan_id
            and self.nwk_update_id == backup.nwk_update_id
            and self.channel == backup.channel
            and self.security_level == backup.security_level
            and self.tc_link_key_hash == backup.tc_link_key_hash
            and self.network_key == backup.network_key
        )

    def supersedes(self, backup: NetworkBackup) -> bool:
        """Checks if this network backup is more recent than another backup."""

        return (
            self.is_compatible_with(backup)
            and self.network_key_tx_counter > backup.network_key_tx_counter
            and self.nwk_update_id >= backup.nwk_update_id
        )

    def is_complete(self) -> bool:
        """Checks if this backup captures enough network state to recreate the network."""

        return (
            self.coordinator_ieee != t.EUI64.UNKNOWN  # noqa: PLR1714
            and self.extended_pan_id != t.EUI64.UNKNOWN
            and self.pan_id not in (0x0000, 0xFFFF)
            and self.channel in range(11, 26 + 1)
            and self.network_key != t.KeyData.UNKNOWN
        )

    def as_open_coordinator_json(self, *, source: str | None = None) -> dict[str, Any]:
        return _network_backup_to_open_coordinator_backup(self, source=source)

    @classmethod
    def from_open_coordinator_json(cls, obj: dict[str, Any]) -> NetworkBackup:
        return _open_coordinator_backup_to_network_backup(obj)


@dataclasses.dataclass(frozen=True)
class _KeyMaterial:
    tc_link_key_hash: t.KeyData
    network_key: t.KeyData
    network_key_seq: t.uint8_t
    network_key_tx_counter: t.uint32_t


def _copy_bytes(cls: type[t.FixedList], value: Any, name: str) -> t.FixedList:
    """Copies a fixed length byte sequence returned by the radio into a new `cls`."""

    # `bytes(n)` would silently create `n` null bytes
    if isinstance(value, int):
        raise DeviceQueryFailed(f"Invalid {name}: expected bytes, got an integer")

    try:
        data = bytes(value)
    except (TypeError, ValueError) as exc:
        raise DeviceQueryFailed(f"Invalid {name}: not a byte sequence") from exc

    if len(data) != cls._length:
        raise DeviceQueryFailed(
            f"Invalid {name}: expected {cls._length} bytes, got {len(data)}"
        )

    return cls(t.uint8_t(b) for b in data)


def _copy_int(cls: type[t.uint_t], value: Any, name: str) -> t.uint_t:
    try:
        return checked_int(cls, value)
    except ValueError as exc:
        raise DeviceQueryFailed(f"Invalid {name}: {exc}") from exc


class BackupManager:
    def __init__(self, session: DeviceSession, config: dict[str, Any]) -> None:
        self.session: DeviceSession = session
        self.config: dict[str, Any] = conf.SCHEMA_BACKUP(config)
        self.backups: list[NetworkBackup] = []

    def most_recent_backup(self) -> NetworkBackup | None:
        """Most recent network backup"""
        return self.backups[-1] if self.backups else None

    async def create_backup(self) -> NetworkBackup:
        """Reads the coordinator's current security state into a new backup.

        Callers must not run two backups against the same session concurrently.
        """

        LOGGER.debug("Creating a network backup")

        ezsp_version = await self.session.get_protocol_version()

        if (
            isinstance(ezsp_version, bool)
            or not isinstance(ezsp_version, int)
            or ezsp_version < 1
        ):
            raise DeviceQueryFailed(f"Invalid EZSP protocol version: {ezsp_version!r}")

        LOGGER.debug("Coordinator speaks EZSP protocol version %d", ezsp_version)

        tclk_result = await self.session.get_key(EmberKeyType.TRUST_CENTER_LINK_KEY)
        nwk_key_result = await self.session.get_key(EmberKeyType.CURRENT_NETWORK_KEY)
        params = await self.session.get_network_parameters()
        ieee = await self.session.get_coordinator_ieee()

        if ezsp_version < EZSP_VERSION_KEY_DATA:
            keys = self._keys_from_key_structs(tclk_result, nwk_key_result)
        else:
            keys = await self._keys_from_key_data(tclk_result, nwk_key_result)

        try:
            channel_list = channels_mask_to_list(params.channels)
        except (TypeError, ValueError) as exc:
            raise DeviceQueryFailed(f"Invalid channel mask: {exc}") from exc

        if not channel_list:
            raise DeviceQueryFailed("Coordinator reported an empty channel mask")

        backup = NetworkBackup(
            ezsp_version=ezsp_version,
            tc_link_key_hash=keys.tc_link_key_hash,
            network_key=keys.network_key,
            network_key_seq=keys.network_key_seq,
            network_key_tx_counter=keys.network_key_tx_counter,
            pan_id=_copy_int(t.PanId, params.pan_id, "PAN ID"),
            extended_pan_id=_copy_bytes(
                t.ExtendedPanId, params.extended_pan_id, "extended PAN ID"
            ),
            channel_list=tuple(channel_list),
            channel=_copy_int(t.uint8_t, params.radio_channel, "radio channel"),
            nwk_update_id=_copy_int(t.uint8_t, params.nwk_update_id, "update ID"),
            coordinator_ieee=_copy_bytes(t.EUI64, ieee, "coordinator IEEE address"),
            security_level=t.uint8_t(SECURITY_LEVEL),
            network_key_distribute=True,
            devices=(),
        )

        LOGGER.debug(
            "Captured backup of network %r (PAN ID %s) on channel %d",
            backup.extended_pan_id,
            backup.pan_id,
            backup.channel,
        )

        self.add_backup(backup)

        return backup

    def _keys_from_key_structs(
        self, tclk_result: Any, nwk_key_result: Any
    ) -> _KeyMaterial:
        """EZSP < 13: keys and their metadata come back as `EmberKeyStruct`."""

        for result in (tclk_result, nwk_key_result):
            if not isinstance(result, EmberKeyStruct):
                raise DeviceQueryFailed(
                    f"Expected an EmberKeyStruct, got {type(result).__name__}"
                )

        return _KeyMaterial(
            tc_link_key_hash=_copy_bytes(
                t.KeyData, tclk_result.key.contents, "TC link key"
            ),
            network_key=_copy_bytes(
                t.KeyData, nwk_key_result.key.contents, "network key"
            ),
            network_key_seq=_copy_int(
                t.uint8_t, nwk_key_result.sequence_number, "network key sequence"
            ),
            network_key_tx_counter=_copy_int(
                t.uint32_t,
                nwk_key_result.outgoing_frame_counter,
                "network key frame counter",
            ),
        )

    async def _keys_from_key_data(
        self, tclk_result: Any, nwk_key_result: Any
    ) -> _KeyMaterial:
        """EZSP 13+: keys come back as bare `EmberKeyData`, metadata needs a second
        command.
        """

        for result in (tclk_result, nwk_key_result):
            if not isinstance(result, EmberKeyData):
                raise DeviceQueryFailed(
                    f"Expected an EmberKeyData, got {type(result).__name__}"
                )

        key_info = await self.session.get_network_key_info()

        if key_info.status != EmberStatus.SUCCESS:
            raise DeviceQueryFailed(
                f"Failed to read network key info: {key_info.status!r}"
            )

        if not key_info.network_key_set:
            raise DeviceQueryFailed("Coordinator has no network key set")

        return _KeyMaterial(
            tc_link_key_hash=_copy_bytes(t.KeyData, tclk_result.contents, "TC link key"),
            network_key=_copy_bytes(t.KeyData, nwk_key_result.contents, "network key"),
            network_key_seq=_copy_int(
                t.uint8_t, key_info.network_key_sequence_number, "network key sequence"
            ),
            network_key_tx_counter=_copy_int(
                t.uint32_t,
                key_info.network_key_frame_counter,
                "network key frame counter",
            ),
        )

    def add_backup(self, backup: NetworkBackup) -> None:
        """Adds a new backup, superseding older ones if necessary."""

        if not backup.is_complete():
            LOGGER.debug("Backup is incomplete, not keeping it")
            return

        # Only drop an older backup if the frame counter doesn't roll back
        for old_backup in self.backups[:]:
            if (
                backup.is_compatible_with(old_backup)
                and backup.network_key_tx_counter >= old_backup.network_key_tx_counter
            ):
                self.backups.remove(old_backup)

        self.backups.append(backup)

    def _backup_path(self, path: str | pathlib.Path | None) -> pathlib.Path:
        if path is None:
            return self.config[conf.CONF_BACKUP_PATH]

        return pathlib.Path(path)

    async def get_stored_backup(
        self, path: str | pathlib.Path | None = None
    ) -> NetworkBackup | None:
        """Loads a stored open coordinator backup. Returns `None` if there is none."""

        path = self._backup_path(path)
        loop = asyncio.get_running_loop()

        try:
            data = await loop.run_in_executor(None, path.read_bytes)
        except FileNotFoundError:
            LOGGER.debug("No stored backup at %s", path)
            return None

        try:
            return load_open_coordinator_backup(data)
        except BackupException as exc:
            LOGGER.warning("Rejecting stored backup %s: %s", path, exc)
            raise

    async def write_backup(
        self, backup: NetworkBackup, path: str | pathlib.Path | None = None
    ) -> pathlib.Path:
        """Writes a backup as open coordinator JSON, returning the path written."""

        path = self._backup_path(path)
        obj = backup.as_open_coordinator_json(source=self.config[conf.CONF_BACKUP_SOURCE])

        LOGGER.debug("Writing backup to %s", path)
        await asyncio.get_running_loop().run_in_executor(
            None, path.write_text, json.dumps(obj, indent=4)
        )

        return path

    def __getitem__(self, key) -> NetworkBackup:
        return self.backups[key]


def validate_open_coordinator_backup(obj: Any) -> None:
    """Checks the format, version and adapter tags of an open coordinator backup."""

    try:
        SCHEMA_BACKUP_FORMAT(obj)
    except vol.Invalid as exc:
        raise UnknownBackupFormat("Unknown backup format") from exc

    version = obj["metadata"]["version"]

    if isinstance(version, bool) or version != BACKUP_FORMAT_VERSION:
        raise UnsupportedBackupVersion(
            f"Unsupported open coordinator backup version (version={version})",
            version=version,
        )

    try:
        SCHEMA_EZSP_ADAPTER(obj)
    except vol.Invalid as exc:
        raise WrongAdapterFormat(
            "Open coordinator backup was not created by an EZSP adapter"
        ) from exc


def _parse_finite_float(value: str) -> float:
    number = float(value)

    if not math.isfinite(number):
        raise ValueError(f"Number out of range: {value}")

    return number


def _reject_constant(value: str) -> typing.NoReturn:
    raise ValueError(f"Invalid number: {value}")


def load_open_coordinator_backup(data: str | bytes) -> NetworkBackup:
    """Parses and validates a serialized open coordinator backup."""

    try:
        obj = json.loads(
            data, parse_float=_parse_finite_float, parse_constant=_reject_constant
        )
    except ValueError as exc:
        raise BackupFileCorrupted(f"Coordinator backup is corrupted ({exc})") from exc
    except RecursionError as exc:
        raise BackupFileCorrupted(
            "Coordinator backup is corrupted (nested too deeply)"
        ) from exc

    validate_open_coordinator_backup(obj)

    try:
        return NetworkBackup.from_open_coordinator_json(obj)
    except (AttributeError, KeyError, OverflowError, TypeError, ValueError) as exc:
        raise BackupFileCorrupted(
            f"Coordinator backup is corrupted ({type(exc).__name__}: {exc})"
        ) from exc


def _network_backup_to_open_coordinator_backup(
    backup: NetworkBackup, *, source: str | None
) -> dict[str, Any]:
    """Converts a `NetworkBackup` to an Open Coordinator Backup-compatible dictionary."""

    return {
        "metadata": {
            "version": BACKUP_FORMAT_VERSION,
            "format": OPEN_COORDINATOR_BACKUP_FORMAT,
            "source": source,
            "internal": {
                "creation_time": backup.backup_time.isoformat(),
                "ezspVersion": backup.ezsp_version,
                "link_key_seqs": {
                    device.ieee.serialize()[::-1].hex(): device.link_key.seq
                    for device in backup.devices
                    if device.link_key is not None
                },
            },
        },
        "stack_specific": {
            "ezsp": {"hashed_tclk": backup.tc_link_key_hash.serialize().hex()}
        },
        "coordinator_ieee": backup.coordinator_ieee.serialize()[::-1].hex(),
        "pan_id": backup.pan_id.serialize()[::-1].hex(),
        "extended_pan_id": backup.extended_pan_id.serialize()[::-1].hex(),
        "nwk_update_id": backup.nwk_update_id,
        "security_level": backup.security_level,
        "channel": backup.channel,
        "channel_mask": list(backup.channel_list),
        "network_key": {
            "key": backup.network_key.serialize().hex(),
            "sequence_number": backup.network_key_seq,
            "frame_counter": backup.network_key_tx_counter,
        },
        "devices": sorted(
            (device.as_dict() for device in backup.devices),
            key=lambda d: d["ieee_address"],
        ),
    }


def _open_coordinator_backup_to_network_backup(obj: dict[str, Any]) -> NetworkBackup:
    """Creates a `NetworkBackup` from an Open Coordinator Backup dictionary."""

    internal = obj["metadata"]["internal"]
    link_key_seqs = internal.get("link_key_seqs", {})
    network_key = obj["network_key"]

    if "date" in internal:
        # Z2M format
        creation_time = internal["date"].replace("Z", "+00:00")
    else:
        creation_time = internal.get("creation_time", "1970-01-01T00:00:00+00:00")

    return NetworkBackup(
        ezsp_version=int(checked_int(t.uint8_t, internal["ezspVersion"])),
        tc_link_key_hash=t.KeyData.convert(obj["stack_specific"]["ezsp"]["hashed_tclk"]),
        network_key=t.KeyData.convert(network_key["key"]),
        network_key_seq=checked_int(t.uint8_t, network_key["sequence_number"]),
        network_key_tx_counter=checked_int(t.uint32_t, network_key["frame_counter"]),
        pan_id=t.PanId.convert(obj["pan_id"]),
        extended_pan_id=t.ExtendedPanId.convert(obj["extended_pan_id"]),
        # Normalizes the order
        channel_list=tuple(
            t.Channels.from_channel_list(
                checked_int(t.uint8_t, c) for c in obj["channel_mask"]
            )
        ),
        channel=checked_int(t.uint8_t, obj["channel"]),
        nwk_update_id=checked_int(t.uint8_t, obj["nwk_update_id"]),
        coordinator_ieee=t.EUI64.convert(obj["coordinator_ieee"]),
        security_level=checked_int(t.uint8_t, obj["security_level"]),
        devices=tuple(
            ezsp_backup.state.BackupDevice.from_dict(
                device, link_key_seq=link_key_seqs.get(device["ieee_address"], 0)
            )
            for device in obj["devices"]
        ),
        backup_time=datetime.fromisoformat(creation_time),
    )
