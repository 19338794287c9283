"""Common fixtures."""

from __future__ import annotations

import logging
import typing
from unittest.mock import AsyncMock

import pytest

from ezsp_backup.backups import BackupManager
from ezsp_backup.config import CONF_BACKUP_PATH
from ezsp_backup.ezsp.types import (
    EmberKeyData,
    EmberKeyStruct,
    EmberKeyType,
    EmberNetworkParameters,
    SecurityManagerNetworkKeyInfo,
)
from ezsp_backup.session import DeviceSession
import ezsp_backup.types as t

NCP_IEEE = t.EUI64.convert("aa:11:22:bb:33:44:be:ef")
EXTENDED_PAN_ID = t.ExtendedPanId.convert("0D:49:91:99:AE:CD:3C:35")
NETWORK_KEY = t.KeyData.convert("9A:79:D6:9A:DA:EC:45:C6:F2:EF:EB:AF:DA:A3:07:B6")
HASHED_TCLK = t.KeyData.convert("CA:02:E8:BB:75:7C:94:F8:93:39:D3:9C:B3:CD:A7:BE")


class FailOnBadFormattingHandler(logging.Handler):
    def emit(self, record):
        try:
            record.msg % record.args
        except Exception as e:  # noqa: BLE001
            pytest.fail(
                f"Failed to format log message {record.msg!r} with {record.args!r}: {e}"
            )


@pytest.fixture(autouse=True)
def raise_on_bad_log_formatting():
    handler = FailOnBadFormattingHandler()

    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)

    try:
        yield
    finally:
        root.removeHandler(handler)


def network_parameters(**kwargs: typing.Any) -> EmberNetworkParameters:
    params = {
        "extended_pan_id": t.ExtendedPanId(EXTENDED_PAN_ID),
        "pan_id": t.PanId(0x9BB0),
        "radio_channel": t.uint8_t(15),
        "nwk_update_id": t.uint8_t(0x12),
        "channels": t.Channels.from_channel_list([15, 20, 25]),
    }
    params.update(kwargs)

    return EmberNetworkParameters(**params)


def make_session(
    ezsp_version: int,
    *,
    network_key: t.KeyData = NETWORK_KEY,
    tc_link_key: t.KeyData = HASHED_TCLK,
    seq: int = 108,
    tx_counter: int = 39009277,
    params: EmberNetworkParameters | None = None,
) -> AsyncMock:
    """Creates a mock coordinator session speaking the given EZSP version."""

    session = AsyncMock(spec_set=DeviceSession)
    session.get_protocol_version.return_value = ezsp_version
    session.get_network_parameters.return_value = params or network_parameters()
    session.get_coordinator_ieee.return_value = t.EUI64(NCP_IEEE)

    if ezsp_version < 13:
        keys = {
            EmberKeyType.TRUST_CENTER_LINK_KEY: EmberKeyStruct(
                type=EmberKeyType.TRUST_CENTER_LINK_KEY,
                key=EmberKeyData(contents=t.KeyData(tc_link_key)),
                outgoing_frame_counter=t.uint32_t(8712428),
            ),
            EmberKeyType.CURRENT_NETWORK_KEY: EmberKeyStruct(
                type=EmberKeyType.CURRENT_NETWORK_KEY,
                key=EmberKeyData(contents=t.KeyData(network_key)),
                sequence_number=t.uint8_t(seq),
                outgoing_frame_counter=t.uint32_t(tx_counter),
            ),
        }
        session.get_network_key_info.side_effect = AssertionError(
            "Network key info does not exist before EZSP 13"
        )
    else:
        keys = {
            EmberKeyType.TRUST_CENTER_LINK_KEY: EmberKeyData(
                contents=t.KeyData(tc_link_key)
            ),
            EmberKeyType.CURRENT_NETWORK_KEY: EmberKeyData(
                contents=t.KeyData(network_key)
            ),
        }
        session.get_network_key_info.return_value = SecurityManagerNetworkKeyInfo(
            network_key_sequence_number=t.uint8_t(seq),
            network_key_frame_counter=t.uint32_t(tx_counter),
        )

    async def get_key(key_type):
        return keys[key_type]

    session.get_key.side_effect = get_key

    return session


@pytest.fixture
def backup_path(tmp_path):
    return tmp_path / "coordinator_backup.json"


@pytest.fixture
def make_manager(backup_path):
    def inner(session: DeviceSession | None = None) -> BackupManager:
        if session is None:
            session = make_session(ezsp_version=13)

        return BackupManager(session, {CONF_BACKUP_PATH: str(backup_path)})

    return inner
