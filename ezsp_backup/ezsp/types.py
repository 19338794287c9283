"""Result shapes of the EZSP commands used to capture network security state.

Field names follow the EmberZNet structures, snake cased. Key results come in two
incompatible shapes: `EmberKeyStruct` up to EZSP 12 and `EmberKeyData` from EZSP 13,
where the sequence number and frame counter moved to `SecurityManagerNetworkKeyInfo`.
"""

from __future__ import annotations

import attrs

import ezsp_backup.types as t

# First protocol version that returns bare `EmberKeyData` from key lookups
EZSP_VERSION_KEY_DATA = 13


class EmberStatus(t.enum8):
    SUCCESS = 0x00
    ERR_FATAL = 0x01
    INVALID_CALL = 0x70
    NOT_FOUND = 0x03
    KEY_INVALID = 0xB2
    KEY_TABLE_INVALID_ADDRESS = 0xB3
    SECURITY_STATE_NOT_SET = 0xA8
    NETWORK_DOWN = 0x94


class EmberKeyType(t.enum8):
    TRUST_CENTER_LINK_KEY = 0x01
    CURRENT_NETWORK_KEY = 0x03
    NEXT_NETWORK_KEY = 0x04
    APPLICATION_LINK_KEY = 0x05


class EmberKeyStructBitmask(t.bitmap32):
    KEY_HAS_SEQUENCE_NUMBER = 0x0001
    KEY_HAS_OUTGOING_FRAME_COUNTER = 0x0002
    KEY_HAS_INCOMING_FRAME_COUNTER = 0x0004
    KEY_HAS_PARTNER_EUI64 = 0x0008
    KEY_IS_AUTHORIZED = 0x0010
    KEY_PARTNER_IS_SLEEPY = 0x0020


@attrs.define(frozen=True, kw_only=True)
class EmberKeyData:
    """Bare 16 byte key, returned by key lookups from EZSP 13 onwards."""

    contents: t.KeyData


@attrs.define(frozen=True, kw_only=True)
class EmberKeyStruct:
    """Key with its metadata, returned by key lookups before EZSP 13."""

    bitmask: EmberKeyStructBitmask = EmberKeyStructBitmask(0)
    type: EmberKeyType
    key: EmberKeyData
    outgoing_frame_counter: t.uint32_t = t.uint32_t(0)
    incoming_frame_counter: t.uint32_t = t.uint32_t(0)
    sequence_number: t.uint8_t = t.uint8_t(0)
    partner_eui64: t.EUI64 = attrs.field(factory=lambda: t.EUI64.UNKNOWN)


@attrs.define(frozen=True, kw_only=True)
class EmberNetworkParameters:
    extended_pan_id: t.ExtendedPanId
    pan_id: t.PanId
    radio_tx_power: int = 8
    radio_channel: t.uint8_t
    join_method: int = 0
    nwk_manager_id: t.NWK = t.NWK(0x0000)
    nwk_update_id: t.uint8_t = t.uint8_t(0)
    channels: t.Channels


@attrs.define(frozen=True, kw_only=True)
class SecurityManagerNetworkKeyInfo:
    status: EmberStatus = EmberStatus.SUCCESS
    network_key_set: bool = True
    alternate_network_key_set: bool = False
    network_key_sequence_number: t.uint8_t
    alt_network_key_sequence_number: t.uint8_t = t.uint8_t(0)
    network_key_frame_counter: t.uint32_t
