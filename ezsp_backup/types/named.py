from __future__ import annotations

import dataclasses
import typing

import attrs

from . import basic

if typing.TYPE_CHECKING:
    from typing_extensions import Self

__all__ = [
    "BaseDataclassMixin",
    "EUI64",
    "KeyData",
    "Channels",
    "NWK",
    "PanId",
    "ExtendedPanId",
]


class BaseDataclassMixin:
    def replace(self, **kwargs: typing.Any) -> Self:
        if dataclasses.is_dataclass(self):
            assert not isinstance(self, type)  # `is_dataclass` works on types as well
            return dataclasses.replace(self, **kwargs)
        else:
            return attrs.evolve(self, **kwargs)


def _hex_string_to_bytes(hex_string: str) -> bytes:
    """Parses a hex string with optional colon delimiters and whitespace into bytes."""

    cleaned = "".join(hex_string.replace(":", "").split()).upper()
    return bytes.fromhex(cleaned)


class EUI64(basic.FixedList, item_type=basic.uint8_t, length=8):
    # EUI 64-bit ID (an IEEE address), stored little endian
    def __repr__(self) -> str:
        return ":".join(f"{i:02x}" for i in self[::-1])

    def __hash__(self) -> int:  # type: ignore[override]
        return hash(repr(self))

    @classmethod
    def convert(cls, ieee: str) -> Self:
        ieee = [basic.uint8_t(p) for p in _hex_string_to_bytes(ieee)[::-1]]
        if len(ieee) != cls._length:
            raise ValueError(f"Expected {cls._length} bytes, got {len(ieee)}")
        return cls(ieee)


EUI64.UNKNOWN = EUI64.convert("FF:FF:FF:FF:FF:FF:FF:FF")


class KeyData(basic.FixedList, item_type=basic.uint8_t, length=16):
    def __repr__(self) -> str:
        return ":".join(f"{i:02x}" for i in self)

    @classmethod
    def convert(cls, key: str) -> Self:
        key = [basic.uint8_t(p) for p in _hex_string_to_bytes(key)]
        if len(key) != cls._length:
            raise ValueError(f"Expected {cls._length} bytes, got {len(key)}")
        return cls(key)


KeyData.UNKNOWN = KeyData.convert("FF:FF:FF:FF:FF:FF:FF:FF:FF:FF:FF:FF:FF:FF:FF:FF")


class Channels(basic.bitmap32):
    """Zigbee Channels."""

    NO_CHANNELS = 0x00000000
    ALL_CHANNELS = 0x07FFF800
    CHANNEL_11 = 0x00000800
    CHANNEL_12 = 0x00001000
    CHANNEL_13 = 0x00002000
    CHANNEL_14 = 0x00004000
    CHANNEL_15 = 0x00008000
    CHANNEL_16 = 0x00010000
    CHANNEL_17 = 0x00020000
    CHANNEL_18 = 0x00040000
    CHANNEL_19 = 0x00080000
    CHANNEL_20 = 0x00100000
    CHANNEL_21 = 0x00200000
    CHANNEL_22 = 0x00400000
    CHANNEL_23 = 0x00800000
    CHANNEL_24 = 0x01000000
    CHANNEL_25 = 0x02000000
    CHANNEL_26 = 0x04000000

    @classmethod
    def from_channel_list(cls, channels: typing.Iterable[int]) -> Channels:
        mask = cls.NO_CHANNELS

        for channel in channels:
            if not 11 <= channel <= 26:
                raise ValueError(
                    f"Invalid channel number {channel}. Must be between 11 and 26."
                )

            mask |= cls[f"CHANNEL_{channel}"]

        return mask

    def __iter__(self):
        cls = type(self)

        channels = [c for c in range(11, 26 + 1) if self & cls[f"CHANNEL_{c}"]]

        if self != cls.from_channel_list(channels):
            raise ValueError(f"Channels bitmap has unexpected members: {self!r}")

        return iter(channels)


class NWK(basic.uint16_t, repr="hex"):
    @classmethod
    def convert(cls, data: str) -> Self:
        if 4 * len(data) != cls._bits:
            raise ValueError(f"Invalid {cls.__name__} hex string: {data!r}")
        return cls.deserialize(bytes.fromhex(data)[::-1])[0]


class PanId(NWK):
    pass


class ExtendedPanId(EUI64):
    pass
