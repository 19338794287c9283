"""Value records shared by captured and stored network backups."""

from __future__ import annotations

import dataclasses
from typing import Any

import ezsp_backup.types as t
from ezsp_backup.util import checked_int


@dataclasses.dataclass(frozen=True)
class Key(t.BaseDataclassMixin):
    """APS link key of a device in a stored backup."""

    key: t.KeyData = dataclasses.field(
        default_factory=lambda: t.KeyData(t.KeyData.UNKNOWN)
    )
    tx_counter: t.uint32_t = t.uint32_t(0)
    rx_counter: t.uint32_t = t.uint32_t(0)
    seq: t.uint8_t = t.uint8_t(0)

    def as_dict(self) -> dict[str, Any]:
        return {
            "key": self.key.serialize().hex(),
            "tx_counter": self.tx_counter,
            "rx_counter": self.rx_counter,
        }

    @classmethod
    def from_dict(cls, obj: dict[str, Any], *, seq: int = 0) -> Key:
        return cls(
            key=t.KeyData.convert(obj["key"]),
            tx_counter=checked_int(t.uint32_t, obj["tx_counter"]),
            rx_counter=checked_int(t.uint32_t, obj["rx_counter"]),
            seq=checked_int(t.uint8_t, seq),
        )


@dataclasses.dataclass(frozen=True)
class BackupDevice(t.BaseDataclassMixin):
    """A device listed in a stored backup. Captured backups never contain any."""

    ieee: t.EUI64
    nwk: t.NWK | None = None
    is_child: bool = True
    link_key: Key | None = None

    def as_dict(self) -> dict[str, Any]:
        obj: dict[str, Any] = {
            "ieee_address": self.ieee.serialize()[::-1].hex(),
            "nwk_address": (
                self.nwk.serialize()[::-1].hex() if self.nwk is not None else None
            ),
            "is_child": self.is_child,
        }

        if self.link_key is not None:
            obj["link_key"] = self.link_key.as_dict()

        return obj

    @classmethod
    def from_dict(cls, obj: dict[str, Any], *, link_key_seq: int = 0) -> BackupDevice:
        if obj["nwk_address"] is not None:
            nwk = t.NWK.convert(obj["nwk_address"])
        else:
            nwk = None

        if "link_key" in obj:
            link_key = Key.from_dict(obj["link_key"], seq=link_key_seq)
        else:
            link_key = None

        return cls(
            ieee=t.EUI64.convert(obj["ieee_address"]),
            nwk=nwk,
            # The `is_child` key is optional
            is_child=obj.get("is_child", True),
            link_key=link_key,
        )
