"""Interface of the radio session the backup extractor queries."""

from __future__ import annotations

import abc

from ezsp_backup.ezsp.types import (
    EmberKeyData,
    EmberKeyStruct,
    EmberKeyType,
    EmberNetworkParameters,
    SecurityManagerNetworkKeyInfo,
)
import ezsp_backup.types as t


class DeviceSession(abc.ABC):
    """An open connection to an EZSP coordinator.

    Implementations own the serial link, retries and timeouts. A failed command must
    raise, preferably `DeviceQueryFailed`, and never return a partial result.
    """

    @abc.abstractmethod
    async def get_protocol_version(self) -> int:
        """EZSP protocol version negotiated with the coordinator."""
        raise NotImplementedError()  # pragma: no cover

    @abc.abstractmethod
    async def get_key(self, key_type: EmberKeyType) -> EmberKeyStruct | EmberKeyData:
        """Looks up a key. The result shape depends on the protocol version:
        `EmberKeyStruct` before EZSP 13, `EmberKeyData` from EZSP 13 onwards.
        """
        raise NotImplementedError()  # pragma: no cover

    @abc.abstractmethod
    async def get_network_parameters(self) -> EmberNetworkParameters:
        raise NotImplementedError()  # pragma: no cover

    @abc.abstractmethod
    async def get_network_key_info(self) -> SecurityManagerNetworkKeyInfo:
        """Network key sequence number and frame counter. Only exists in EZSP 13+."""
        raise NotImplementedError()  # pragma: no cover

    @abc.abstractmethod
    async def get_coordinator_ieee(self) -> t.EUI64:
        raise NotImplementedError()  # pragma: no cover
