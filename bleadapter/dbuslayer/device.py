"""Snapshot of a BlueZ *Device1* object.

Optional properties come back as safe defaults: ``""`` for strings, ``0`` for
class/appearance, ``-1`` for RSSI and TX power, empty containers for lists and
data maps.  ``Address``, ``Paired`` and ``Connected`` are always published by
BlueZ and are read without a fallback.
"""

from __future__ import annotations

from typing import Dict, List

from bleadapter.bt_ref.constants import (
    DEVICE_INTERFACE,
    NO_SIGNAL_VALUE,
    PROP_ADAPTER,
    PROP_ADDRESS,
    PROP_ADDRESS_TYPE,
    PROP_ADVERTISING_FLAGS,
    PROP_ALIAS,
    PROP_APPEARANCE,
    PROP_BLOCKED,
    PROP_CLASS,
    PROP_CONNECTED,
    PROP_ICON,
    PROP_LEGACY_PAIRING,
    PROP_MANUFACTURER_DATA,
    PROP_MODALIAS,
    PROP_NAME,
    PROP_PAIRED,
    PROP_RSSI,
    PROP_SERVICE_DATA,
    PROP_SERVICES_RESOLVED,
    PROP_TRUSTED,
    PROP_TX_POWER,
)
from bleadapter.core.log import get_logger
from bleadapter.dbuslayer.base import BluezObject

__all__ = ["Device"]

_log = get_logger(__name__)


class Device(BluezObject):
    """A discovered peripheral (``/org/bluez/hciN/dev_XX_XX_XX_XX_XX_XX``)."""

    interface = DEVICE_INTERFACE

    # ------------------------------------------------------------------
    # Required properties
    # ------------------------------------------------------------------
    def get_address(self) -> str:
        return str(self.properties[PROP_ADDRESS]).upper()

    def has_address(self, address: str) -> bool:
        """Case-insensitive match; a device without an Address never matches."""
        return self._str(PROP_ADDRESS).upper() == (address or "").strip().upper()

    def is_paired(self) -> bool:
        return bool(self.properties[PROP_PAIRED])

    def is_connected(self) -> bool:
        return bool(self.properties[PROP_CONNECTED])

    # ------------------------------------------------------------------
    # Optional properties
    # ------------------------------------------------------------------
    def get_address_type(self) -> str:
        return self._str(PROP_ADDRESS_TYPE)

    def get_alias(self) -> str:
        return self._str(PROP_ALIAS)

    def get_name(self) -> str:
        return self._str(PROP_NAME)

    def get_icon(self) -> str:
        return self._str(PROP_ICON)

    def get_class(self) -> int:
        return self._int(PROP_CLASS)

    def get_appearance(self) -> int:
        return self._int(PROP_APPEARANCE)

    def get_modalias(self) -> str:
        return self._str(PROP_MODALIAS)

    def get_rssi(self) -> int:
        return self._int(PROP_RSSI, NO_SIGNAL_VALUE)

    def get_tx_power(self) -> int:
        return self._int(PROP_TX_POWER, NO_SIGNAL_VALUE)

    def is_trusted(self) -> bool:
        return self._bool(PROP_TRUSTED)

    def is_blocked(self) -> bool:
        return self._bool(PROP_BLOCKED)

    def is_legacy_pairing(self) -> bool:
        return self._bool(PROP_LEGACY_PAIRING)

    def is_services_resolved(self) -> bool:
        return self._bool(PROP_SERVICES_RESOLVED)

    def get_manufacturer_data(self) -> Dict[int, bytes]:
        data = self.properties.get(PROP_MANUFACTURER_DATA) or {}
        return {int(k): bytes(v) for k, v in data.items()}

    def get_service_data(self) -> Dict[str, bytes]:
        data = self.properties.get(PROP_SERVICE_DATA) or {}
        return {str(k): bytes(v) for k, v in data.items()}

    def get_advertising_flags(self) -> bytes:
        return self._bytes(PROP_ADVERTISING_FLAGS)

    def get_adapter(self) -> str:
        return self._str(PROP_ADAPTER)

    def get_services(self) -> List[str]:
        """Paths of the GATT services below this device in the cache."""
        return self._cache.child_paths(self.path)

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------
    def connect(self) -> None:
        _log.debug("[DEBUG] Connect %s", self.path)
        self.call("Connect")

    def disconnect(self) -> None:
        _log.debug("[DEBUG] Disconnect %s", self.path)
        self.call("Disconnect")

    def connect_profile(self, uuid: str) -> None:
        self.call("ConnectProfile", uuid)

    def disconnect_profile(self, uuid: str) -> None:
        self.call("DisconnectProfile", uuid)

    def pair(self) -> None:
        _log.debug("[DEBUG] Pair %s", self.path)
        self.call("Pair")

    def cancel_pairing(self) -> None:
        _log.debug("[DEBUG] CancelPairing %s", self.path)
        self.call("CancelPairing")
