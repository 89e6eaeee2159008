"""Snapshot of a BlueZ *GattCharacteristic1* object.

Only read and write are supported; notification subscription is left to
other tools.
"""

from __future__ import annotations

from typing import List

from bleadapter.bt_ref.constants import (
    GATT_CHARACTERISTIC_INTERFACE,
    PROP_FLAGS,
    PROP_NOTIFYING,
    PROP_SERVICE,
    PROP_UUID,
    PROP_VALUE,
)
from bleadapter.bt_ref.utils import canonical_uuid
from bleadapter.core.log import get_logger
from bleadapter.dbuslayer.base import BluezObject

__all__ = ["Characteristic"]

_log = get_logger(__name__)


class Characteristic(BluezObject):
    """Lightweight wrapper around the BlueZ *GattCharacteristic1* interface."""

    interface = GATT_CHARACTERISTIC_INTERFACE

    def get_uuid(self) -> str:
        return canonical_uuid(self._str(PROP_UUID))

    def get_service(self) -> str:
        return self._str(PROP_SERVICE)

    def get_flags(self) -> List[str]:
        return self._list(PROP_FLAGS)

    def is_notifying(self) -> bool:
        return self._bool(PROP_NOTIFYING)

    def get_value(self) -> bytes:
        """Value cached by BlueZ at the time of the snapshot."""
        return self._bytes(PROP_VALUE)

    # ------------------------------------------------------------------
    # Read / Write helpers
    # ------------------------------------------------------------------
    def read_value(self) -> bytes:
        value = self.call("ReadValue", {})
        _log.debug("[DEBUG] ReadValue %s -> %r", self.path, value)
        return bytes(value or b"")

    def write_value(self, value: bytes) -> None:
        _log.debug("[DEBUG] WriteValue %s <- %r", self.path, value)
        self.call("WriteValue", bytes(value), {})
