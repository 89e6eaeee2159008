"""Snapshot of a BlueZ *GattDescriptor1* object."""

from __future__ import annotations

from typing import List

from bleadapter.bt_ref.constants import (
    GATT_DESCRIPTOR_INTERFACE,
    PROP_CHARACTERISTIC,
    PROP_FLAGS,
    PROP_UUID,
    PROP_VALUE,
)
from bleadapter.bt_ref.utils import canonical_uuid
from bleadapter.dbuslayer.base import BluezObject

__all__ = ["Descriptor"]


class Descriptor(BluezObject):
    interface = GATT_DESCRIPTOR_INTERFACE

    def get_uuid(self) -> str:
        return canonical_uuid(self._str(PROP_UUID))

    def get_characteristic(self) -> str:
        return self._str(PROP_CHARACTERISTIC)

    def get_flags(self) -> List[str]:
        return self._list(PROP_FLAGS)

    def get_value(self) -> bytes:
        return self._bytes(PROP_VALUE)

    def read_value(self) -> bytes:
        return bytes(self.call("ReadValue", {}) or b"")

    def write_value(self, value: bytes) -> None:
        self.call("WriteValue", bytes(value), {})
