"""Snapshot of a BlueZ *GattService1* object."""

from __future__ import annotations

from typing import List

from bleadapter.bt_ref.constants import (
    GATT_SERVICE_INTERFACE,
    PROP_DEVICE,
    PROP_INCLUDES,
    PROP_PRIMARY,
    PROP_UUID,
)
from bleadapter.bt_ref.utils import canonical_uuid
from bleadapter.dbuslayer.base import BluezObject

__all__ = ["Service"]


class Service(BluezObject):
    interface = GATT_SERVICE_INTERFACE

    def get_uuid(self) -> str:
        return canonical_uuid(self._str(PROP_UUID))

    def is_primary(self) -> bool:
        return self._bool(PROP_PRIMARY)

    def get_device(self) -> str:
        return self._str(PROP_DEVICE)

    def get_includes(self) -> List[str]:
        return self._list(PROP_INCLUDES)
