"""Snapshot of a BlueZ *Adapter1* object."""

from __future__ import annotations

from typing import Sequence

from bleadapter.bt_ref.constants import (
    ADAPTER_INTERFACE,
    PROP_ADDRESS,
    PROP_ALIAS,
    PROP_CLASS,
    PROP_DISCOVERABLE,
    PROP_DISCOVERABLE_TIMEOUT,
    PROP_DISCOVERING,
    PROP_MODALIAS,
    PROP_NAME,
    PROP_PAIRABLE,
    PROP_PAIRABLE_TIMEOUT,
    PROP_POWERED,
)
from bleadapter.bt_ref.utils import canonical_uuid
from bleadapter.core.log import get_logger
from bleadapter.dbuslayer.base import BluezObject, ObjectPath

__all__ = ["Adapter"]

_log = get_logger(__name__)


class Adapter(BluezObject):
    """The local radio controller (``/org/bluez/hciN``)."""

    interface = ADAPTER_INTERFACE

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    def get_address(self) -> str:
        return self._str(PROP_ADDRESS)

    def get_name(self) -> str:
        return self._str(PROP_NAME)

    def get_alias(self) -> str:
        return self._str(PROP_ALIAS)

    def get_class(self) -> int:
        return self._int(PROP_CLASS)

    def is_powered(self) -> bool:
        return self._bool(PROP_POWERED)

    def is_discoverable(self) -> bool:
        return self._bool(PROP_DISCOVERABLE)

    def is_pairable(self) -> bool:
        return self._bool(PROP_PAIRABLE)

    def get_pairable_timeout(self) -> int:
        return self._int(PROP_PAIRABLE_TIMEOUT)

    def get_discoverable_timeout(self) -> int:
        return self._int(PROP_DISCOVERABLE_TIMEOUT)

    def is_discovering(self) -> bool:
        return self._bool(PROP_DISCOVERING)

    def get_modalias(self) -> str:
        return self._str(PROP_MODALIAS)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------
    def set_discovery_filter(self, uuids: Sequence[str] = ()) -> None:
        """Restrict discovery to LE devices, and to *uuids* when any are given."""
        discovery_filter = {"Transport": "le"}
        if uuids:
            discovery_filter["UUIDs"] = [canonical_uuid(u) for u in uuids]
        _log.debug("[DEBUG] SetDiscoveryFilter on %s: %r", self.path, discovery_filter)
        self.call("SetDiscoveryFilter", discovery_filter)

    def start_discovery(self) -> None:
        _log.debug("[DEBUG] StartDiscovery on %s", self.path)
        self.call("StartDiscovery")

    def stop_discovery(self) -> None:
        _log.debug("[DEBUG] StopDiscovery on %s", self.path)
        self.call("StopDiscovery")

    def remove_device(self, device) -> None:
        """Ask BlueZ to forget *device* (a Device snapshot or object path)."""
        path = getattr(device, "path", device)
        _log.debug("[DEBUG] RemoveDevice %s on %s", path, self.path)
        self.call("RemoveDevice", ObjectPath(path))
