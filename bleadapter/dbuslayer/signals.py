"""
Signal classification.

Raw bus signals (``{name, path, body}``) coming out of the discovery engine are
turned into typed events here, once, so the dispatcher and handlers work with
named fields instead of positional variant bodies.

Example raw InterfacesAdded signal::

    RawSignal(
        name="org.freedesktop.DBus.ObjectManager.InterfacesAdded",
        path="/",
        body=[
            "/org/bluez/hci0/dev_A0_E6_F8_8A_4D_5C",
            {"org.bluez.Device1": {"Address": "A0:E6:F8:8A:4D:5C", ...},
             "org.freedesktop.DBus.Properties": {}},
        ],
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Tuple, Union

from bleadapter.bt_ref.constants import (
    BLE_INTERFACES,
    DEVICE_INTERFACE,
    PROP_ADDRESS,
    SIGNAL_INTERFACES_ADDED,
    SIGNAL_INTERFACES_REMOVED,
    SIGNAL_PROPERTIES_CHANGED,
)
from bleadapter.bt_ref.utils import parse_address_from_path
from bleadapter.core.log import get_logger

__all__ = [
    "RawSignal",
    "InterfaceAdded",
    "InterfaceRemoved",
    "PropertiesChanged",
    "Unknown",
    "Event",
    "classify",
]

_log = get_logger(__name__)


@dataclass(frozen=True)
class RawSignal:
    """A bus signal with its body already converted to plain Python values."""

    name: str
    path: str
    body: Tuple[Any, ...] = ()
    sender: str = ""


@dataclass(frozen=True)
class InterfaceAdded:
    path: str
    interface: str
    properties: Mapping[str, Any] = field(default_factory=dict)

    @property
    def address(self) -> str:
        value = self.properties.get(PROP_ADDRESS)
        return str(value).upper() if value else parse_address_from_path(self.path)

    @property
    def is_device(self) -> bool:
        return self.interface == DEVICE_INTERFACE


@dataclass(frozen=True)
class InterfaceRemoved:
    path: str
    interfaces: Tuple[str, ...] = ()

    @property
    def address(self) -> str:
        return parse_address_from_path(self.path)

    @property
    def is_device(self) -> bool:
        return DEVICE_INTERFACE in self.interfaces


@dataclass(frozen=True)
class PropertiesChanged:
    path: str
    interface: str
    changed: Mapping[str, Any] = field(default_factory=dict)
    invalidated: Tuple[str, ...] = ()

    @property
    def address(self) -> str:
        value = self.changed.get(PROP_ADDRESS)
        return str(value).upper() if value else parse_address_from_path(self.path)

    @property
    def is_device(self) -> bool:
        return self.interface == DEVICE_INTERFACE


@dataclass(frozen=True)
class Unknown:
    name: str
    path: str = ""
    reason: str = ""


Event = Union[InterfaceAdded, InterfaceRemoved, PropertiesChanged, Unknown]


def _interfaces_added(raw: RawSignal) -> List[Event]:
    if len(raw.body) < 2 or not isinstance(raw.body[1], Mapping):
        return [Unknown(raw.name, raw.path, "malformed InterfacesAdded body")]
    path = str(raw.body[0])
    interfaces: Dict[str, Mapping[str, Any]] = raw.body[1]
    # BlueZ object-tree order so an adapter is seen before its devices
    events: List[Event] = [
        InterfaceAdded(path, iface, dict(interfaces[iface] or {}))
        for iface in BLE_INTERFACES
        if iface in interfaces
    ]
    if not events:
        return [Unknown(raw.name, path, "no BlueZ interface added")]
    return events


def _interfaces_removed(raw: RawSignal) -> List[Event]:
    if len(raw.body) < 2 or isinstance(raw.body[1], (str, bytes, Mapping)):
        return [Unknown(raw.name, raw.path, "malformed InterfacesRemoved body")]
    return [InterfaceRemoved(str(raw.body[0]), tuple(str(i) for i in raw.body[1]))]


def _properties_changed(raw: RawSignal) -> List[Event]:
    if len(raw.body) < 2 or not isinstance(raw.body[1], Mapping):
        return [Unknown(raw.name, raw.path, "malformed PropertiesChanged body")]
    interface = str(raw.body[0])
    if interface not in BLE_INTERFACES:
        return [Unknown(raw.name, raw.path, f"properties changed on {interface}")]
    invalidated = tuple(str(p) for p in raw.body[2]) if len(raw.body) > 2 and raw.body[2] else ()
    return [PropertiesChanged(raw.path, interface, dict(raw.body[1]), invalidated)]


_CLASSIFIERS = {
    SIGNAL_INTERFACES_ADDED: _interfaces_added,
    SIGNAL_INTERFACES_REMOVED: _interfaces_removed,
    SIGNAL_PROPERTIES_CHANGED: _properties_changed,
}


def classify(raw: RawSignal) -> List[Event]:
    """Return the typed events carried by *raw* (never empty)."""
    handler = _CLASSIFIERS.get(raw.name)
    if handler is None:
        _log.debug("[DEBUG] Unhandled signal %s on %s", raw.name, raw.path)
        return [Unknown(raw.name, raw.path)]
    return handler(raw)
