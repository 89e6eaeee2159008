"""
BlueZ object cache.

Keeps a snapshot of everything ``GetManagedObjects`` reports and hands out
typed objects from it.  The snapshot is replaced wholesale by :meth:`update`;
readers always see a complete snapshot, never a partially refreshed one.

The cache also owns the bus match rules and multiplexes incoming signals: the
transport delivers every signal to :meth:`ObjectCache._on_signal`, which fans
it out to each queue handed out by :meth:`signal_channel`.
"""

from __future__ import annotations

import queue
import threading
from collections import Counter
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

from bleadapter.bt_ref.constants import (
    ADAPTER_INTERFACE,
    DEVICE_INTERFACE,
    GATT_CHARACTERISTIC_INTERFACE,
    GATT_DESCRIPTOR_INTERFACE,
    GATT_SERVICE_INTERFACE,
)
from bleadapter.bt_ref.utils import canonical_uuid, uuids_include
from bleadapter.core import config
from bleadapter.core.errors import (
    DeviceNotFoundError,
    HostBusError,
    ObjectNotFoundError,
)
from bleadapter.core.log import get_logger
from bleadapter.dbuslayer.adapter import Adapter
from bleadapter.dbuslayer.base import BluezObject
from bleadapter.dbuslayer.characteristic import Characteristic
from bleadapter.dbuslayer.descriptor import Descriptor
from bleadapter.dbuslayer.device import Device
from bleadapter.dbuslayer.service import Service
from bleadapter.dbuslayer.signals import RawSignal

__all__ = ["ObjectCache"]

_log = get_logger(__name__)

ManagedObjects = Dict[str, Dict[str, Dict[str, Any]]]
T = TypeVar("T", bound=BluezObject)


class ObjectCache:
    """Snapshot of the BlueZ object tree with typed lookups.

    Parameters
    ----------
    transport :
        Object providing ``start``, ``get_managed_objects``, ``call``,
        ``add_match``, ``remove_match`` and ``close``.  Production code uses
        :class:`~bleadapter.dbuslayer.bus.SystemBusTransport`.
    adapter_name : str, optional
        Restrict :meth:`get_adapter` to ``/org/bluez/<adapter_name>``.
    call_timeout : float
        Deadline in seconds for every method call made through the cache.
    """

    def __init__(
        self,
        transport,
        adapter_name: Optional[str] = None,
        call_timeout: float = config.CALL_TIMEOUT,
    ):
        self._transport = transport
        self.adapter_name = adapter_name
        self.call_timeout = call_timeout
        self._lock = threading.Lock()
        self._objects: ManagedObjects = {}
        self._subscribers: List[queue.Queue] = []
        self._matches: Counter = Counter()
        self._closed = False
        self._transport.start(self._on_signal)

    @classmethod
    def open(cls, transport=None, adapter_name: Optional[str] = None) -> "ObjectCache":
        """Connect to the system bus (unless *transport* is given) and load the cache."""
        if transport is None:
            # Import here so the rest of the package works without dbus-python
            from bleadapter.dbuslayer.bus import SystemBusTransport

            transport = SystemBusTransport()
        cache = cls(transport, adapter_name)
        try:
            cache.update()
        except HostBusError:
            cache.close()
            raise
        _log.info("[+] Object cache opened with %d objects", len(cache.objects()))
        return cache

    def close(self) -> None:
        """Release signal subscribers and match rules, then close the transport."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            subscribers, self._subscribers = self._subscribers, []
            for channel in subscribers:
                channel.put(None)
            rules = list(self._matches.elements())
            self._matches.clear()
        for rule in rules:
            try:
                self._transport.remove_match(rule)
            except HostBusError as exc:
                _log.warning("[-] Unable to remove match rule %s: %s", rule, exc)
        self._transport.close()
        _log.debug("[DEBUG] Object cache closed")

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------
    def update(self) -> None:
        """Replace the snapshot with a fresh ``GetManagedObjects`` result."""
        objects = self._transport.get_managed_objects(self.call_timeout)
        with self._lock:
            self._objects = objects
        _log.debug("[DEBUG] Object cache updated: %d objects", len(objects))

    def objects(self) -> ManagedObjects:
        with self._lock:
            return self._objects

    def child_paths(self, path: str, interface: str = GATT_SERVICE_INTERFACE) -> List[str]:
        prefix = path.rstrip("/") + "/"
        return sorted(
            p for p, ifaces in self.objects().items() if p.startswith(prefix) and interface in ifaces
        )

    def describe(self) -> str:
        """Multi-line dump of every cached object, for debug logging."""
        out = []
        for path, interfaces in sorted(self.objects().items()):
            out.append(path)
            for iface, props in sorted(interfaces.items()):
                out.append(f"\t{iface}")
                for key in sorted(props):
                    out.append(f"\t\t{key}: {props[key]!r}")
        return "\n".join(out)

    # ------------------------------------------------------------------
    # Typed lookups
    # ------------------------------------------------------------------
    def _all(self, interface: str, kind: Type[T]) -> List[T]:
        return [
            kind(self, path, ifaces[interface])
            for path, ifaces in sorted(self.objects().items())
            if interface in ifaces
        ]

    def _find_one(
        self,
        interface: str,
        kind: Type[T],
        predicate: Callable[[T], bool],
        label: str,
        key: str,
    ) -> T:
        matches = [obj for obj in self._all(interface, kind) if predicate(obj)]
        if not matches:
            if kind is Device:
                raise DeviceNotFoundError(key)
            raise ObjectNotFoundError(label, key)
        if len(matches) > 1:
            raise HostBusError(f"Found {len(matches)} instances of {label} {key}")
        return matches[0]

    def get_adapter(self) -> Adapter:
        name = self.adapter_name
        return self._find_one(
            ADAPTER_INTERFACE,
            Adapter,
            lambda a: name is None or a.path.rstrip("/").endswith("/" + name),
            "Adapter",
            name or "(any)",
        )

    def get_device_by_address(self, address: str) -> Device:
        wanted = (address or "").strip().upper()
        return self._find_one(
            DEVICE_INTERFACE,
            Device,
            lambda d: d.has_address(wanted),
            "Device",
            wanted,
        )

    def get_device_by_name(self, name: str) -> Device:
        return self._find_one(
            DEVICE_INTERFACE, Device, lambda d: d.get_name() == name, "Device", name
        )

    def get_devices(self, *uuids: str) -> List[Device]:
        """Every cached device advertising all of *uuids* (all devices when none)."""
        return [d for d in self._all(DEVICE_INTERFACE, Device) if uuids_include(d.get_uuids(), uuids)]

    @staticmethod
    def _scoped(obj: BluezObject, device: Optional[Device]) -> bool:
        return device is None or obj.path.startswith(device.path.rstrip("/") + "/")

    def get_service(self, uuid: str, device: Optional[Device] = None) -> Service:
        wanted = canonical_uuid(uuid)
        return self._find_one(
            GATT_SERVICE_INTERFACE,
            Service,
            lambda s: s.get_uuid() == wanted and self._scoped(s, device),
            "GATT service",
            wanted,
        )

    def get_characteristic(self, uuid: str, device: Optional[Device] = None) -> Characteristic:
        wanted = canonical_uuid(uuid)
        return self._find_one(
            GATT_CHARACTERISTIC_INTERFACE,
            Characteristic,
            lambda c: c.get_uuid() == wanted and self._scoped(c, device),
            "GATT characteristic",
            wanted,
        )

    def get_descriptor(self, uuid: str, device: Optional[Device] = None) -> Descriptor:
        wanted = canonical_uuid(uuid)
        return self._find_one(
            GATT_DESCRIPTOR_INTERFACE,
            Descriptor,
            lambda d: d.get_uuid() == wanted and self._scoped(d, device),
            "GATT descriptor",
            wanted,
        )

    def read_characteristic(self, uuid: str, device: Optional[Device] = None) -> bytes:
        return self.get_characteristic(uuid, device).read_value()

    def write_characteristic(self, uuid: str, value: bytes, device: Optional[Device] = None) -> None:
        self.get_characteristic(uuid, device).write_value(value)

    # ------------------------------------------------------------------
    # Method calls
    # ------------------------------------------------------------------
    def call_method(self, path: str, interface: str, method: str, *args: Any) -> Any:
        return self._transport.call(path, interface, method, args, self.call_timeout)

    # ------------------------------------------------------------------
    # Match rules
    # ------------------------------------------------------------------
    def add_match(self, rule: str) -> None:
        self._transport.add_match(rule)
        with self._lock:
            self._matches[rule] += 1
        _log.debug("[DEBUG] Added match rule %s", rule)

    def remove_match(self, rule: str) -> None:
        with self._lock:
            if self._matches.get(rule, 0) <= 0:
                self._matches.pop(rule, None)
                _log.debug("[DEBUG] Match rule %s not installed", rule)
                return
        self._transport.remove_match(rule)
        with self._lock:
            self._matches[rule] -= 1
            if self._matches[rule] <= 0:
                del self._matches[rule]
        _log.debug("[DEBUG] Removed match rule %s", rule)

    def installed_matches(self) -> List[str]:
        with self._lock:
            return sorted(self._matches.elements())

    # ------------------------------------------------------------------
    # Signal multiplexing
    # ------------------------------------------------------------------
    def signal_channel(self) -> "queue.Queue[Optional[RawSignal]]":
        """Return a new queue receiving every bus signal until released.

        ``None`` on the queue marks the end of the stream.
        """
        channel: queue.Queue = queue.Queue()
        with self._lock:
            if self._closed:
                raise HostBusError("Object cache is closed")
            self._subscribers.append(channel)
        return channel

    def release_signal_channel(self, channel: queue.Queue) -> None:
        """Detach *channel* and close it; nothing is delivered after ``None``."""
        with self._lock:
            if channel not in self._subscribers:
                return
            self._subscribers.remove(channel)
            channel.put(None)

    def _on_signal(self, raw: RawSignal) -> None:
        with self._lock:
            for channel in self._subscribers:
                channel.put(raw)
