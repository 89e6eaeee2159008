"""
System bus transport built on dbus-python and the GLib main loop.

Everything that touches ``dbus`` types lives here: values are converted to
plain Python on the way in and back to explicit D-Bus types on the way out,
so the rest of the package never sees a ``dbus.*`` object.  Incoming signals
are picked up by a connection-wide message filter running on the GLib main
loop thread.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Optional, Sequence

import dbus
import dbus.exceptions
import dbus.lowlevel
import dbus.mainloop.glib
from gi.repository import GLib

from bleadapter.bt_ref.constants import BLUEZ_SERVICE_NAME, DBUS_OM_IFACE
from bleadapter.core import config
from bleadapter.core.errors import HostBusError, map_dbus_error
from bleadapter.core.log import get_logger
from bleadapter.dbuslayer.base import ObjectPath
from bleadapter.dbuslayer.signals import RawSignal

__all__ = ["SystemBusTransport", "dbus_to_python", "python_to_dbus"]

_log = get_logger(__name__)


def dbus_to_python(data):
    if isinstance(data, (dbus.String, dbus.ObjectPath, dbus.Signature)):
        data = str(data)
    elif isinstance(data, dbus.Boolean):
        data = bool(data)
    elif isinstance(
        data,
        (dbus.Byte, dbus.Int16, dbus.UInt16, dbus.Int32, dbus.UInt32, dbus.Int64, dbus.UInt64),
    ):
        data = int(data)
    elif isinstance(data, dbus.Double):
        data = float(data)
    elif isinstance(data, dbus.ByteArray):
        data = bytes(data)
    elif isinstance(data, dbus.Array):
        if data.signature == "y":
            data = bytes(int(b) for b in data)
        else:
            data = [dbus_to_python(value) for value in data]
    elif isinstance(data, dbus.Struct):
        data = tuple(dbus_to_python(value) for value in data)
    elif isinstance(data, dbus.Dictionary):
        data = {dbus_to_python(k): dbus_to_python(v) for k, v in data.items()}
    return data


def python_to_dbus(value):
    """Give *value* an explicit D-Bus type (calls are made without introspection)."""
    if isinstance(value, ObjectPath):
        return dbus.ObjectPath(value)
    if isinstance(value, (bytes, bytearray)):
        return dbus.Array(list(value), signature="y")
    if isinstance(value, dict):
        return dbus.Dictionary(
            {str(k): python_to_dbus(v) for k, v in value.items()}, signature="sv"
        )
    if isinstance(value, (list, tuple)):
        if all(isinstance(v, str) for v in value):
            return dbus.Array([str(v) for v in value], signature="s")
        return dbus.Array([python_to_dbus(v) for v in value])
    return value


class SystemBusTransport:
    """Private system bus connection plus the GLib loop that dispatches signals."""

    def __init__(self, bus: Optional[dbus.Bus] = None):
        dbus.mainloop.glib.DBusGMainLoop(set_as_default=True)
        try:
            self._bus = bus if bus is not None else dbus.SystemBus(private=True)
        except dbus.exceptions.DBusException as exc:
            raise map_dbus_error(exc, "open system bus") from exc
        self._on_signal: Optional[Callable[[RawSignal], None]] = None
        self._loop: Optional[GLib.MainLoop] = None
        self._loop_thread: Optional[threading.Thread] = None

    def start(self, on_signal: Callable[[RawSignal], None]) -> None:
        self._on_signal = on_signal
        self._bus.add_message_filter(self._message_filter)
        self._loop = GLib.MainLoop()
        self._loop_thread = threading.Thread(
            target=self._loop.run, name="glib-mainloop", daemon=True
        )
        self._loop_thread.start()

    def close(self) -> None:
        try:
            self._bus.remove_message_filter(self._message_filter)
        except (LookupError, ValueError):
            pass
        if self._loop is not None:
            self._loop.quit()
        if self._loop_thread is not None:
            self._loop_thread.join(config.THREAD_JOIN_TIMEOUT)
        self._bus.close()
        _log.debug("[DEBUG] System bus connection closed")

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------
    def _message_filter(self, connection, message):
        if isinstance(message, dbus.lowlevel.SignalMessage) and self._on_signal is not None:
            try:
                raw = RawSignal(
                    name=f"{message.get_interface()}.{message.get_member()}",
                    path=str(message.get_path() or ""),
                    body=tuple(dbus_to_python(arg) for arg in message.get_args_list()),
                    sender=str(message.get_sender() or ""),
                )
                self._on_signal(raw)
            except Exception as exc:  # keep the main loop alive
                _log.error("[-] Failed to dispatch signal: %s", exc, exc_info=True)
        return dbus.lowlevel.HANDLER_RESULT_NOT_YET_HANDLED

    def add_match(self, rule: str) -> None:
        try:
            self._bus.add_match_string(rule)
        except dbus.exceptions.DBusException as exc:
            raise map_dbus_error(exc, f"AddMatch {rule}") from exc

    def remove_match(self, rule: str) -> None:
        try:
            self._bus.remove_match_string(rule)
        except dbus.exceptions.DBusException as exc:
            raise map_dbus_error(exc, f"RemoveMatch {rule}") from exc

    # ------------------------------------------------------------------
    # Method calls
    # ------------------------------------------------------------------
    def call(
        self,
        path: str,
        interface: str,
        method: str,
        args: Sequence[Any] = (),
        timeout: float = config.CALL_TIMEOUT,
    ) -> Any:
        operation = f"{interface}.{method} on {path}"
        try:
            proxy = self._bus.get_object(BLUEZ_SERVICE_NAME, path, introspect=False)
            bound = proxy.get_dbus_method(method, dbus_interface=interface)
            result = bound(*[python_to_dbus(a) for a in args], timeout=timeout)
        except dbus.exceptions.DBusException as exc:
            raise map_dbus_error(exc, operation) from exc
        return dbus_to_python(result)

    def get_managed_objects(self, timeout: float = config.CALL_TIMEOUT) -> Dict[str, Any]:
        objects = self.call("/", DBUS_OM_IFACE, "GetManagedObjects", (), timeout)
        if not isinstance(objects, dict):
            raise HostBusError(f"Unexpected GetManagedObjects reply: {type(objects).__name__}")
        return objects
