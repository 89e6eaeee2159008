"""Core error classes for the BLE adapter."""

from __future__ import annotations

from typing import Optional

from bleadapter.bt_ref.constants import (
    BLUEZ_ERROR_DOES_NOT_EXIST,
    BLUEZ_ERROR_IN_PROGRESS,
    BLUEZ_ERROR_NOT_AUTHORIZED,
    BLUEZ_ERROR_NOT_PERMITTED,
    DBUS_ERROR_NO_REPLY,
    DBUS_ERROR_TIMED_OUT,
    DBUS_ERROR_TIMEOUT,
    DBUS_ERROR_UNKNOWN_OBJECT,
    RESULT_ERR,
    RESULT_ERR_ACCESS_DENIED,
    RESULT_ERR_BROKER,
    RESULT_ERR_COMMAND,
    RESULT_ERR_CONFIG,
    RESULT_ERR_NOT_FOUND,
    RESULT_ERR_NO_REPLY,
    RESULT_ERR_WRONG_STATE,
)


class BleAdapterError(Exception):
    """Base exception for the adapter.

    The `.code` attribute carries one of the RESULT_* values from
    :mod:`bleadapter.bt_ref.constants`.
    """

    def __init__(self, message: str, code: int = RESULT_ERR):
        super().__init__(message)
        self.code = code


class ConfigError(BleAdapterError):
    """Invalid or missing configuration (CLI flags or remote collections)."""

    def __init__(self, message: str):
        super().__init__(message, RESULT_ERR_CONFIG)


class BrokerError(BleAdapterError):
    """Authentication, subscribe or publish failure against the platform."""

    def __init__(self, operation: str, reason: Optional[str] = None):
        message = f"Broker operation failed: {operation}"
        if reason:
            message += f" ({reason})"
        super().__init__(message, RESULT_ERR_BROKER)
        self.operation = operation
        self.reason = reason


class HostBusError(BleAdapterError):
    """Failure talking to BlueZ over the system bus."""

    def __init__(self, message: str, dbus_name: Optional[str] = None, code: int = RESULT_ERR):
        super().__init__(message, code)
        self.dbus_name = dbus_name


class CallTimeout(HostBusError):
    """A bus call exceeded its deadline."""

    def __init__(self, operation: str, dbus_name: Optional[str] = DBUS_ERROR_NO_REPLY):
        super().__init__(f"Operation timed out: {operation}", dbus_name, RESULT_ERR_NO_REPLY)
        self.operation = operation


class ObjectNotFoundError(HostBusError):
    """No object in the cache matches a lookup."""

    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind} {key} not found", code=RESULT_ERR_NOT_FOUND)
        self.kind = kind
        self.key = key


class DeviceNotFoundError(ObjectNotFoundError):
    """Raised when a Bluetooth device cannot be found."""

    def __init__(self, device_address: str):
        super().__init__("Device", device_address)
        self.device_address = device_address


class DiscoveryActiveError(BleAdapterError):
    """A discovery window is already running on this engine."""

    def __init__(self):
        super().__init__("Discovery already active", RESULT_ERR_WRONG_STATE)


class CommandError(BleAdapterError):
    """A command could not be parsed, validated or executed."""

    def __init__(self, message: str, subcommand: Optional[str] = None):
        super().__init__(message, RESULT_ERR_COMMAND)
        self.subcommand = subcommand


_TIMEOUT_NAMES = {DBUS_ERROR_NO_REPLY, DBUS_ERROR_TIMEOUT, DBUS_ERROR_TIMED_OUT}
_NOT_FOUND_NAMES = {DBUS_ERROR_UNKNOWN_OBJECT, BLUEZ_ERROR_DOES_NOT_EXIST}
_DENIED_NAMES = {BLUEZ_ERROR_NOT_AUTHORIZED, BLUEZ_ERROR_NOT_PERMITTED}


def map_dbus_error(exc: Exception, operation: str = "D-Bus operation") -> HostBusError:
    """Return a HostBusError instance for the given D-Bus exception.

    Parameters
    ----------
    exc : dbus.exceptions.DBusException
        The exception raised by dbus-python.  Anything exposing
        ``get_dbus_name()`` is accepted.
    operation : str
        Human readable name of the call, used in the message.

    Returns
    -------
    HostBusError
        ``CallTimeout`` for reply timeouts, ``ObjectNotFoundError`` for
        unknown objects and a plain ``HostBusError`` otherwise.
    """
    if isinstance(exc, HostBusError):
        return exc
    get_name = getattr(exc, "get_dbus_name", None)
    name = get_name() if callable(get_name) else None
    if name in _TIMEOUT_NAMES:
        return CallTimeout(operation, name)
    if name in _NOT_FOUND_NAMES:
        err = ObjectNotFoundError("Object", operation)
        err.dbus_name = name
        return err
    if name in _DENIED_NAMES:
        return HostBusError(f"{operation} not permitted: {exc}", name, RESULT_ERR_ACCESS_DENIED)
    if name == BLUEZ_ERROR_IN_PROGRESS:
        return HostBusError(f"{operation} already in progress", name, RESULT_ERR_WRONG_STATE)
    return HostBusError(f"{operation} failed: {exc}", name)


__all__ = [
    "BleAdapterError",
    "ConfigError",
    "BrokerError",
    "HostBusError",
    "CallTimeout",
    "ObjectNotFoundError",
    "DeviceNotFoundError",
    "DiscoveryActiveError",
    "CommandError",
    "map_dbus_error",
]
