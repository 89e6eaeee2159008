from __future__ import annotations

from bleadapter.bt_ref.constants import (
    RESULT_ERR_ACCESS_DENIED,
    RESULT_ERR_NO_REPLY,
    RESULT_ERR_NOT_FOUND,
    RESULT_ERR_WRONG_STATE,
)
from bleadapter.core.errors import (
    BrokerError,
    CallTimeout,
    DeviceNotFoundError,
    HostBusError,
    ObjectNotFoundError,
    map_dbus_error,
)


class FakeDBusException(Exception):
    def __init__(self, name: str, message: str = "boom"):
        super().__init__(message)
        self._name = name

    def get_dbus_name(self) -> str:
        return self._name


def test_timeouts_map_to_call_timeout() -> None:
    err = map_dbus_error(FakeDBusException("org.freedesktop.DBus.Error.NoReply"), "Connect")
    assert isinstance(err, CallTimeout)
    assert err.code == RESULT_ERR_NO_REPLY
    assert "Connect" in str(err)


def test_unknown_object_maps_to_not_found() -> None:
    err = map_dbus_error(FakeDBusException("org.freedesktop.DBus.Error.UnknownObject"))
    assert isinstance(err, ObjectNotFoundError)
    assert err.code == RESULT_ERR_NOT_FOUND
    assert err.dbus_name == "org.freedesktop.DBus.Error.UnknownObject"


def test_bluez_errors_keep_their_category() -> None:
    denied = map_dbus_error(FakeDBusException("org.bluez.Error.NotAuthorized"), "Pair")
    busy = map_dbus_error(FakeDBusException("org.bluez.Error.InProgress"), "StartDiscovery")
    assert denied.code == RESULT_ERR_ACCESS_DENIED
    assert busy.code == RESULT_ERR_WRONG_STATE


def test_unnamed_errors_become_host_bus_errors() -> None:
    err = map_dbus_error(RuntimeError("socket closed"), "GetManagedObjects")
    assert type(err) is HostBusError
    assert err.dbus_name is None
    assert "socket closed" in str(err)


def test_host_bus_errors_pass_through() -> None:
    original = DeviceNotFoundError("A0:E6:F8:8A:4D:5C")
    assert map_dbus_error(original) is original


def test_broker_error_message() -> None:
    err = BrokerError("subscribe", "not authorised")
    assert str(err) == "Broker operation failed: subscribe (not authorised)"
    assert err.operation == "subscribe"
