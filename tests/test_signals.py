from __future__ import annotations

from bleadapter.bt_ref.constants import (
    ADAPTER_INTERFACE,
    DBUS_PROPERTIES,
    DEVICE_INTERFACE,
    GATT_SERVICE_INTERFACE,
    SIGNAL_INTERFACES_ADDED,
    SIGNAL_INTERFACES_REMOVED,
    SIGNAL_PROPERTIES_CHANGED,
)
from bleadapter.dbuslayer.signals import (
    InterfaceAdded,
    InterfaceRemoved,
    PropertiesChanged,
    RawSignal,
    Unknown,
    classify,
)

from fakes import DEVICE_ADDRESS, DEVICE_PATH, SERVICE_PATH, device_props


def test_device_added_carries_address() -> None:
    raw = RawSignal(
        SIGNAL_INTERFACES_ADDED,
        "/",
        (DEVICE_PATH, {DBUS_PROPERTIES: {}, DEVICE_INTERFACE: device_props()}),
    )
    (event,) = classify(raw)
    assert isinstance(event, InterfaceAdded)
    assert event.is_device
    assert event.path == DEVICE_PATH
    assert event.address == DEVICE_ADDRESS


def test_added_address_falls_back_to_path() -> None:
    raw = RawSignal(SIGNAL_INTERFACES_ADDED, "/", (DEVICE_PATH, {DEVICE_INTERFACE: {}}))
    assert classify(raw)[0].address == DEVICE_ADDRESS


def test_added_events_follow_object_tree_order() -> None:
    raw = RawSignal(
        SIGNAL_INTERFACES_ADDED,
        "/",
        ("/org/bluez/hci0", {GATT_SERVICE_INTERFACE: {}, ADAPTER_INTERFACE: {}}),
    )
    assert [e.interface for e in classify(raw)] == [ADAPTER_INTERFACE, GATT_SERVICE_INTERFACE]


def test_added_without_bluez_interface_is_unknown() -> None:
    raw = RawSignal(SIGNAL_INTERFACES_ADDED, "/", ("/org/bluez", {"org.bluez.AgentManager1": {}}))
    (event,) = classify(raw)
    assert isinstance(event, Unknown)


def test_device_removed() -> None:
    raw = RawSignal(SIGNAL_INTERFACES_REMOVED, "/", (DEVICE_PATH, [DBUS_PROPERTIES, DEVICE_INTERFACE]))
    (event,) = classify(raw)
    assert isinstance(event, InterfaceRemoved)
    assert event.is_device
    assert event.address == DEVICE_ADDRESS


def test_gatt_removed_is_not_a_device() -> None:
    raw = RawSignal(SIGNAL_INTERFACES_REMOVED, "/", (SERVICE_PATH, [GATT_SERVICE_INTERFACE]))
    (event,) = classify(raw)
    assert not event.is_device
    assert event.address == DEVICE_ADDRESS


def test_device_properties_changed() -> None:
    raw = RawSignal(SIGNAL_PROPERTIES_CHANGED, DEVICE_PATH, (DEVICE_INTERFACE, {"RSSI": -40}, ["Name"]))
    (event,) = classify(raw)
    assert isinstance(event, PropertiesChanged)
    assert event.is_device
    assert event.changed == {"RSSI": -40}
    assert event.invalidated == ("Name",)
    assert event.address == DEVICE_ADDRESS


def test_properties_changed_on_foreign_interface_is_unknown() -> None:
    raw = RawSignal(SIGNAL_PROPERTIES_CHANGED, "/org/freedesktop", ("org.freedesktop.NetworkManager", {}, []))
    assert isinstance(classify(raw)[0], Unknown)


def test_malformed_bodies_are_unknown() -> None:
    for name in (SIGNAL_INTERFACES_ADDED, SIGNAL_INTERFACES_REMOVED, SIGNAL_PROPERTIES_CHANGED):
        (event,) = classify(RawSignal(name, "/", ("only-one",)))
        assert isinstance(event, Unknown)
        assert "malformed" in event.reason


def test_unrelated_signal_is_unknown() -> None:
    (event,) = classify(RawSignal("org.freedesktop.DBus.NameOwnerChanged", "/"))
    assert event == Unknown("org.freedesktop.DBus.NameOwnerChanged", "/")
