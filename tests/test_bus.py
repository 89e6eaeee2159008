from __future__ import annotations

import pytest

dbus = pytest.importorskip("dbus")
pytest.importorskip("gi")

from bleadapter.dbuslayer.base import ObjectPath  # noqa: E402
from bleadapter.dbuslayer.bus import dbus_to_python, python_to_dbus  # noqa: E402


def test_dbus_to_python_unwraps_managed_objects() -> None:
    value = dbus.Dictionary(
        {
            dbus.ObjectPath("/org/bluez/hci0/dev_A0_E6_F8_8A_4D_5C"): dbus.Dictionary(
                {
                    dbus.String("org.bluez.Device1"): dbus.Dictionary(
                        {
                            "Address": dbus.String("A0:E6:F8:8A:4D:5C"),
                            "Paired": dbus.Boolean(False),
                            "RSSI": dbus.Int16(-59),
                            "UUIDs": dbus.Array([dbus.String("180f")], signature="s"),
                            "ManufacturerData": dbus.Dictionary(
                                {dbus.UInt16(0x5C60): dbus.Array([dbus.Byte(1), dbus.Byte(2)], signature="y")},
                                signature="qv",
                            ),
                        },
                        signature="sv",
                    )
                },
                signature="sa{sv}",
            )
        },
        signature="oa{sa{sv}}",
    )
    converted = dbus_to_python(value)
    device = converted["/org/bluez/hci0/dev_A0_E6_F8_8A_4D_5C"]["org.bluez.Device1"]
    assert device["Address"] == "A0:E6:F8:8A:4D:5C"
    assert device["Paired"] is False
    assert device["RSSI"] == -59 and type(device["RSSI"]) is int
    assert device["UUIDs"] == ["180f"]
    assert device["ManufacturerData"] == {0x5C60: b"\x01\x02"}


def test_python_to_dbus_types_arguments() -> None:
    path = python_to_dbus(ObjectPath("/org/bluez/hci0/dev_A0_E6_F8_8A_4D_5C"))
    assert isinstance(path, dbus.ObjectPath)

    value = python_to_dbus(b"\x01\x02")
    assert isinstance(value, dbus.Array) and value.signature == "y"

    options = python_to_dbus({"Transport": "le", "UUIDs": ["180f"]})
    assert isinstance(options, dbus.Dictionary) and options.signature == "sv"
    assert options["UUIDs"].signature == "s"
