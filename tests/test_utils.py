from __future__ import annotations

import pytest

from bleadapter.bt_ref.utils import (
    byteArrayToHexString,
    bytes_to_list,
    canonical_uuid,
    device_address_to_path,
    is_device_path,
    list_to_bytes,
    parse_address_from_path,
    uuids_include,
    uuids_intersect,
    valid_uuid,
)


@pytest.mark.parametrize(
    "path, expected",
    [
        ("/org/bluez/hci0/dev_A0_E6_F8_8A_4D_5C", "A0:E6:F8:8A:4D:5C"),
        ("/org/bluez/hci0/dev_a0_e6_f8_8a_4d_5c", "A0:E6:F8:8A:4D:5C"),
        ("/org/bluez/hci0/dev_A0_E6_F8_8A_4D_5C/service000c/char000d", "A0:E6:F8:8A:4D:5C"),
        ("/org/bluez/hci0", ""),
        ("", ""),
    ],
)
def test_parse_address_from_path(path: str, expected: str) -> None:
    assert parse_address_from_path(path) == expected


def test_parse_address_is_idempotent() -> None:
    once = parse_address_from_path("/org/bluez/hci1/dev_11_22_33_44_55_66")
    assert parse_address_from_path(once) == once == "11:22:33:44:55:66"


def test_device_address_to_path_round_trips() -> None:
    path = device_address_to_path("a0:e6:f8:8a:4d:5c", "/org/bluez/hci0")
    assert path == "/org/bluez/hci0/dev_A0_E6_F8_8A_4D_5C"
    assert parse_address_from_path(path) == "A0:E6:F8:8A:4D:5C"


def test_is_device_path_excludes_gatt_children() -> None:
    assert is_device_path("/org/bluez/hci0/dev_A0_E6_F8_8A_4D_5C")
    assert not is_device_path("/org/bluez/hci0/dev_A0_E6_F8_8A_4D_5C/service000c")
    assert not is_device_path("/org/bluez/hci0")


@pytest.mark.parametrize(
    "uuid, expected",
    [
        ("180F", "0000180f-0000-1000-8000-00805f9b34fb"),
        ("0000180f", "0000180f-0000-1000-8000-00805f9b34fb"),
        ("32F9169F-4FEB-4883-ADE6-1F0127018DB3", "32f9169f-4feb-4883-ade6-1f0127018db3"),
    ],
)
def test_canonical_uuid(uuid: str, expected: str) -> None:
    assert canonical_uuid(uuid) == expected
    assert canonical_uuid(canonical_uuid(uuid)) == expected


def test_valid_uuid() -> None:
    assert valid_uuid("180f")
    assert valid_uuid("32f9169f-4feb-4883-ade6-1f0127018db3")
    assert not valid_uuid("not-a-uuid")
    assert not valid_uuid("")


def test_empty_filter_set_matches_everything() -> None:
    assert uuids_intersect([], [])
    assert uuids_intersect(["180f"], ())


def test_uuids_intersect_compares_canonical_forms() -> None:
    assert uuids_intersect(["0000180f-0000-1000-8000-00805f9b34fb"], ["180F"])
    assert not uuids_intersect(["180a"], ["180f"])
    assert not uuids_intersect([], ["180f"])


def test_uuids_include_requires_all() -> None:
    assert uuids_include(["180f", "180a"], ["180A"])
    assert not uuids_include(["180f"], ["180f", "180a"])
    assert uuids_include([], [])


def test_byte_helpers() -> None:
    assert bytes_to_list(b"\x01\xff") == [1, 255]
    assert bytes_to_list(None) == []
    assert list_to_bytes([1, 2, 255]) == b"\x01\x02\xff"
    assert list_to_bytes([7.0]) == b"\x07"
    assert byteArrayToHexString(b"\x0a\xbc") == "0ABC"


@pytest.mark.parametrize("values", [[256], [-1], [True], ["1"], [1.5]])
def test_list_to_bytes_rejects_bad_entries(values: list) -> None:
    with pytest.raises(ValueError):
        list_to_bytes(values)


def test_list_to_bytes_rejects_non_list() -> None:
    with pytest.raises(TypeError):
        list_to_bytes("0102")
