"""
Bluetooth utility functions.

Address/path conversion, UUID canonicalisation and the byte helpers used when
device values cross the JSON boundary.
"""

import re
from typing import Iterable, List, Sequence

from . import constants

__all__ = [
    "byteArrayToHexString",
    "device_address_to_path",
    "parse_address_from_path",
    "is_device_path",
    "canonical_uuid",
    "valid_uuid",
    "uuids_intersect",
    "uuids_include",
    "bytes_to_list",
    "list_to_bytes",
]

_mac_address = re.compile(r"^([0-9A-F]{2}:){5}[0-9A-F]{2}$")
_uuid16 = re.compile(r"^[0-9a-f]{4}$")
_uuid32 = re.compile(r"^[0-9a-f]{8}$")
_uuid128 = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
)


def byteArrayToHexString(bytes):
    hex_string = ""
    for byte in bytes:
        hex_byte = "%02X" % byte
        hex_string = hex_string + hex_byte
    return hex_string


def device_address_to_path(bdaddr, adapter_path):
    # e.g.convert 12:34:44:00:66:D5 on adapter hci0 to /org/bluez/hci0/dev_12_34_44_00_66_D5
    path = adapter_path + "/" + constants.DEVICE_PATH_MARKER + bdaddr.upper().replace(":", "_")
    return path


def parse_address_from_path(path: str) -> str:
    """Return the MAC address encoded in a BlueZ device path.

    ``/org/bluez/hci0/dev_A0_E6_F8_8A_4D_5C/service000c`` gives
    ``A0:E6:F8:8A:4D:5C``.  A value that already is an address is returned
    upper-cased so the conversion can be applied repeatedly; anything else
    gives ``""``.
    """
    if not path:
        return ""
    marker = path.rfind(constants.DEVICE_PATH_MARKER)
    if marker < 0:
        candidate = path.upper()
        return candidate if _mac_address.match(candidate) else ""
    tail = path[marker + len(constants.DEVICE_PATH_MARKER):]
    # Drop any GATT sub-object below the device node
    tail = tail.split("/", 1)[0]
    return tail.replace("_", ":").upper()


def is_device_path(path: str) -> bool:
    """True when *path* is a device node (not one of its GATT children)."""
    marker = path.rfind("/" + constants.DEVICE_PATH_MARKER)
    return marker >= 0 and "/" not in path[marker + 1:]


def canonical_uuid(uuid: str) -> str:
    """Normalise *uuid* to lowercase 128-bit form.

    16-bit (``180F``) and 32-bit (``0000180F``) short forms are substituted
    into the Bluetooth base UUID; other values are only lower-cased.
    """
    value = (uuid or "").strip().lower()
    if _uuid16.match(value):
        return "0000" + value + constants.BASE_UUID__SUFFIX
    if _uuid32.match(value):
        return value + constants.BASE_UUID__SUFFIX
    return value


def valid_uuid(uuid: str) -> bool:
    value = (uuid or "").strip().lower()
    return bool(_uuid16.match(value) or _uuid32.match(value) or _uuid128.match(value))


def uuids_intersect(advertised: Iterable[str], filters: Sequence[str]) -> bool:
    """True when *filters* is empty or shares at least one UUID with *advertised*."""
    if not filters:
        return True
    wanted = {canonical_uuid(u) for u in filters}
    return any(canonical_uuid(u) in wanted for u in advertised)


def uuids_include(advertised: Iterable[str], required: Sequence[str]) -> bool:
    """True when every UUID in *required* is present in *advertised*."""
    have = {canonical_uuid(u) for u in advertised}
    return all(canonical_uuid(u) in have for u in required)


def bytes_to_list(value) -> List[int]:
    return [int(b) for b in bytes(value or b"")]


def list_to_bytes(values) -> bytes:
    """Convert a JSON number array into bytes.

    Raises ``ValueError`` for entries that are not integers in 0..255 and
    ``TypeError`` when *values* is not a list.
    """
    if not isinstance(values, (list, tuple)):
        raise TypeError(f"expected a list of byte values, got {type(values).__name__}")
    out = bytearray()
    for item in values:
        if isinstance(item, bool):
            raise ValueError(f"invalid byte value {item!r}")
        if isinstance(item, float) and item.is_integer():
            item = int(item)
        if not isinstance(item, int) or not 0 <= item <= 255:
            raise ValueError(f"invalid byte value {item!r}")
        out.append(item)
    return bytes(out)
