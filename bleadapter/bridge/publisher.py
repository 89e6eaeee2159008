"""
Device publisher.

Refreshes the object cache, resolves a device by address, applies the UUID
filter set and publishes the device document to
``<device-name>/<publish-topic>``.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List

from bleadapter.bt_ref.constants import DEVICE_INTERFACE, NO_SIGNAL_VALUE
from bleadapter.bt_ref.utils import bytes_to_list, uuids_intersect
from bleadapter.core.config import AdapterConfig
from bleadapter.core.errors import HostBusError
from bleadapter.core.log import get_logger
from bleadapter.dbuslayer.device import Device

__all__ = ["Publisher", "build_device_document"]

_log = get_logger(__name__)


def _data_entries(data: Dict[Any, bytes]) -> List[Dict[str, Any]]:
    return [{"id": key, "data": bytes_to_list(value)} for key, value in sorted(data.items())]


def build_device_document(device: Device) -> Dict[str, Any]:
    """Return the JSON-ready document for *device*.

    Key order and the omission rules are fixed: ``rssi`` and ``txPower`` are
    left out at -1, ``class`` and ``appearance`` at 0, ``icon``, ``modalias``
    and ``advertisingFlags`` when empty.  Byte values are lists of ints.
    """
    doc: Dict[str, Any] = {
        "path": device.path,
        "address": device.get_address(),
        "alias": device.get_alias(),
        "uuids": device.get_uuids(),
    }
    rssi = device.get_rssi()
    if rssi != NO_SIGNAL_VALUE:
        doc["rssi"] = rssi
    doc["interface"] = DEVICE_INTERFACE
    doc["name"] = device.get_name()
    if device.get_icon():
        doc["icon"] = device.get_icon()
    if device.get_class() != 0:
        doc["class"] = device.get_class()
    if device.get_appearance() != 0:
        doc["appearance"] = device.get_appearance()
    if device.get_modalias():
        doc["modalias"] = device.get_modalias()
    tx_power = device.get_tx_power()
    if tx_power != NO_SIGNAL_VALUE:
        doc["txPower"] = tx_power
    doc["manufacturer"] = _data_entries(device.get_manufacturer_data())
    doc["serviceData"] = _data_entries(device.get_service_data())
    doc["servicesResolved"] = device.is_services_resolved()
    flags = device.get_advertising_flags()
    if flags:
        doc["advertisingFlags"] = bytes_to_list(flags)
    doc["paired"] = device.is_paired()
    doc["connected"] = device.is_connected()
    doc["trusted"] = device.is_trusted()
    doc["blocked"] = device.is_blocked()
    doc["adapter"] = device.get_adapter()
    doc["legacyPairing"] = device.is_legacy_pairing()
    return doc


class Publisher:
    """Publishes device documents through the broker adapter."""

    def __init__(self, cache, broker, device_name: str):
        self._cache = cache
        self._broker = broker
        self._device_name = device_name

    def topic_for(self, window: AdapterConfig) -> str:
        return f"{self._device_name}/{window.publish_topic}"

    def publish_device(self, address: str, window: AdapterConfig) -> bool:
        """Publish the current snapshot of *address*; True when it was sent."""
        try:
            self._cache.update()
            device = self._cache.get_device_by_address(address)
        except HostBusError as exc:
            _log.error("[-] Unable to resolve device %s: %s", address, exc)
            return False

        if not uuids_intersect(device.get_uuids(), window.filters):
            _log.debug(
                "[DEBUG] Device %s does not advertise any filtered UUID. Skipping device", address
            )
            return False

        try:
            payload = json.dumps(build_device_document(device))
        except (KeyError, TypeError, ValueError) as exc:
            _log.error("[-] Error marshaling device %s into json: %s", address, exc)
            return False

        topic = self.topic_for(window)
        _log.debug("[DEBUG] Publishing message to %s: %s", topic, payload)
        return self._broker.publish(topic, payload, window.qos)
