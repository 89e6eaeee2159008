"""
Platform REST client.

Authenticates the adapter as a platform device (the returned token doubles
as the MQTT username) and reads the two configuration collections at the
start of every scan window:

* ``BLE_Device_Filters``: rows of ``{"ble_uuid": str, "enabled": bool}``;
* ``BLE_Adapter_Config``: one row with ``publish_topic``,
  ``discovery_scan_seconds``, ``discovery_pause_seconds``, ``handle_removed``
  and ``handle_changed`` (all nullable).
"""

from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional, Tuple

import requests

from bleadapter.bt_ref.utils import canonical_uuid, valid_uuid
from bleadapter.core import config
from bleadapter.core.config import AdapterConfig
from bleadapter.core.errors import BrokerError, ConfigError
from bleadapter.core.log import get_logger

__all__ = ["PlatformClient"]

_log = get_logger(__name__)


class PlatformClient:
    def __init__(
        self,
        platform_url: str,
        system_key: str,
        system_secret: str,
        session: Optional[requests.Session] = None,
        timeout: float = config.HTTP_TIMEOUT,
    ):
        self.platform_url = platform_url.rstrip("/")
        self.system_key = system_key
        self.system_secret = system_secret
        self.timeout = timeout
        self.token: Optional[str] = None
        self._session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {
            "ClearBlade-SystemKey": self.system_key,
            "ClearBlade-SystemSecret": self.system_secret,
            "Accept": "application/json",
        }
        if self.token:
            headers["ClearBlade-DeviceToken"] = self.token
        return headers

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def authenticate(self, device_name: str, password: str) -> str:
        """Authenticate as *device_name* and return the device token."""
        url = f"{self.platform_url}/api/v/4/devices/{self.system_key}/auth"
        try:
            response = self._session.post(
                url,
                json={"deviceName": device_name, "password": password},
                headers=self._headers(),
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise BrokerError("authenticate", str(exc)) from exc
        token = body.get("deviceToken") if isinstance(body, dict) else None
        if not token:
            raise BrokerError("authenticate", "no deviceToken in response")
        self.token = token
        _log.info("[+] Authenticated as device %s", device_name)
        return token

    def authenticate_forever(
        self,
        device_name: str,
        password: str,
        stop_event: Optional[threading.Event] = None,
        retry_interval: float = config.AUTH_RETRY_INTERVAL,
    ) -> Optional[str]:
        """Retry :meth:`authenticate` until it works; None if *stop_event* fires first."""
        stop_event = stop_event or threading.Event()
        while not stop_event.is_set():
            try:
                return self.authenticate(device_name, password)
            except BrokerError as exc:
                _log.warning("[-] Error authenticating platform broker: %s", exc)
                _log.warning("[-] Will retry in %s seconds...", retry_interval)
            stop_event.wait(retry_interval)
        return None

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------
    def get_collection(self, name: str) -> List[Dict[str, Any]]:
        """Return every row of collection *name*."""
        url = f"{self.platform_url}/api/v/1/collection/{self.system_key}/{name}"
        try:
            response = self._session.get(url, headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise ConfigError(f"Unable to query collection {name}: {exc}") from exc
        rows = body.get("DATA") if isinstance(body, dict) else None
        if not isinstance(rows, list):
            raise ConfigError(f"Collection {name} returned no DATA list")
        return [row for row in rows if isinstance(row, dict)]

    def load_filters(self) -> Tuple[str, ...]:
        """UUIDs of every enabled filter row, canonical lowercase."""
        uuids = []
        for row in self.get_collection(config.DEVICE_FILTERS_COLLECTION):
            if row.get("enabled") is not True:
                continue
            uuid = row.get("ble_uuid")
            if not isinstance(uuid, str) or not valid_uuid(uuid):
                _log.warning("[-] Ignoring invalid filter UUID %r", uuid)
                continue
            uuids.append(canonical_uuid(uuid))
        if not uuids:
            _log.info("[*] No device filters enabled.")
        return tuple(uuids)

    def load_adapter_config(self, defaults: AdapterConfig) -> AdapterConfig:
        """Build the next window's config; any field that cannot be read keeps its default."""
        try:
            filters = self.load_filters()
        except ConfigError as exc:
            _log.warning("[-] Device filters could not be retrieved. Using defaults. Error: %s", exc)
            filters = defaults.filters

        try:
            rows = self.get_collection(config.ADAPTER_CONFIG_COLLECTION)
        except ConfigError as exc:
            _log.warning("[-] Adapter configuration could not be retrieved. Using defaults. Error: %s", exc)
            return defaults.with_changes(filters=filters)
        if not rows:
            _log.warning("[-] Adapter configuration collection is empty. Using defaults.")
            return defaults.with_changes(filters=filters)

        return _merge_row(rows[0], defaults).with_changes(filters=filters)


def _seconds(row: Dict[str, Any], key: str, default: float) -> float:
    value = row.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        _log.warning("[-] Ignoring invalid %s=%r", key, value)
        return default
    return int(value)


def _flag(row: Dict[str, Any], key: str, default: bool) -> bool:
    value = row.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        _log.warning("[-] Ignoring invalid %s=%r", key, value)
        return default
    return value


def _topic(row: Dict[str, Any], key: str, default: str) -> str:
    value = row.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip().strip("/")
    if value is not None:
        _log.warning("[-] Ignoring invalid %s=%r", key, value)
    return default


def _merge_row(row: Dict[str, Any], defaults: AdapterConfig) -> AdapterConfig:
    # subscribe_topic stays local: the broker only subscribes on connect
    return defaults.with_changes(
        publish_topic=_topic(row, "publish_topic", defaults.publish_topic),
        scan_interval=_seconds(row, "discovery_scan_seconds", defaults.scan_interval),
        pause_interval=_seconds(row, "discovery_pause_seconds", defaults.pause_interval),
        handle_removed=_flag(row, "handle_removed", defaults.handle_removed),
        handle_changed=_flag(row, "handle_changed", defaults.handle_changed),
    )
