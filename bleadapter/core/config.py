"""
Core configuration settings for the BLE adapter.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Tuple, Union

import yaml

from bleadapter.core.errors import ConfigError

# Platform / broker defaults
DEFAULT_PLATFORM_URL = "http://localhost:9000"
DEFAULT_MESSAGING_URL = "localhost:1883"
DEFAULT_MQTT_PORT = 1883

# Remote configuration collections
DEVICE_FILTERS_COLLECTION = "BLE_Device_Filters"
ADAPTER_CONFIG_COLLECTION = "BLE_Adapter_Config"

# Adapter defaults
DEFAULT_ADAPTER = "hci0"
DEFAULT_PUBLISH_TOPIC = "bleadapter/bledevice"
DEFAULT_SUBSCRIBE_TOPIC = "bleadapter/bledevice/command"
RESPONSE_TOPIC_SUFFIX = "response"
DEFAULT_QOS = 2

# Devices advertise at fixed intervals; scan for at least twice the longest one.
DEFAULT_SCAN_INTERVAL = 360  # seconds
# BlueZ drops unpaired, unconnected devices ~3 minutes after discovery stops.
DEFAULT_PAUSE_INTERVAL = 60  # seconds
DEFAULT_HANDLE_REMOVED = False
DEFAULT_HANDLE_CHANGED = False

# Default timeout values (seconds)
CALL_TIMEOUT = 5
ADAPTER_BUSY_WAIT = 5
WINDOW_RETRY_WAIT = 5
NOT_CONNECTED_POLL = 1
SUBSCRIBE_RETRY_INTERVAL = 30
AUTH_RETRY_INTERVAL = 60
MIN_WINDOW_SLEEP = 0.1
THREAD_JOIN_TIMEOUT = 10
RECONNECT_MIN_DELAY = 1
RECONNECT_MAX_DELAY = 30
MQTT_KEEPALIVE = 60
HTTP_TIMEOUT = 30

# Logging configuration
LOG_FILE = os.getenv("BLEADAPTER_LOG_FILE", "/var/log/bleadapter.log")
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5
LOG_MAX_AGE_DAYS = 28
DEFAULT_LOG_LEVEL = "warn"
LOG_LEVELS = {
    "debug": logging.DEBUG,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(frozen=True)
class AdapterConfig:
    """Settings for one scan window.

    A fresh value is built at the start of every window; it is never mutated,
    so threads reading it during the window all see the same settings.
    """

    publish_topic: str = DEFAULT_PUBLISH_TOPIC
    subscribe_topic: str = DEFAULT_SUBSCRIBE_TOPIC
    scan_interval: float = DEFAULT_SCAN_INTERVAL
    pause_interval: float = DEFAULT_PAUSE_INTERVAL
    handle_removed: bool = DEFAULT_HANDLE_REMOVED
    handle_changed: bool = DEFAULT_HANDLE_CHANGED
    qos: int = DEFAULT_QOS
    filters: Tuple[str, ...] = field(default_factory=tuple)

    def with_changes(self, **changes) -> "AdapterConfig":
        return replace(self, **changes)

    @property
    def scan_is_bounded(self) -> bool:
        return self.scan_interval > 0

    @property
    def pauses(self) -> bool:
        """True when a pause follows the scan window."""
        return self.scan_interval > 0 and self.pause_interval > 0


# Keys accepted in a local defaults file and the AdapterConfig field each sets
_FILE_KEYS = {
    "publish_topic": ("publish_topic", str),
    "subscribe_topic": ("subscribe_topic", str),
    "scan_interval": ("scan_interval", (int, float)),
    "pause_interval": ("pause_interval", (int, float)),
    "handle_removed": ("handle_removed", bool),
    "handle_changed": ("handle_changed", bool),
    "qos": ("qos", int),
}


def load_defaults_file(path: Union[str, Path], base: AdapterConfig) -> AdapterConfig:
    """Overlay the YAML mapping in *path* onto *base*.

    Raises ConfigError for unreadable files, unknown keys and wrongly typed
    values.
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Unable to read defaults file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Defaults file {path} must contain a mapping")

    changes = {}
    for key, value in data.items():
        if key not in _FILE_KEYS:
            raise ConfigError(f"Unknown key {key!r} in defaults file {path}")
        attr, kind = _FILE_KEYS[key]
        if isinstance(value, bool) and kind is not bool or not isinstance(value, kind):
            raise ConfigError(f"Invalid value {value!r} for {key} in defaults file {path}")
        if attr == "qos" and value not in (0, 1, 2):
            raise ConfigError(f"qos must be 0, 1 or 2 in defaults file {path}")
        if attr in ("scan_interval", "pause_interval") and value < 0:
            raise ConfigError(f"{key} must not be negative in defaults file {path}")
        changes[attr] = value.strip("/") if isinstance(value, str) else value
    return base.with_changes(**changes)
