from __future__ import annotations

import copy
import threading
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional, Tuple

from bleadapter.bt_ref.constants import (
    ADAPTER_INTERFACE,
    DBUS_PROPERTIES,
    DEVICE_INTERFACE,
    GATT_CHARACTERISTIC_INTERFACE,
    GATT_SERVICE_INTERFACE,
)
from bleadapter.dbuslayer.signals import RawSignal

ADAPTER_PATH = "/org/bluez/hci0"
DEVICE_ADDRESS = "A0:E6:F8:8A:4D:5C"
DEVICE_PATH = "/org/bluez/hci0/dev_A0_E6_F8_8A_4D_5C"
SERVICE_PATH = DEVICE_PATH + "/service000c"
CHAR_PATH = SERVICE_PATH + "/char000d"
FILTER_UUID = "32f9169f-4feb-4883-ade6-1f0127018db3"
OTHER_UUID = "0000ffff-0000-1000-8000-00805f9b34fb"
DEVICE_NAME = "edge-01"


def adapter_props(discovering: bool = False) -> Dict[str, Any]:
    return {
        "Address": "00:1A:7D:DA:71:13",
        "Alias": "edge",
        "Class": 0x1C0104,
        "Powered": True,
        "Discoverable": False,
        "Pairable": True,
        "PairableTimeout": 0,
        "DiscoverableTimeout": 180,
        "Discovering": discovering,
        "UUIDs": [],
        "Modalias": "usb:v1D6Bp0246d0535",
    }


def device_props(**overrides: Any) -> Dict[str, Any]:
    props: Dict[str, Any] = {
        "Address": DEVICE_ADDRESS,
        "Alias": "A0-E6-F8-8A-4D-5C",
        "Paired": False,
        "Connected": False,
        "Trusted": False,
        "Blocked": False,
        "LegacyPairing": False,
        "UUIDs": [FILTER_UUID],
        "RSSI": -59,
        "ManufacturerData": {0x5C60: bytes([0x4D, 0x8A, 0xF8, 0xE6, 0xA0, 0x00])},
        "ServicesResolved": False,
        "Adapter": ADAPTER_PATH,
    }
    props.update(overrides)
    return props


def bluez_tree(
    discovering: bool = False, devices: Optional[Dict[str, Dict[str, Any]]] = None, gatt: bool = True
) -> Dict[str, Dict[str, Dict[str, Any]]]:
    tree: Dict[str, Dict[str, Dict[str, Any]]] = {
        "/org/bluez": {"org.bluez.AgentManager1": {}},
        ADAPTER_PATH: {ADAPTER_INTERFACE: adapter_props(discovering), DBUS_PROPERTIES: {}},
    }
    if devices is None:
        devices = {DEVICE_PATH: device_props()}
    for path, props in devices.items():
        tree[path] = {DEVICE_INTERFACE: props, DBUS_PROPERTIES: {}}
    if gatt and DEVICE_PATH in devices:
        tree[SERVICE_PATH] = {
            GATT_SERVICE_INTERFACE: {"UUID": "180f", "Primary": True, "Device": DEVICE_PATH}
        }
        tree[CHAR_PATH] = {
            GATT_CHARACTERISTIC_INTERFACE: {
                "UUID": FILTER_UUID,
                "Service": SERVICE_PATH,
                "Flags": ["read", "write"],
                "Value": b"",
            }
        }
    return tree


class FakeTransport:
    """In-memory stand-in for the system bus transport."""

    def __init__(self, objects: Optional[Dict[str, Any]] = None):
        self.objects = objects if objects is not None else bluez_tree()
        self.calls: List[Tuple[str, str, str, Tuple[Any, ...]]] = []
        self.responses: Dict[Tuple[str, str], Any] = {}
        self.added: List[str] = []
        self.removed: List[str] = []
        self.managed_calls = 0
        self.fail_managed: Optional[Exception] = None
        self.on_signal: Optional[Callable[[RawSignal], None]] = None
        self.started = False
        self.closed = False
        self._lock = threading.Lock()

    def start(self, on_signal: Callable[[RawSignal], None]) -> None:
        self.on_signal = on_signal
        self.started = True

    def close(self) -> None:
        self.closed = True

    def get_managed_objects(self, timeout: float = 5) -> Dict[str, Any]:
        with self._lock:
            self.managed_calls += 1
            if self.fail_managed is not None:
                raise self.fail_managed
            return copy.deepcopy(self.objects)

    def call(self, path: str, interface: str, method: str, args=(), timeout: float = 5) -> Any:
        with self._lock:
            self.calls.append((path, interface, method, tuple(args)))
            response = self.responses.get((interface, method))
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(path, *args)
        return response

    def add_match(self, rule: str) -> None:
        self.added.append(rule)

    def remove_match(self, rule: str) -> None:
        self.removed.append(rule)

    def emit(self, name: str, path: str, *body: Any) -> None:
        assert self.on_signal is not None
        self.on_signal(RawSignal(name=name, path=path, body=tuple(body)))

    def methods(self, interface: Optional[str] = None) -> List[str]:
        with self._lock:
            return [c[2] for c in self.calls if interface is None or c[1] == interface]


class FakeBroker:
    """Records publishes the way BrokerAdapter.publish would send them."""

    def __init__(self, ok: bool = True, connected: bool = True):
        self.ok = ok
        self.connected = connected
        self.published: List[Tuple[str, str, int]] = []
        self._lock = threading.Lock()
        self.sent = threading.Event()

    def publish(self, topic: str, payload: str, qos: int = 2) -> bool:
        with self._lock:
            self.published.append((topic, payload, qos))
        self.sent.set()
        return self.ok

    def is_connected(self) -> bool:
        return self.connected


class FakeMqttClient:
    """Enough of paho's Client for BrokerAdapter."""

    def __init__(self, subscribe_rc: int = 0, publish_rc: int = 0):
        self.subscribe_rc = subscribe_rc
        self.publish_rc = publish_rc
        self.subscriptions: List[Tuple[str, int, int]] = []
        self.published: List[Tuple[str, Any, int]] = []
        self.credentials: Optional[Tuple[str, str]] = None
        self.connected_to: Optional[Tuple[str, int]] = None
        self.loop_running = False
        self.subscribed = threading.Event()
        self._mid = 0
        self.on_connect = None
        self.on_disconnect = None
        self.on_message = None
        self.on_subscribe = None

    def username_pw_set(self, username=None, password=None):
        self.credentials = (username, password)

    def reconnect_delay_set(self, min_delay=1, max_delay=120):
        self.reconnect = (min_delay, max_delay)

    def connect_async(self, host, port=1883, keepalive=60):
        self.connected_to = (host, port)

    def loop_start(self):
        self.loop_running = True

    def loop_stop(self):
        self.loop_running = False

    def disconnect(self):
        self.connected_to = None

    def subscribe(self, topic, qos=0):
        self._mid += 1
        self.subscriptions.append((topic, qos, self._mid))
        self.subscribed.set()
        return self.subscribe_rc, self._mid

    def publish(self, topic, payload=None, qos=0, retain=False):
        self.published.append((topic, payload, qos))
        return SimpleNamespace(rc=self.publish_rc, mid=len(self.published))
