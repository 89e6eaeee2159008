from __future__ import annotations

import json
import queue
import threading
import time
from typing import Any, Dict

import pytest

from bleadapter.bt_ref.constants import (
    ADAPTER_INTERFACE,
    DEVICE_INTERFACE,
    GATT_CHARACTERISTIC_INTERFACE,
)
from bleadapter.bridge.commands import CommandProcessor, build_pipeline
from bleadapter.core.config import AdapterConfig
from bleadapter.core.errors import CommandError, HostBusError
from bleadapter.dbuslayer.manager import ObjectCache

from fakes import CHAR_PATH, DEVICE_ADDRESS, DEVICE_NAME, DEVICE_PATH, FILTER_UUID, FakeBroker, FakeTransport

RESPONSE_TOPIC = "edge-01/bleadapter/bledevice/command/response"


@pytest.fixture
def processor(cache: ObjectCache, broker: FakeBroker) -> CommandProcessor:
    return CommandProcessor(cache, broker, DEVICE_NAME, config_source=AdapterConfig)


def run(processor: CommandProcessor, broker: FakeBroker, command: Dict[str, Any]) -> Dict[str, Any]:
    processor.handle_message(json.dumps(command).encode())
    topic, payload, _ = broker.published[-1]
    assert topic == RESPONSE_TOPIC
    return json.loads(payload)


def test_read_connects_reads_and_disconnects(
    processor: CommandProcessor, broker: FakeBroker, transport: FakeTransport
) -> None:
    transport.responses[(GATT_CHARACTERISTIC_INTERFACE, "ReadValue")] = b"\x64"
    response = run(
        processor,
        broker,
        {"command": "read", "deviceAddress": DEVICE_ADDRESS.lower(), "gattCharacteristic": FILTER_UUID},
    )

    assert response["err"] is False
    assert response["response"] == "Connect, Read, Disconnect complete"
    assert response["gattCharacteristicValue"] == [100]
    assert response["command"] == "read"
    assert [(c[0], c[2]) for c in transport.calls] == [
        (DEVICE_PATH, "Connect"),
        (CHAR_PATH, "ReadValue"),
        (DEVICE_PATH, "Disconnect"),
    ]


def test_write_with_stay_connected(processor: CommandProcessor, broker: FakeBroker, transport: FakeTransport) -> None:
    response = run(
        processor,
        broker,
        {
            "command": "write",
            "deviceAddress": DEVICE_ADDRESS,
            "gattCharacteristic": FILTER_UUID.upper(),
            "gattCharacteristicValue": [1, 2, 3],
            "stayConnected": True,
        },
    )
    assert response["err"] is False
    assert response["response"] == "Connect, Write complete"
    assert transport.methods() == ["Connect", "WriteValue"]
    assert transport.calls[-1][3] == (b"\x01\x02\x03", {})


def test_invalid_json_gets_error_response(processor: CommandProcessor, broker: FakeBroker, transport: FakeTransport) -> None:
    processor.handle_message(b"{not json")
    ((topic, payload, _),) = broker.published
    response = json.loads(payload)
    assert topic == RESPONSE_TOPIC
    assert response["err"] is True
    assert response["command"] == ""
    assert response["payload"] == "{not json"
    assert transport.calls == []


def test_non_object_json_is_rejected(processor: CommandProcessor, broker: FakeBroker) -> None:
    result = processor.handle_message("[1, 2]")
    assert result["err"] is True
    assert json.loads(broker.published[0][1])["payload"] == "[1, 2]"


@pytest.mark.parametrize(
    "command, expected",
    [
        ({"command": "pair"}, ["Pair", "Disconnect"]),
        ({"command": "Pair", "stayConnected": True}, ["Pair"]),
        ({"command": "cancelpairing"}, ["CancelPairing", "Disconnect"]),
        ({"command": "connect"}, ["Connect", "Disconnect"]),
        ({"command": "connect", "stayConnected": "true"}, ["Connect", "Disconnect"]),
        ({"command": "disconnect"}, ["Disconnect"]),
        ({"command": "remove"}, ["Remove"]),
        ({"command": "read"}, ["Connect", "Read", "Disconnect"]),
        ({"command": "write", "stayConnected": False}, ["Connect", "Write", "Disconnect"]),
    ],
)
def test_build_pipeline(command: Dict[str, Any], expected: list) -> None:
    assert [step.name for step in build_pipeline(command)] == expected


def test_unknown_command(processor: CommandProcessor, broker: FakeBroker, transport: FakeTransport) -> None:
    with pytest.raises(CommandError):
        build_pipeline({"command": "reboot"})
    response = run(processor, broker, {"command": "reboot", "deviceAddress": DEVICE_ADDRESS})
    assert response["err"] is True
    assert "reboot" in response["response"]
    assert transport.calls == []


@pytest.mark.parametrize(
    "command, missing",
    [
        ({"command": "connect"}, "deviceAddress"),
        ({"command": "read", "deviceAddress": DEVICE_ADDRESS}, "gattCharacteristic"),
        ({"command": "write", "deviceAddress": DEVICE_ADDRESS, "gattCharacteristic": FILTER_UUID}, "gattCharacteristicValue"),
    ],
)
def test_missing_fields_fail_before_any_bus_call(
    processor: CommandProcessor, broker: FakeBroker, transport: FakeTransport, command: Dict[str, Any], missing: str
) -> None:
    managed_calls = transport.managed_calls
    response = run(processor, broker, command)
    assert response["err"] is True
    assert missing in response["response"]
    assert transport.calls == []
    assert transport.managed_calls == managed_calls


def test_invalid_write_value(processor: CommandProcessor, broker: FakeBroker, transport: FakeTransport) -> None:
    response = run(
        processor,
        broker,
        {
            "command": "write",
            "deviceAddress": DEVICE_ADDRESS,
            "gattCharacteristic": FILTER_UUID,
            "gattCharacteristicValue": [1, 300],
        },
    )
    assert response["err"] is True
    assert transport.calls == []


def test_unknown_device(processor: CommandProcessor, broker: FakeBroker, transport: FakeTransport) -> None:
    response = run(processor, broker, {"command": "connect", "deviceAddress": "11:22:33:44:55:66"})
    assert response["err"] is True
    assert "11:22:33:44:55:66" in response["response"]
    assert transport.calls == []


def test_failed_subcommand_is_named(processor: CommandProcessor, broker: FakeBroker, transport: FakeTransport) -> None:
    transport.responses[(DEVICE_INTERFACE, "Connect")] = HostBusError("Connect failed: le-connection-abort-by-local")
    response = run(
        processor,
        broker,
        {"command": "read", "deviceAddress": DEVICE_ADDRESS, "gattCharacteristic": FILTER_UUID},
    )
    assert response["err"] is True
    assert response["response"].startswith("Connect:run - Unable to connect to BLE device")
    assert transport.methods() == ["Connect"]


def test_read_of_missing_characteristic(processor: CommandProcessor, broker: FakeBroker, transport: FakeTransport) -> None:
    response = run(
        processor,
        broker,
        {"command": "read", "deviceAddress": DEVICE_ADDRESS, "gattCharacteristic": "2a19"},
    )
    assert response["err"] is True
    assert response["response"].startswith("Read:run")
    assert transport.methods() == ["Connect"]


def test_failed_write_leaves_device_connected(
    processor: CommandProcessor, broker: FakeBroker, transport: FakeTransport
) -> None:
    transport.responses[(GATT_CHARACTERISTIC_INTERFACE, "WriteValue")] = HostBusError("WriteValue failed: NotPermitted")
    response = run(
        processor,
        broker,
        {
            "command": "write",
            "deviceAddress": DEVICE_ADDRESS,
            "gattCharacteristic": FILTER_UUID,
            "gattCharacteristicValue": [1, 2],
        },
    )
    assert response["err"] is True
    assert response["response"].startswith("Write:run")
    assert transport.methods() == ["Connect", "WriteValue"]


def test_remove_goes_through_adapter(processor: CommandProcessor, broker: FakeBroker, transport: FakeTransport) -> None:
    response = run(processor, broker, {"command": "remove", "deviceAddress": DEVICE_ADDRESS})
    assert response["err"] is False
    assert response["response"] == "Remove complete"
    ((path, iface, method, args),) = transport.calls
    assert (iface, method, args) == (ADAPTER_INTERFACE, "RemoveDevice", (DEVICE_PATH,))


def test_response_uses_current_subscribe_topic(cache: ObjectCache, broker: FakeBroker) -> None:
    window = AdapterConfig(subscribe_topic="ble/cmd", qos=1)
    processor = CommandProcessor(cache, broker, DEVICE_NAME, config_source=lambda: window)
    processor.handle_message(b"nope")
    topic, _, qos = broker.published[0]
    assert topic == "edge-01/ble/cmd/response"
    assert qos == 1


def test_listener_spawns_until_queue_closes(processor: CommandProcessor, broker: FakeBroker) -> None:
    messages: queue.Queue = queue.Queue()
    messages.put(b"bad one")
    messages.put(b"bad two")
    messages.put(None)
    listener = threading.Thread(target=processor.listen, args=(messages, threading.Event()))
    listener.start()
    listener.join(2)
    assert not listener.is_alive()

    for _ in range(50):
        if len(broker.published) == 2:
            break
        time.sleep(0.05)
    assert sorted(json.loads(p)["payload"] for _, p, _ in broker.published) == ["bad one", "bad two"]


def test_listener_stops_on_stop_event(processor: CommandProcessor, broker: FakeBroker) -> None:
    messages: queue.Queue = queue.Queue()
    stop = threading.Event()
    stop.set()
    messages.put(b"ignored")
    processor.listen(messages, stop)
    assert broker.published == []
