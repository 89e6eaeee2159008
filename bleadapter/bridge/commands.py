"""
BLE command processing.

A command message arriving from the broker is parsed, validated, turned into
an ordered pipeline of sub-commands and executed against the device it names.
The original message, with ``err`` and ``response`` added, is published to
``<device-name>/<subscribe-topic>/response``.

Example::

    {"command": "read",
     "deviceAddress": "A0:E6:F8:8A:4D:5C",
     "gattCharacteristic": "32f9169f-4feb-4883-ade6-1f0127018db3"}

runs ``Connect, Read, Disconnect`` and answers with the value read in
``gattCharacteristicValue``.
"""

from __future__ import annotations

import json
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from bleadapter.bt_ref.utils import byteArrayToHexString, canonical_uuid, list_to_bytes
from bleadapter.core import config
from bleadapter.core.config import AdapterConfig
from bleadapter.core.errors import CommandError, HostBusError
from bleadapter.core.log import get_logger
from bleadapter.dbuslayer.device import Device

__all__ = [
    "CommandContext",
    "SubCommand",
    "Pair",
    "CancelPairing",
    "Remove",
    "Connect",
    "Disconnect",
    "Read",
    "Write",
    "PIPELINES",
    "build_pipeline",
    "CommandProcessor",
]

_log = get_logger(__name__)


@dataclass
class CommandContext:
    """State shared by the sub-commands of one command."""

    cache: Any
    command: Dict[str, Any]
    address: str = ""
    characteristic: str = ""
    value: Optional[bytes] = None
    device: Optional[Device] = None
    executed: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Sub-commands
# ---------------------------------------------------------------------------
class SubCommand:
    """One step of a command pipeline."""

    name = "SubCommand"

    def run(self, ctx: CommandContext) -> None:
        raise NotImplementedError

    def fail(self, what: str, cause: Optional[Exception] = None) -> CommandError:
        message = f"{self.name}:run - {what}"
        if cause is not None:
            message += f": {cause}"
        _log.error("[-] %s", message)
        return CommandError(message, self.name)

    def __repr__(self) -> str:
        return self.name


class Pair(SubCommand):
    name = "Pair"

    def run(self, ctx: CommandContext) -> None:
        try:
            ctx.device.pair()
        except HostBusError as exc:
            raise self.fail("Unable to pair with BLE device", exc) from exc


class CancelPairing(SubCommand):
    name = "CancelPairing"

    def run(self, ctx: CommandContext) -> None:
        try:
            ctx.device.cancel_pairing()
        except HostBusError as exc:
            raise self.fail("Unable to cancel pairing with BLE device", exc) from exc


class Remove(SubCommand):
    name = "Remove"

    def run(self, ctx: CommandContext) -> None:
        try:
            adapter = ctx.cache.get_adapter()
        except HostBusError as exc:
            raise self.fail("Unable to retrieve BLE adapter from object cache", exc) from exc
        try:
            adapter.remove_device(ctx.device)
        except HostBusError as exc:
            raise self.fail("Unable to remove BLE device", exc) from exc


class Connect(SubCommand):
    name = "Connect"

    def run(self, ctx: CommandContext) -> None:
        try:
            ctx.device.connect()
        except HostBusError as exc:
            raise self.fail("Unable to connect to BLE device", exc) from exc


class Disconnect(SubCommand):
    name = "Disconnect"

    def run(self, ctx: CommandContext) -> None:
        try:
            ctx.device.disconnect()
        except HostBusError as exc:
            raise self.fail("Unable to disconnect from BLE device", exc) from exc


class Read(SubCommand):
    name = "Read"

    def run(self, ctx: CommandContext) -> None:
        if not ctx.characteristic:
            raise self.fail("Unable to read BLE data. GATT characteristic UUID not provided")
        try:
            # Services are only in the cache once the device is connected
            ctx.cache.update()
            value = ctx.cache.read_characteristic(ctx.characteristic, ctx.device)
        except HostBusError as exc:
            raise self.fail("Unable to read data from BLE device", exc) from exc
        _log.debug("[DEBUG] Value read from BLE device: %s", byteArrayToHexString(value))
        ctx.command["gattCharacteristicValue"] = list(value)


class Write(SubCommand):
    name = "Write"

    def run(self, ctx: CommandContext) -> None:
        if not ctx.characteristic:
            raise self.fail("Unable to write BLE data. GATT characteristic UUID not provided")
        if ctx.value is None:
            raise self.fail("Unable to write BLE data. GATT characteristic value not provided")
        try:
            ctx.cache.update()
            ctx.cache.write_characteristic(ctx.characteristic, ctx.value, ctx.device)
        except HostBusError as exc:
            raise self.fail("Unable to write data to BLE device", exc) from exc


PIPELINES = {
    "pair": (Pair,),
    "cancelpairing": (CancelPairing,),
    "remove": (Remove,),
    "connect": (Connect,),
    "disconnect": (Disconnect,),
    "read": (Connect, Read),
    "write": (Connect, Write),
}

# Commands that never get the trailing Disconnect
_KEEPS_LINK_STATE = {"disconnect", "remove"}


def build_pipeline(command: Dict[str, Any]) -> List[SubCommand]:
    """Return the sub-commands for *command*, auto-Disconnect included."""
    name = str(command.get("command") or "").lower()
    try:
        steps: List[SubCommand] = [step() for step in PIPELINES[name]]
    except KeyError:
        raise CommandError(f"Unknown BLE command {command.get('command')!r}") from None
    if command.get("stayConnected") is not True and name not in _KEEPS_LINK_STATE:
        steps.append(Disconnect())
    return steps


def _validate(cache, command: Dict[str, Any]) -> CommandContext:
    """Check required fields before anything touches the bus."""
    name = str(command.get("command") or "").lower()
    ctx = CommandContext(cache=cache, command=command)

    address = command.get("deviceAddress")
    if not isinstance(address, str) or not address.strip():
        raise CommandError(f"Unable to execute BLE command {name!r}. deviceAddress not provided")
    ctx.address = address.strip().upper()

    if name in ("read", "write"):
        uuid = command.get("gattCharacteristic")
        if not isinstance(uuid, str) or not uuid.strip():
            raise CommandError(
                f"Unable to execute BLE command {name!r}. gattCharacteristic not provided"
            )
        ctx.characteristic = canonical_uuid(uuid)

    if name == "write":
        if command.get("gattCharacteristicValue") is None:
            raise CommandError(
                "Unable to execute BLE command 'write'. gattCharacteristicValue not provided"
            )
        try:
            ctx.value = list_to_bytes(command["gattCharacteristicValue"])
        except (TypeError, ValueError) as exc:
            raise CommandError(
                f"Unable to execute BLE command 'write'. Invalid gattCharacteristicValue: {exc}"
            ) from exc
    return ctx


# ---------------------------------------------------------------------------
# Processor
# ---------------------------------------------------------------------------
class CommandProcessor:
    """Executes command messages and publishes their responses.

    Parameters
    ----------
    cache : ObjectCache
        Object cache used to resolve devices and characteristics.
    broker :
        Anything with ``publish(topic, payload, qos) -> bool``.
    device_name : str
        Platform device name, the first topic level.
    config_source : callable
        Returns the :class:`AdapterConfig` currently in force (topics, QoS).
    """

    def __init__(
        self,
        cache,
        broker,
        device_name: str,
        config_source: Callable[[], AdapterConfig],
    ):
        self._cache = cache
        self._broker = broker
        self._device_name = device_name
        self._config_source = config_source

    def response_topic(self, window: AdapterConfig) -> str:
        return f"{self._device_name}/{window.subscribe_topic}/{config.RESPONSE_TOPIC_SUFFIX}"

    def listen(self, messages: "queue.Queue[Optional[bytes]]", stop_event: threading.Event) -> None:
        """Spawn a worker per message until the queue is closed or *stop_event* is set."""
        _log.debug("[DEBUG] Command listener started")
        while True:
            payload = messages.get()
            if payload is None or stop_event.is_set():
                break
            self.spawn(payload)
        _log.debug("[DEBUG] Command listener stopped")

    def spawn(self, payload: Union[bytes, str]) -> threading.Thread:
        worker = threading.Thread(
            target=self.handle_message, args=(payload,), name="ble-command", daemon=True
        )
        worker.start()
        return worker

    def handle_message(self, payload: Union[bytes, str]) -> Dict[str, Any]:
        """Run one command to completion and publish its response."""
        text = payload.decode("utf-8", errors="replace") if isinstance(payload, (bytes, bytearray)) else str(payload)
        window = self._config_source()
        _log.debug("[DEBUG] Received BLE command: %s", text)

        try:
            command = json.loads(text)
            if not isinstance(command, dict):
                raise ValueError("command must be a JSON object")
        except ValueError as exc:
            _log.error("[-] Unable to parse BLE command %r: %s", text, exc)
            response = {
                "command": "",
                "err": True,
                "response": f"Unable to parse BLE command: {exc}",
                "payload": text,
            }
            self._respond(response, window)
            return response

        try:
            ctx = self.execute(command)
        except CommandError as exc:
            self._finish(command, True, str(exc), window)
        else:
            self._finish(command, False, f"{', '.join(ctx.executed)} complete", window)
        return command

    def execute(self, command: Dict[str, Any]) -> CommandContext:
        """Validate and run *command*; raises CommandError on the first failure.

        The pipeline stops at the failing step, so the trailing Disconnect
        of a read or write is not sent when the Read or Write step fails
        after Connect succeeded. The device stays connected until a later
        ``disconnect`` command or until BlueZ drops the idle link; the error
        response is what tells the caller to clean up.
        """
        pipeline = build_pipeline(command)
        ctx = _validate(self._cache, command)
        _log.debug("[DEBUG] Sub-commands: %s", pipeline)

        try:
            self._cache.update()
            ctx.device = self._cache.get_device_by_address(ctx.address)
        except HostBusError as exc:
            raise CommandError(
                f"Unable to execute BLE command {command.get('command')!r}. Error received when "
                f"retrieving BLE device from the object cache: {exc}"
            ) from exc

        for step in pipeline:
            _log.debug("[DEBUG] Executing subcommand %s", step.name)
            step.run(ctx)
            ctx.executed.append(step.name)
            _log.debug("[DEBUG] Subcommand %s complete", step.name)
        return ctx

    def _finish(self, command: Dict[str, Any], err: bool, message: str, window: AdapterConfig) -> None:
        command["err"] = err
        command["response"] = message
        self._respond(command, window)

    def _respond(self, response: Dict[str, Any], window: AdapterConfig) -> None:
        try:
            payload = json.dumps(response)
        except (TypeError, ValueError) as exc:
            _log.error("[-] Error marshalling response to platform: %s", exc)
            return
        topic = self.response_topic(window)
        _log.debug("[DEBUG] Publishing response to %s", topic)
        self._broker.publish(topic, payload, window.qos)
