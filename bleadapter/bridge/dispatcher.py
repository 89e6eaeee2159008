"""Consumer of the discovery signal stream."""

from __future__ import annotations

import queue
import threading
from typing import Optional

from bleadapter.core.config import AdapterConfig
from bleadapter.core.errors import BleAdapterError
from bleadapter.core.log import get_logger
from bleadapter.dbuslayer.signals import (
    Event,
    InterfaceAdded,
    InterfaceRemoved,
    PropertiesChanged,
    RawSignal,
    classify,
)

__all__ = ["Dispatcher"]

_log = get_logger(__name__)


class Dispatcher:
    """Classifies raw signals and publishes devices that were added or changed.

    One :meth:`run` per discovery window; it returns when the queue is closed.
    """

    def __init__(self, publisher):
        self._publisher = publisher

    def start(self, signals: "queue.Queue[Optional[RawSignal]]", window: AdapterConfig) -> threading.Thread:
        thread = threading.Thread(
            target=self.run, args=(signals, window), name="signal-dispatcher", daemon=True
        )
        thread.start()
        return thread

    def run(self, signals: "queue.Queue[Optional[RawSignal]]", window: AdapterConfig) -> int:
        handled = 0
        while True:
            raw = signals.get()
            if raw is None:
                break
            for event in classify(raw):
                try:
                    self.handle(event, window)
                except BleAdapterError as exc:
                    _log.error("[-] Error handling %s: %s", event, exc)
                handled += 1
        _log.debug("[DEBUG] Dispatcher finished after %d events", handled)
        return handled

    def handle(self, event: Event, window: AdapterConfig) -> None:
        if isinstance(event, InterfaceAdded):
            if event.is_device:
                _log.debug("[DEBUG] Device added: %s", event.address)
                self._publisher.publish_device(event.address, window)
            else:
                _log.debug("[DEBUG] %s added at %s", event.interface, event.path)
        elif isinstance(event, PropertiesChanged):
            if event.is_device:
                _log.debug("[DEBUG] Device %s changed: %s", event.address, sorted(event.changed))
                self._publisher.publish_device(event.address, window)
            else:
                _log.debug("[DEBUG] %s changed at %s", event.interface, event.path)
        elif isinstance(event, InterfaceRemoved):
            if event.is_device:
                _log.info("[*] Device removed = %s", event.address)
            else:
                _log.debug("[DEBUG] %s removed from %s", list(event.interfaces), event.path)
        else:
            _log.debug("[DEBUG] Ignoring signal %s (%s)", event.name, event.reason or event.path)
