"""
Discovery engine.

Runs one discovery window at a time: installs the match rules the window
asks for, starts LE discovery on the adapter and forwards matching bus signals
to an output queue from a dedicated thread.  When the caller sets the stop
event the forwarder stops discovery, removes the rules, releases its signal
subscription and closes the output queue (puts ``None``) as its very last act.
"""

from __future__ import annotations

import queue
import threading
from typing import List, Optional

from bleadapter.bt_ref.constants import ADD_RULE, PROPERTIES_RULE, REMOVE_RULE, RULE_SIGNALS
from bleadapter.core.config import AdapterConfig
from bleadapter.core.errors import BleAdapterError, DiscoveryActiveError, HostBusError
from bleadapter.core.log import get_logger
from bleadapter.dbuslayer.adapter import Adapter
from bleadapter.dbuslayer.manager import ObjectCache
from bleadapter.dbuslayer.signals import RawSignal

__all__ = ["DiscoveryEngine", "rules_for"]

_log = get_logger(__name__)

# How often the forwarder re-checks its stop event while the bus is quiet
_POLL_INTERVAL = 0.1


def rules_for(window: AdapterConfig) -> List[str]:
    """Match rules a window installs: always InterfacesAdded, the rest on demand."""
    rules = [ADD_RULE]
    if window.handle_removed:
        rules.append(REMOVE_RULE)
    if window.handle_changed:
        rules.append(PROPERTIES_RULE)
    return rules


class DiscoveryEngine:
    def __init__(self, cache: ObjectCache):
        self._cache = cache
        self._lock = threading.Lock()
        self._active = False
        self._forwarder: Optional[threading.Thread] = None

    def is_active(self) -> bool:
        with self._lock:
            return self._active

    def start_discovery(
        self, stop_event: threading.Event, window: AdapterConfig
    ) -> "queue.Queue[Optional[RawSignal]]":
        """Start a discovery window and return the queue its signals arrive on.

        Parameters
        ----------
        stop_event : threading.Event
            Set by the caller to end the window.  Owned by the caller.
        window : AdapterConfig
            Supplies the UUID filter set and which signals to handle.

        Returns
        -------
        queue.Queue
            Raw signals in bus order, terminated by ``None``.

        Raises
        ------
        DiscoveryActiveError
            A previous window has not finished tearing down.
        HostBusError
            Resolving the adapter, installing a rule, SetDiscoveryFilter or
            StartDiscovery failed.  Nothing is left installed.
        """
        with self._lock:
            if self._active:
                raise DiscoveryActiveError()
            self._active = True

        installed: List[str] = []
        signals = None
        try:
            adapter = self._cache.get_adapter()
            signals = self._cache.signal_channel()
            for rule in rules_for(window):
                self._cache.add_match(rule)
                installed.append(rule)
            adapter.set_discovery_filter(window.filters)
            adapter.start_discovery()
        except BleAdapterError as exc:
            _log.error("[-] Unable to start discovery: %s", exc)
            self._release(None, installed, signals)
            with self._lock:
                self._active = False
            raise

        out: queue.Queue = queue.Queue()
        wanted = {RULE_SIGNALS[rule] for rule in installed}
        self._forwarder = threading.Thread(
            target=self._forward,
            args=(adapter, stop_event, signals, out, installed, wanted),
            name="discovery-forwarder",
            daemon=True,
        )
        self._forwarder.start()
        _log.info("[+] Discovery started on %s (filters=%s)", adapter.path, list(window.filters))
        return out

    def wait_stopped(self, timeout: Optional[float] = None) -> bool:
        """Join the forwarder; True once the window is fully torn down."""
        forwarder = self._forwarder
        if forwarder is not None:
            forwarder.join(timeout)
            if forwarder.is_alive():
                return False
        return not self.is_active()

    # ------------------------------------------------------------------
    # Forwarder
    # ------------------------------------------------------------------
    def _forward(
        self,
        adapter: Adapter,
        stop_event: threading.Event,
        signals: queue.Queue,
        out: queue.Queue,
        installed: List[str],
        wanted: set,
    ) -> None:
        try:
            while not stop_event.is_set():
                try:
                    raw = signals.get(timeout=_POLL_INTERVAL)
                except queue.Empty:
                    continue
                if raw is None:
                    _log.warning("[-] Signal stream closed underneath discovery")
                    signals = None
                    break
                if raw.name in wanted:
                    out.put(raw)
        finally:
            self._release(adapter, installed, signals)
            out.put(None)
            with self._lock:
                self._active = False
            _log.info("[*] Discovery stopped")

    def _release(self, adapter: Optional[Adapter], installed: List[str], signals) -> None:
        if adapter is not None:
            try:
                adapter.stop_discovery()
            except HostBusError as exc:
                _log.warning("[-] StopDiscovery failed: %s", exc)
        for rule in installed:
            try:
                self._cache.remove_match(rule)
            except HostBusError as exc:
                _log.warning("[-] Unable to remove match rule %s: %s", rule, exc)
        if signals is not None:
            self._cache.release_signal_channel(signals)
