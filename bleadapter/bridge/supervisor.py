"""
Scan/pause supervisor.

Top-level control loop::

    not connected        -> poll until the broker is connected
    adapter discovering  -> wait 5 s, retry
    otherwise            -> load config, scan window, pause, repeat

A scan window ends when its timer fires (``scan_interval > 0``) or when
:meth:`Supervisor.stop_scan` is called, e.g. on broker disconnect.  The pause
only happens when both intervals are positive; otherwise a short minimum sleep
keeps the loop from spinning.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

from bleadapter.core import config
from bleadapter.core.config import AdapterConfig
from bleadapter.core.errors import BleAdapterError, HostBusError
from bleadapter.core.log import get_logger

__all__ = ["Supervisor"]

_log = get_logger(__name__)

# States reported by Supervisor.step
NOT_CONNECTED = "not-connected"
BUS_ERROR = "bus-error"
ADAPTER_BUSY = "adapter-busy"
WINDOW_FAILED = "window-failed"
SCANNED = "scanned"
SHUTDOWN = "shutdown"


@dataclass
class _Cycle:
    """Events for one scan + pause cycle; never reused."""

    stop_scan: threading.Event = field(default_factory=threading.Event)
    interrupted: threading.Event = field(default_factory=threading.Event)


class Supervisor:
    def __init__(
        self,
        cache,
        engine,
        dispatcher,
        config_source: Callable[[], AdapterConfig],
        is_connected: Callable[[], bool],
        defaults: Optional[AdapterConfig] = None,
    ):
        self._cache = cache
        self._engine = engine
        self._dispatcher = dispatcher
        self._config_source = config_source
        self._is_connected = is_connected
        self._lock = threading.Lock()
        self._cycle: Optional[_Cycle] = None
        self._shutdown = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.current_config = defaults or AdapterConfig()
        self.windows_completed = 0

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------
    def start(self) -> threading.Thread:
        self._thread = threading.Thread(target=self.run, name="scan-supervisor", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = config.THREAD_JOIN_TIMEOUT) -> None:
        self._shutdown.set()
        self.stop_scan()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def stop_scan(self) -> None:
        """End the current scan window and skip its pause (no-op between cycles)."""
        with self._lock:
            cycle = self._cycle
        if cycle is not None:
            _log.info("[*] Stop requested for the current scan window")
            cycle.interrupted.set()
            cycle.stop_scan.set()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------
    def run(self, shutdown: Optional[threading.Event] = None) -> None:
        if shutdown is not None:
            self._shutdown = shutdown
        _log.info("[*] Scan supervisor started")
        while not self._shutdown.is_set():
            self.step()
        _log.info("[*] Scan supervisor stopped")

    def step(self) -> str:
        """Run one pass of the state machine and return the state it ended in."""
        if self._shutdown.is_set():
            return SHUTDOWN
        if not self._is_connected():
            self._shutdown.wait(config.NOT_CONNECTED_POLL)
            return NOT_CONNECTED

        try:
            self._cache.update()
            adapter = self._cache.get_adapter()
        except HostBusError as exc:
            _log.error("[-] Unable to resolve BLE adapter: %s", exc)
            self._shutdown.wait(config.WINDOW_RETRY_WAIT)
            return BUS_ERROR

        if adapter.is_discovering():
            _log.info("[*] Adapter %s is already discovering; waiting", adapter.path)
            self._shutdown.wait(config.ADAPTER_BUSY_WAIT)
            return ADAPTER_BUSY

        window = self._config_source()
        self.current_config = window

        cycle = _Cycle()
        with self._lock:
            self._cycle = cycle
        try:
            # A disconnect that landed before the cycle existed had nothing to stop
            if not self._is_connected() or self._shutdown.is_set():
                return NOT_CONNECTED
            if not self.run_window(window, cycle):
                cycle.interrupted.wait(config.WINDOW_RETRY_WAIT)
                return WINDOW_FAILED
            self._pause(window, cycle)
        finally:
            with self._lock:
                self._cycle = None
        return SCANNED

    def run_window(self, window: AdapterConfig, cycle: _Cycle) -> bool:
        """Run one scan window to completion; False if discovery did not start."""
        discovery_stop = threading.Event()
        try:
            signals = self._engine.start_discovery(discovery_stop, window)
        except BleAdapterError as exc:
            _log.error("[-] Scan window abandoned: %s", exc)
            return False

        dispatcher = self._dispatcher.start(signals, window)
        timer = None
        if window.scan_interval > 0:
            timer = threading.Timer(window.scan_interval, cycle.stop_scan.set)
            timer.daemon = True
            timer.start()
            _log.info("[*] Beginning scan. Scan duration = %s", window.scan_interval)
        else:
            _log.info("[*] Beginning scan. Scan runs until stopped")

        cycle.stop_scan.wait()
        if timer is not None:
            timer.cancel()

        discovery_stop.set()
        if not self._engine.wait_stopped(config.THREAD_JOIN_TIMEOUT):
            _log.warning("[-] Discovery did not stop within %ss", config.THREAD_JOIN_TIMEOUT)
        dispatcher.join(config.THREAD_JOIN_TIMEOUT)
        self.windows_completed += 1
        return True

    def _pause(self, window: AdapterConfig, cycle: _Cycle) -> None:
        if window.pauses and not cycle.interrupted.is_set():
            _log.info("[*] Beginning pause. Pause duration = %s", window.pause_interval)
            cycle.interrupted.wait(window.pause_interval)
        else:
            cycle.interrupted.wait(config.MIN_WINDOW_SLEEP)
