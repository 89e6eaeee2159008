"""
MQTT broker lifecycle adapter (paho-mqtt, callback API v2).

Turns broker connect/disconnect callbacks into supervisor and command-listener
signals:

* on connect: mark connected, subscribe to ``<device-name>/<subscribe-topic>``
  (retrying every 30 s until the broker grants it) and start a command
  listener over a fresh message queue;
* on disconnect: mark disconnected, stop the current scan window, stop the
  command listener and close its queue.

Reconnection itself is left to paho's network loop.
"""

from __future__ import annotations

import queue
import socket
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import urlparse

import paho.mqtt.client as mqtt
from paho.mqtt.enums import CallbackAPIVersion

from bleadapter.core import config
from bleadapter.core.config import AdapterConfig
from bleadapter.core.errors import BrokerError, ConfigError
from bleadapter.core.log import get_logger

__all__ = ["BrokerAdapter", "parse_messaging_url", "client_id"]

_log = get_logger(__name__)


def client_id() -> str:
    return f"{socket.gethostname()}{time.localtime().tm_sec}"


def parse_messaging_url(url: str) -> Tuple[str, int]:
    """Split ``host:port`` (optionally ``tcp://host:port``) into its parts."""
    value = (url or "").strip()
    if not value:
        raise ConfigError("messaging URL is empty")
    if "://" not in value:
        value = "tcp://" + value
    parsed = urlparse(value)
    try:
        port = parsed.port or config.DEFAULT_MQTT_PORT
    except ValueError as exc:
        raise ConfigError(f"invalid messaging URL {url!r}: {exc}") from None
    if not parsed.hostname:
        raise ConfigError(f"invalid messaging URL {url!r}")
    return parsed.hostname, port


def _failed(reason_code: Any) -> bool:
    is_failure = getattr(reason_code, "is_failure", None)
    if is_failure is not None:
        return bool(is_failure)
    return reason_code != 0


@dataclass
class _Session:
    """Per-connection state; a new one is made on every connect."""

    topic: str
    qos: int
    stop: threading.Event = field(default_factory=threading.Event)
    messages: queue.Queue = field(default_factory=queue.Queue)
    acked: threading.Event = field(default_factory=threading.Event)
    granted: bool = False
    subscribed: bool = False
    listener: Optional[threading.Thread] = None
    subscriber: Optional[threading.Thread] = None


class BrokerAdapter:
    """Owns the paho client and the connection-scoped tasks.

    Parameters
    ----------
    device_name : str
        Platform device name; first level of every topic.
    client : paho.mqtt.client.Client, optional
        Pre-built client (tests pass a fake).  A v2-callback client is created
        when omitted.
    subscribe_retry : float
        Seconds between subscribe attempts.
    """

    def __init__(
        self,
        device_name: str,
        client: Optional[mqtt.Client] = None,
        subscribe_retry: float = config.SUBSCRIBE_RETRY_INTERVAL,
    ):
        self.device_name = device_name
        self.subscribe_retry = subscribe_retry
        self._client = client or mqtt.Client(
            callback_api_version=CallbackAPIVersion.VERSION2, client_id=client_id()
        )
        self._client.on_connect = self.on_connect
        self._client.on_disconnect = self.on_disconnect
        self._client.on_message = self.on_message
        self._client.on_subscribe = self.on_subscribe
        self._connected = threading.Event()
        self._lock = threading.RLock()
        self._session: Optional[_Session] = None
        self._pending: Dict[int, _Session] = {}
        self._processor = None
        self._supervisor = None
        self._config_source: Callable[[], AdapterConfig] = AdapterConfig

    def bind(self, processor, supervisor, config_source: Optional[Callable[[], AdapterConfig]] = None) -> None:
        """Attach the command processor and supervisor the callbacks drive."""
        self._processor = processor
        self._supervisor = supervisor
        if config_source is not None:
            self._config_source = config_source
        elif supervisor is not None:
            self._config_source = lambda: supervisor.current_config

    def is_connected(self) -> bool:
        return self._connected.is_set()

    def command_topic(self, window: AdapterConfig) -> str:
        return f"{self.device_name}/{window.subscribe_topic}"

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------
    def connect(self, host: str, port: int, username: str, password: str) -> None:
        self._client.username_pw_set(username=username, password=password)
        self._client.reconnect_delay_set(
            min_delay=config.RECONNECT_MIN_DELAY, max_delay=config.RECONNECT_MAX_DELAY
        )
        _log.info("[*] Connecting to MQTT broker %s:%d", host, port)
        try:
            self._client.connect_async(host, port, keepalive=config.MQTT_KEEPALIVE)
        except (OSError, ValueError) as exc:
            raise BrokerError("connect", str(exc)) from exc
        self._client.loop_start()

    def disconnect(self) -> None:
        self._client.disconnect()
        self._client.loop_stop()
        # paho does not report a client-initiated disconnect after loop_stop
        if self.is_connected():
            self.on_disconnect(self._client, None, None, 0, None)

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------
    def publish(self, topic: str, payload: str, qos: int = config.DEFAULT_QOS) -> bool:
        """Publish *payload*; failures are logged and reported as False."""
        try:
            info = self._client.publish(topic, payload, qos=qos)
        except (OSError, ValueError, RuntimeError) as exc:
            _log.error("[-] Error publishing to %s: %s", topic, exc)
            return False
        rc = getattr(info, "rc", mqtt.MQTT_ERR_SUCCESS)
        if rc != mqtt.MQTT_ERR_SUCCESS:
            _log.error("[-] Error publishing to %s: %s", topic, mqtt.error_string(rc))
            return False
        return True

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------
    def on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        if _failed(reason_code):
            _log.error("[-] MQTT connect failed: %s", reason_code)
            return
        window = self._config_source()
        session = _Session(topic=self.command_topic(window), qos=window.qos)
        with self._lock:
            previous, self._session = self._session, session
        if previous is not None:
            self._end_session(previous)
        self._connected.set()
        _log.info("[+] Connected to MQTT broker")

        if self._processor is not None:
            session.listener = threading.Thread(
                target=self._processor.listen,
                args=(session.messages, session.stop),
                name="command-listener",
                daemon=True,
            )
            session.listener.start()
        session.subscriber = threading.Thread(
            target=self._subscribe_until_done, args=(session,), name="mqtt-subscriber", daemon=True
        )
        session.subscriber.start()

    def on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None) -> None:
        self._connected.clear()
        _log.warning("[-] MQTT connection lost: %s", reason_code)
        if self._supervisor is not None:
            self._supervisor.stop_scan()
        with self._lock:
            session, self._session = self._session, None
        if session is not None:
            self._end_session(session)

    def on_message(self, client, userdata, message) -> None:
        with self._lock:
            session = self._session
            if session is None or message.topic != session.topic:
                _log.debug("[DEBUG] Ignoring message on %s", message.topic)
                return
            session.messages.put(bytes(message.payload))

    def on_subscribe(self, client, userdata, mid, reason_code_list, properties=None) -> None:
        with self._lock:
            session = self._pending.pop(mid, None)
        if session is None:
            return
        session.granted = not any(_failed(rc) for rc in reason_code_list or [])
        session.acked.set()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _end_session(self, session: _Session) -> None:
        # The queue is closed here, under the same lock on_message takes, so
        # nothing can be put on it afterwards.
        with self._lock:
            if session.stop.is_set():
                return
            session.stop.set()
            session.messages.put(None)
            session.acked.set()

    def _subscribe_until_done(self, session: _Session) -> None:
        while not session.stop.is_set():
            started = time.monotonic()
            if self._try_subscribe(session):
                session.subscribed = True
                _log.info("[+] Subscribed to %s", session.topic)
                return
            _log.warning(
                "[-] Unable to subscribe to %s. Will retry in %ss", session.topic, self.subscribe_retry
            )
            # Attempts start subscribe_retry apart, including time spent waiting for a SUBACK
            session.stop.wait(max(0.0, self.subscribe_retry - (time.monotonic() - started)))

    def _try_subscribe(self, session: _Session) -> bool:
        session.acked.clear()
        # Held across subscribe so the SUBACK cannot be handled before mid is known
        with self._lock:
            try:
                result, mid = self._client.subscribe(session.topic, qos=session.qos)
            except (OSError, ValueError) as exc:
                _log.error("[-] Subscribe to %s raised: %s", session.topic, exc)
                return False
            if result != mqtt.MQTT_ERR_SUCCESS:
                return False
            self._pending[mid] = session
        if not session.acked.wait(self.subscribe_retry):
            with self._lock:
                self._pending.pop(mid, None)
            return False
        return session.granted
