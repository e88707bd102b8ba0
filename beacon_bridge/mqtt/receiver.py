"""Receptor MQTT usando paho-mqtt directamente.

El callback de paho corre en su hilo de red: aquí solo se cuentan los
mensajes y se agenda ``router.handle_message`` en el event loop asyncio
(``run_coroutine_threadsafe``). Nunca se bloquea el hilo de red con I/O.

La reconexión la gestiona paho (``connect_async`` + ``loop_start``).
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from concurrent.futures import Future
from typing import Optional

import paho.mqtt.client as mqtt

from ..metrics import MQTT_CONNECTED
from .receiver_stats import ReceiverStats
from .router import MessageRouter

logger = logging.getLogger(__name__)


class BridgeReceiver:
    """Receptor MQTT que entrega cada mensaje al router."""

    def __init__(
        self,
        router: MessageRouter,
        loop: asyncio.AbstractEventLoop,
        broker_host: str = "localhost",
        broker_port: int = 8883,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client_id: str = "forwarder-1",
        topic: str = "GwData/#",
        qos: int = 1,
        use_tls: bool = True,
        reconnect_seconds: float = 2.0,
        keepalive: int = 60,
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.username = username
        self.password = password
        self.client_id = client_id
        self.topic = topic
        self.qos = qos
        self.use_tls = use_tls
        self.reconnect_seconds = reconnect_seconds
        self.keepalive = keepalive

        self._router = router
        self._loop = loop
        self._client: Optional[mqtt.Client] = None
        self._running = False
        self._connected = False
        self._ever_connected = False
        self._stats = ReceiverStats()
        self._stats_lock = threading.Lock()

    def start(self) -> None:
        """Crea el cliente y arranca el hilo de red de paho."""
        self._client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.client_id,
            clean_session=True,
            protocol=mqtt.MQTTv311,
        )
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_subscribe = self._on_subscribe
        self._client.on_message = self._on_message

        if self.username and self.password:
            self._client.username_pw_set(self.username, self.password)
        if self.use_tls:
            self._client.tls_set()

        delay = max(1, int(self.reconnect_seconds))
        self._client.reconnect_delay_set(min_delay=delay, max_delay=delay)

        logger.info(
            "[MQTT] Connecting to %s:%d tls=%s client_id=%s",
            self.broker_host,
            self.broker_port,
            self.use_tls,
            self.client_id,
        )
        self._client.connect_async(self.broker_host, self.broker_port, keepalive=self.keepalive)
        self._client.loop_start()
        self._running = True

    def stop(self) -> None:
        """Detiene el receptor."""
        self._running = False
        if self._client:
            try:
                self._client.disconnect()
                self._client.loop_stop()
            except Exception as e:
                logger.warning("[MQTT] Error stopping: %s", e)
        self._connected = False
        MQTT_CONNECTED.set(0)
        logger.info("[MQTT] Stopped. %s", self._stats)

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        """Callback de conexión."""
        if reason_code.is_failure:
            self._connected = False
            MQTT_CONNECTED.set(0)
            logger.error("[MQTT] Connection failed: %s", reason_code)
            return

        if self._ever_connected:
            with self._stats_lock:
                self._stats.reconnects += 1
        self._connected = True
        self._ever_connected = True
        MQTT_CONNECTED.set(1)
        logger.info("[MQTT] Connected host=%s port=%d", self.broker_host, self.broker_port)
        client.subscribe(self.topic, qos=self.qos)

    def _on_subscribe(self, client, userdata, mid, reason_code_list, properties=None):
        """Callback de suscripción."""
        failures = [rc for rc in reason_code_list if rc.is_failure]
        if failures:
            logger.error("[MQTT] Subscribe error topic=%s: %s", self.topic, failures[0])
            return
        logger.info("[MQTT] Subscribed topic=%s qos=%d", self.topic, self.qos)

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None):
        """Callback de desconexión."""
        self._connected = False
        MQTT_CONNECTED.set(0)
        if self._running:
            logger.warning("[MQTT] Disconnected (%s); reconnecting", reason_code)

    def _on_message(self, client, userdata, msg):
        """Callback de mensaje: agenda el procesamiento en el event loop."""
        with self._stats_lock:
            self._stats.received += 1
            self._stats.last_message_at = time.time()

        logger.debug(
            "[MQTT] Message received topic=%s length=%d",
            msg.topic,
            len(msg.payload) if msg.payload else 0,
        )

        try:
            future = asyncio.run_coroutine_threadsafe(
                self._router.handle_message(msg.topic, msg.payload),
                self._loop,
            )
        except RuntimeError as e:
            # Event loop cerrado (apagado en curso)
            with self._stats_lock:
                self._stats.failed += 1
            logger.warning("[MQTT] Dropped message, event loop unavailable: %s", e)
            return

        with self._stats_lock:
            self._stats.dispatched += 1
        future.add_done_callback(self._on_handled)

    def _on_handled(self, future: Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            with self._stats_lock:
                self._stats.failed += 1
            logger.error("[MQTT] Message handler failed: %s", error)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def stats(self) -> dict:
        with self._stats_lock:
            counters = self._stats.to_dict()
        return {
            "running": self._running,
            "connected": self._connected,
            "broker": f"{self.broker_host}:{self.broker_port}",
            "topic": self.topic,
            **counters,
        }

    def health_check(self) -> dict:
        with self._stats_lock:
            last = self._stats.last_message_at
        return {
            "healthy": self._running and self._connected,
            "running": self._running,
            "connected": self._connected,
            "last_message_age_seconds": time.time() - last if last > 0 else None,
        }
