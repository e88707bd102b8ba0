"""Tests del receptor MQTT (sin broker).

Los callbacks de paho se invocan directamente; ``_on_message`` se llama
desde otro hilo para reproducir el hilo de red.

Ejecutar:
    pytest tests/test_receiver.py -v
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from beacon_bridge.mqtt import BridgeReceiver


class RecordingRouter:
    """Router falso que guarda (topic, payload)."""

    def __init__(self, error: Exception = None):
        self.calls = []
        self.error = error

    async def handle_message(self, topic, payload):
        self.calls.append((topic, payload))
        if self.error is not None:
            raise self.error
        return 1


def make_message(topic="GwData/AA11BB22CC33", payload=b'{"beacon_mac": "aa"}'):
    msg = MagicMock()
    msg.topic = topic
    msg.payload = payload
    return msg


def make_reason_code(failure=False):
    reason_code = MagicMock()
    reason_code.is_failure = failure
    return reason_code


async def wait_for(predicate, attempts=200):
    for _ in range(attempts):
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return predicate()


# =============================================================================
# ENTREGA AL EVENT LOOP
# =============================================================================

class TestMessageHandOff:
    """El hilo de red solo agenda el trabajo en el loop."""

    @pytest.mark.asyncio
    async def test_message_is_scheduled_on_loop(self):
        router = RecordingRouter()
        receiver = BridgeReceiver(router=router, loop=asyncio.get_running_loop())

        await asyncio.to_thread(receiver._on_message, None, None, make_message())

        assert await wait_for(lambda: router.calls)
        assert router.calls == [("GwData/AA11BB22CC33", b'{"beacon_mac": "aa"}')]
        stats = receiver.stats
        assert stats["received"] == 1
        assert stats["dispatched"] == 1
        assert stats["failed"] == 0
        assert stats["last_message_at"] > 0

    @pytest.mark.asyncio
    async def test_handler_failure_is_counted(self):
        router = RecordingRouter(error=RuntimeError("boom"))
        receiver = BridgeReceiver(router=router, loop=asyncio.get_running_loop())

        await asyncio.to_thread(receiver._on_message, None, None, make_message())

        assert await wait_for(lambda: receiver.stats["failed"] == 1)
        assert receiver.stats["dispatched"] == 1

    def test_closed_loop_drops_message(self):
        loop = asyncio.new_event_loop()
        loop.close()
        receiver = BridgeReceiver(router=RecordingRouter(), loop=loop)

        receiver._on_message(None, None, make_message(payload=None))

        stats = receiver.stats
        assert stats["received"] == 1
        assert stats["dispatched"] == 0
        assert stats["failed"] == 1


# =============================================================================
# CONEXIÓN Y SUSCRIPCIÓN
# =============================================================================

class TestConnection:
    """Callbacks de conexión de paho."""

    @pytest.fixture
    def receiver(self):
        return BridgeReceiver(router=RecordingRouter(), loop=MagicMock(), qos=0, topic="GwData/#")

    def test_connect_subscribes(self, receiver):
        client = MagicMock()
        receiver._on_connect(client, None, None, make_reason_code())

        client.subscribe.assert_called_once_with("GwData/#", qos=0)
        assert receiver.is_connected is True
        assert receiver.stats["reconnects"] == 0

    def test_reconnect_is_counted_and_resubscribes(self, receiver):
        client = MagicMock()
        receiver._on_connect(client, None, None, make_reason_code())
        receiver._on_disconnect(client, None, None, make_reason_code())
        assert receiver.is_connected is False

        receiver._on_connect(client, None, None, make_reason_code())

        assert client.subscribe.call_count == 2
        assert receiver.stats["reconnects"] == 1

    def test_failed_connect_does_not_subscribe(self, receiver):
        client = MagicMock()
        receiver._on_connect(client, None, None, make_reason_code(failure=True))

        client.subscribe.assert_not_called()
        assert receiver.is_connected is False

    def test_subscribe_failure_is_logged(self, receiver, caplog):
        receiver._on_subscribe(None, None, 1, [make_reason_code(failure=True)])
        assert any("Subscribe error" in r.getMessage() for r in caplog.records)

    def test_health_check_before_start(self, receiver):
        health = receiver.health_check()
        assert health["healthy"] is False
        assert health["running"] is False
        assert health["last_message_age_seconds"] is None
