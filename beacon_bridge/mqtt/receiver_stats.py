"""Estadísticas del receptor MQTT."""

from __future__ import annotations


class ReceiverStats:
    """Contadores del hilo de red de paho."""

    def __init__(self):
        self.received = 0
        self.dispatched = 0
        self.failed = 0
        self.reconnects = 0
        self.last_message_at: float = 0

    def __str__(self) -> str:
        return (
            f"Stats: received={self.received} dispatched={self.dispatched} "
            f"failed={self.failed} reconnects={self.reconnects}"
        )

    def to_dict(self) -> dict:
        return {
            "received": self.received,
            "dispatched": self.dispatched,
            "failed": self.failed,
            "reconnects": self.reconnects,
            "last_message_at": self.last_message_at,
        }
