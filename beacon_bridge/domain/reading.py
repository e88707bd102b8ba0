"""Modelo de dominio para lecturas de beacons."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class Reading:
    """Lectura de un beacon lista para reenviar.

    Este es el contrato que fluye por el pipeline:
    MQTT → Router → Allowlist → Throttle → Forwarder
    """
    device_id: str
    gateway_id: str
    temperature: Optional[float] = None
    battery: Optional[int] = None

    # Campos opcionales del origen (solo en el formato simplificado)
    timestamp: Any = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_ingest_payload(self) -> dict[str, Any]:
        """Convierte al JSON que espera la edge function de ingesta.

        Las claves sin valor se omiten (``ts``, ``pdv_id``...).
        """
        payload: dict[str, Any] = {
            "mac_address": self.device_id,
            "temperature": self.temperature,
            "battery": self.battery if self.battery is not None else 0,
            "gateway_mac": self.gateway_id,
        }
        if self.timestamp is not None:
            payload["ts"] = self.timestamp
        for key, value in self.extra.items():
            if value is not None and key not in payload:
                payload[key] = value
        return payload
