"""Router de mensajes MQTT → Forwarder.

Flujo por mensaje:
  topic GwData/{gateway_mac}
  → parseo JSON
  → envelope (simplificado | scan report)
  → por beacon: decoder → allowlist → throttle → forwarder → mark_sent

Cada mensaje es independiente: un error en uno nunca afecta a los
siguientes ni llega al cliente MQTT.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from ..decoding.raw_decoder import decode_raw_reading
from ..domain.reading import Reading
from ..forwarding.forwarder import ForwardOutcome
from ..metrics import BRIDGE_MESSAGES, BRIDGE_READINGS
from .envelopes import ScanReportEnvelope, SimplifiedReadingEnvelope, parse_envelope

logger = logging.getLogger(__name__)

UNKNOWN_GATEWAY = "unknown"


class Allowlist(Protocol):
    def is_allowed(self, raw_identifier: Any) -> bool: ...


class Throttle(Protocol):
    def should_send(self, device_id: str, temperature: Optional[float]) -> bool: ...

    def mark_sent(self, device_id: str, temperature: Optional[float]) -> None: ...


class Forwarder(Protocol):
    async def forward(self, reading: Reading) -> ForwardOutcome: ...


@dataclass
class RouterStats:
    """Estadísticas del router."""
    messages: int = 0
    invalid_json: int = 0
    ignored: int = 0
    errors: int = 0
    forwarded: int = 0
    throttled: int = 0
    not_allowed: int = 0
    no_temperature: int = 0

    def __str__(self) -> str:
        return (
            f"Stats: messages={self.messages} forwarded={self.forwarded} "
            f"throttled={self.throttled} not_allowed={self.not_allowed} errors={self.errors}"
        )

    def to_dict(self) -> dict:
        return dict(self.__dict__)


def _reject_constant(name: str) -> Any:
    # NaN / Infinity / -Infinity no son JSON válido
    raise ValueError(f"Invalid JSON constant {name}")


def extract_gateway_id(topic: str) -> str:
    """Segundo segmento del topic: ``GwData/AA11BB22CC33`` → ``AA11BB22CC33``."""
    parts = topic.split("/")
    if len(parts) >= 2 and parts[1]:
        return parts[1]
    return UNKNOWN_GATEWAY


class MessageRouter:
    """Despacha envelopes a allowlist + throttle + forwarder.

    Las dependencias se inyectan (store, engine, forwarder) para poder
    sustituirlas por fakes en tests.

    Uso:
        router = MessageRouter(allowlist, throttle, forwarder)
        forwarded = await router.handle_message(topic, payload)
    """

    def __init__(self, allowlist: Allowlist, throttle: Throttle, forwarder: Forwarder):
        self._allowlist = allowlist
        self._throttle = throttle
        self._forwarder = forwarder
        self._stats = RouterStats()

    async def handle_message(self, topic: str, payload: bytes) -> int:
        """Procesa un mensaje completo.

        Returns:
            Número de lecturas reenviadas
        """
        self._stats.messages += 1
        try:
            data = self._parse_json(payload, topic)
            if data is None:
                return 0

            gateway_id = extract_gateway_id(topic)
            envelope = parse_envelope(data)

            if isinstance(envelope, SimplifiedReadingEnvelope):
                BRIDGE_MESSAGES.labels(envelope="simplified").inc()
                return await self._route_simplified(envelope, gateway_id)
            if isinstance(envelope, ScanReportEnvelope):
                BRIDGE_MESSAGES.labels(envelope="scan_report").inc()
                return await self._route_scan_report(envelope, gateway_id)

            self._stats.ignored += 1
            BRIDGE_MESSAGES.labels(envelope="ignored").inc()
            logger.debug("[ROUTER] Ignored non-reading message (topic=%s)", topic)
            return 0

        except Exception as e:
            self._stats.errors += 1
            BRIDGE_MESSAGES.labels(envelope="error").inc()
            logger.exception("[ROUTER] Processing error (topic=%s): %s", topic, e)
            return 0

    def _parse_json(self, payload: bytes, topic: str) -> Optional[Any]:
        try:
            if isinstance(payload, (bytes, bytearray)):
                payload = payload.decode("utf-8")
            return json.loads(payload, parse_constant=_reject_constant)
        except ValueError as e:
            self._stats.invalid_json += 1
            BRIDGE_MESSAGES.labels(envelope="invalid_json").inc()
            logger.warning("[ROUTER] Invalid JSON payload: %s (topic=%s)", e, topic)
            return None

    async def _route_simplified(self, envelope: SimplifiedReadingEnvelope, gateway_id: str) -> int:
        mac = envelope.beacon_mac
        temperature = envelope.resolved_temperature
        if temperature is None:
            self._count("no_temperature")
            logger.debug("[ROUTER] Simplified payload missing numeric temperature mac=%s", mac)
            return 0

        if not self._allowlist.is_allowed(mac):
            self._count("not_allowed")
            logger.debug("[ROUTER] Skipped (not in allowlist) mac=%s", mac)
            return 0

        if not self._throttle.should_send(mac, temperature):
            self._count("throttled")
            logger.debug("[ROUTER] Throttled mac=%s", mac)
            return 0

        reading = Reading(
            device_id=mac,
            gateway_id=gateway_id,
            temperature=temperature,
            battery=envelope.resolved_battery,
            timestamp=envelope.ts,
            extra=envelope.passthrough,
        )
        await self._submit(reading)
        logger.info("[ROUTER] Forwarded simplified reading mac=%s gw=%s", mac, gateway_id)
        return 1

    async def _route_scan_report(self, envelope: ScanReportEnvelope, gateway_id: str) -> int:
        forwarded = 0

        for device in envelope.devices():
            mac = device.address if device is not None else None
            if not mac:
                continue

            decoded = decode_raw_reading(device.adv_raw, device.srp_raw)

            if not self._allowlist.is_allowed(mac):
                self._count("not_allowed")
                logger.debug("[ROUTER] Skipped (not in allowlist) mac=%s", mac)
                continue

            if decoded.temperature is None:
                self._count("no_temperature")
                continue

            if not self._throttle.should_send(mac, decoded.temperature):
                self._count("throttled")
                logger.debug("[ROUTER] Throttled mac=%s", mac)
                continue

            reading = Reading(
                device_id=mac,
                gateway_id=gateway_id,
                temperature=decoded.temperature,
                battery=decoded.battery,
            )
            await self._submit(reading)
            forwarded += 1

        if forwarded > 0:
            logger.info("[ROUTER] Forwarded readings forwarded=%d gw=%s", forwarded, gateway_id)
        return forwarded

    async def _submit(self, reading: Reading) -> ForwardOutcome:
        # El registro se actualiza tras la entrega al forwarder, sea cual sea
        # la respuesta remota: el envío no se reintenta.
        outcome = await self._forwarder.forward(reading)
        self._throttle.mark_sent(reading.device_id, reading.temperature)
        self._count("forwarded")
        return outcome

    def _count(self, outcome: str) -> None:
        setattr(self._stats, outcome, getattr(self._stats, outcome) + 1)
        BRIDGE_READINGS.labels(outcome=outcome).inc()

    @property
    def stats(self) -> RouterStats:
        return self._stats
