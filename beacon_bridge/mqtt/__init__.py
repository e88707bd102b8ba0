"""MQTT → Forwarder.

Estructura modular:
- envelopes.py: formatos de mensaje (simplificado / scan report)
- router.py: despacho allowlist + throttle + forwarder
- receiver.py: cliente paho-mqtt que entrega mensajes al router
- receiver_stats.py: contadores del receptor
"""

from .envelopes import (
    DeviceInfo,
    ScanReportEnvelope,
    SimplifiedReadingEnvelope,
    parse_envelope,
)
from .receiver import BridgeReceiver
from .router import MessageRouter, RouterStats, extract_gateway_id

__all__ = [
    "BridgeReceiver",
    "DeviceInfo",
    "MessageRouter",
    "RouterStats",
    "ScanReportEnvelope",
    "SimplifiedReadingEnvelope",
    "extract_gateway_id",
    "parse_envelope",
]
