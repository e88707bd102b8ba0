"""Beacon bridge - Puente MQTT → HTTP para lecturas de beacons BLE.

Estructura:
- domain/      → Identificadores de dispositivo y modelo Reading
- decoding/    → Decodificación de tramas hex (adv_raw / srp_raw)
- allowlist/   → Allowlist de beacons sincronizada con la BD remota
- throttle/    → Throttling por tiempo / delta de temperatura
- forwarding/  → Envío a la edge function de ingesta
- mqtt/        → Receptor paho-mqtt, envelopes y router de mensajes
"""

__version__ = "0.2.0"
