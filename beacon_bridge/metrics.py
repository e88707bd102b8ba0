"""Métricas Prometheus del bridge.

Se exponen con ``start_http_server`` solo si ``METRICS_PORT`` > 0.
"""

from __future__ import annotations

import logging

from prometheus_client import Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger(__name__)

BRIDGE_MESSAGES = Counter(
    "beacon_bridge_messages_total",
    "MQTT messages handled by the router",
    ["envelope"],  # simplified, scan_report, ignored, invalid_json, error
)
BRIDGE_READINGS = Counter(
    "beacon_bridge_readings_total",
    "Per-device readings by pipeline outcome",
    ["outcome"],  # forwarded, throttled, not_allowed, no_temperature
)
FORWARD_RESULTS = Counter(
    "beacon_bridge_forward_results_total",
    "Ingestion POST results",
    ["outcome"],  # sent, unregistered, rejected, failed
)
FORWARD_LATENCY = Histogram(
    "beacon_bridge_forward_seconds",
    "Ingestion POST latency",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)
ALLOWLIST_SIZE = Gauge(
    "beacon_bridge_allowlist_size",
    "Current number of allowlisted beacons",
)
ALLOWLIST_REFRESHES = Counter(
    "beacon_bridge_allowlist_refreshes_total",
    "Allowlist refresh attempts",
    ["status"],  # success, failed
)
MQTT_CONNECTED = Gauge(
    "beacon_bridge_mqtt_connected",
    "MQTT connection status",
)


def start_metrics_server(port: int) -> bool:
    """Arranca el endpoint /metrics. Retorna False si está deshabilitado."""
    if port <= 0:
        return False
    start_http_server(port)
    logger.info("[METRICS] Prometheus exporter listening on :%d", port)
    return True
