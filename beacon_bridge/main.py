"""Punto de entrada del bridge.

Arranque:
1. Cargar configuración (fatal si falta algo requerido, antes de tocar la red)
2. Configurar logging
3. Sincronizar la allowlist (await) y agendar el refresco periódico
4. Conectar a MQTT y procesar mensajes hasta que el proceso muera
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from dataclasses import dataclass
from typing import Optional

import httpx

from common.config import ConfigError, Settings, get_settings

from .allowlist import AllowlistRefresher, AllowlistStore, RestAllowlistSource
from .forwarding import IngestForwarder
from .metrics import start_metrics_server
from .mqtt import BridgeReceiver, MessageRouter
from .throttle import ThrottleEngine

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"

# Niveles aceptados en LOG_LEVEL (nombres heredados de pino incluidos).
LOG_LEVELS = {
    "fatal": logging.CRITICAL,
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
}


def resolve_log_level(name: Optional[str]) -> Optional[int]:
    """Nivel de logging o ``None`` para ``silent``. Valores inválidos → INFO."""
    value = str(name or "info").strip().lower()
    if value == "silent":
        return None
    return LOG_LEVELS.get(value, logging.INFO)


def configure_logging(level_name: Optional[str]) -> None:
    level = resolve_log_level(level_name)
    logging.basicConfig(
        level=level if level is not None else logging.CRITICAL,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler()],
        force=True,
    )
    if level is None:
        logging.disable(logging.CRITICAL)


@dataclass
class BridgeServices:
    """Servicios del proceso, construidos una vez al arrancar."""
    allowlist: AllowlistStore
    throttle: ThrottleEngine
    forwarder: IngestForwarder
    router: MessageRouter
    http_client: httpx.AsyncClient

    async def aclose(self) -> None:
        await self.forwarder.aclose()
        await self.http_client.aclose()


def build_services(settings: Settings) -> BridgeServices:
    http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)

    source = None
    if settings.allowlist_url:
        source = RestAllowlistSource(
            url=settings.allowlist_url,
            auth_token=settings.allowlist_auth_token or settings.ingest_auth_token,
            timeout_seconds=settings.http_timeout_seconds,
            client=http_client,
        )
    else:
        logger.info("[BRIDGE] No allowlist URL derivable from ingest URL; DB sync disabled")

    allowlist = AllowlistStore(
        bootstrap=settings.bootstrap_devices,
        source=source,
        fail_closed=settings.allowlist_fail_closed,
    )
    throttle = ThrottleEngine(
        interval_seconds=settings.send_interval_seconds,
        delta_threshold=settings.min_temp_delta,
    )
    forwarder = IngestForwarder(
        url=settings.ingest_url,
        auth_token=settings.ingest_auth_token,
        timeout_seconds=settings.http_timeout_seconds,
        client=http_client,
    )
    router = MessageRouter(allowlist, throttle, forwarder)
    return BridgeServices(
        allowlist=allowlist,
        throttle=throttle,
        forwarder=forwarder,
        router=router,
        http_client=http_client,
    )


async def run_bridge(settings: Settings) -> None:
    services = build_services(settings)
    refresher = AllowlistRefresher(services.allowlist, settings.allowlist_refresh_seconds)
    receiver: Optional[BridgeReceiver] = None

    try:
        # Sincronización inicial antes de aceptar mensajes
        await services.allowlist.refresh()
        if services.allowlist.has_source:
            refresher.start()

        receiver = BridgeReceiver(
            router=services.router,
            loop=asyncio.get_running_loop(),
            broker_host=settings.mqtt_host,
            broker_port=settings.mqtt_port,
            username=settings.mqtt_username,
            password=settings.mqtt_password,
            client_id=settings.mqtt_client_id,
            topic=settings.mqtt_topic,
            qos=settings.mqtt_qos,
            use_tls=settings.mqtt_tls,
            reconnect_seconds=settings.mqtt_reconnect_seconds,
        )
        receiver.start()

        if services.allowlist.size > 0:
            logger.info("[BRIDGE] Beacon allowlist active size=%d", services.allowlist.size)
        logger.info(
            "[BRIDGE] Throttle configured send_interval_seconds=%.1f min_temp_delta=%.2f",
            services.throttle.interval_seconds,
            services.throttle.delta_threshold,
        )

        await asyncio.Event().wait()
    finally:
        if receiver is not None:
            receiver.stop()
        await refresher.stop()
        await services.aclose()
        logger.info("[BRIDGE] Stopped. %s", services.router.stats)


def main() -> None:
    try:
        settings = get_settings()
    except ConfigError as e:
        configure_logging(os.getenv("LOG_LEVEL"))
        logger.critical("[BRIDGE] %s", e)
        sys.exit(1)

    configure_logging(settings.log_level)
    start_metrics_server(settings.metrics_port)

    try:
        asyncio.run(run_bridge(settings))
    except KeyboardInterrupt:
        logger.info("[BRIDGE] Interrupted")


if __name__ == "__main__":
    main()
