from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


class ConfigError(Exception):
    """Configuración inválida o incompleta (fatal en el arranque)."""


def _default_env_file() -> str:
    return str(Path.cwd() / ".env")


def _getenv(*names: str, default: Optional[str] = None) -> Optional[str]:
    # El primer nombre es el canónico; los demás son alias heredados
    # de despliegues anteriores (SUPABASE_*, BEACON_WHITELIST, CLIENT_ID, QOS).
    for name in names:
        value = os.getenv(name)
        if value is not None and value.strip() != "":
            return value.strip()
    return default


def _as_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got: {raw!r}")


def _as_float(name: str, raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got: {raw!r}")


def _as_bool(raw: str) -> bool:
    return raw.strip().lower() in ("true", "1", "yes", "on")


def parse_device_list(raw: Optional[str]) -> tuple[str, ...]:
    """Parsea la lista bootstrap separada por comas (sin normalizar)."""
    if not raw:
        return ()
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def derive_allowlist_url(function_url: str) -> Optional[str]:
    """Deriva la URL REST de beacons a partir de la URL de la edge function.

    ``https://x.supabase.co/functions/v1/ingest`` →
    ``https://x.supabase.co/rest/v1/beacons?select=normalized_mac,is_active``
    """
    idx = function_url.find("/functions/")
    if idx <= 0:
        return None
    return function_url[:idx] + "/rest/v1/beacons?select=normalized_mac,is_active"


@dataclass(frozen=True)
class Settings:
    mqtt_host: str
    mqtt_username: str
    mqtt_password: str
    ingest_url: str
    ingest_auth_token: str

    mqtt_port: int = 8883
    mqtt_topic: str = "GwData/#"
    mqtt_client_id: str = "forwarder-1"
    mqtt_qos: int = 1
    mqtt_tls: bool = True
    mqtt_reconnect_seconds: float = 2.0

    allowlist_url: Optional[str] = None
    allowlist_auth_token: Optional[str] = None
    allowlist_refresh_seconds: float = 60.0
    allowlist_fail_closed: bool = False
    bootstrap_devices: tuple[str, ...] = field(default_factory=tuple)

    send_interval_seconds: float = 60.0
    min_temp_delta: float = 0.3
    http_timeout_seconds: float = 5.0

    log_level: str = "info"
    metrics_port: int = 0


REQUIRED_VARIABLES = (
    ("MQTT_HOST",),
    ("MQTT_USERNAME",),
    ("MQTT_PASSWORD",),
    ("INGEST_FUNCTION_URL", "SUPABASE_FUNCTION_URL"),
    ("INGEST_AUTH_TOKEN", "SUPABASE_AUTH"),
)


def get_settings() -> Settings:
    # Carga el .env (si existe) sin pisar variables reales del entorno.
    env_file = os.getenv("BRIDGE_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    missing = [names[0] for names in REQUIRED_VARIABLES if _getenv(*names) is None]
    if missing:
        raise ConfigError("Missing required environment variables: " + ", ".join(missing))

    ingest_url = _getenv("INGEST_FUNCTION_URL", "SUPABASE_FUNCTION_URL")
    ingest_token = _getenv("INGEST_AUTH_TOKEN", "SUPABASE_AUTH")

    qos = _as_int("MQTT_QOS", _getenv("MQTT_QOS", "QOS", default="1"))
    if qos not in (0, 1, 2):
        raise ConfigError(f"MQTT_QOS must be 0, 1 or 2, got: {qos}")

    return Settings(
        mqtt_host=_getenv("MQTT_HOST"),
        mqtt_username=_getenv("MQTT_USERNAME"),
        mqtt_password=_getenv("MQTT_PASSWORD"),
        ingest_url=ingest_url,
        ingest_auth_token=ingest_token,
        mqtt_port=_as_int("MQTT_PORT", _getenv("MQTT_PORT", default="8883")),
        mqtt_topic=_getenv("MQTT_TOPIC", default="GwData/#"),
        mqtt_client_id=_getenv("MQTT_CLIENT_ID", "CLIENT_ID", default="forwarder-1"),
        mqtt_qos=qos,
        mqtt_tls=_as_bool(_getenv("MQTT_TLS", default="true")),
        mqtt_reconnect_seconds=_as_float(
            "MQTT_RECONNECT_SECONDS", _getenv("MQTT_RECONNECT_SECONDS", default="2")
        ),
        allowlist_url=_getenv("ALLOWLIST_URL") or derive_allowlist_url(ingest_url),
        allowlist_auth_token=_getenv("ALLOWLIST_AUTH_TOKEN", default=ingest_token),
        allowlist_refresh_seconds=_as_float(
            "ALLOWLIST_REFRESH_SECONDS", _getenv("ALLOWLIST_REFRESH_SECONDS", default="60")
        ),
        allowlist_fail_closed=_as_bool(_getenv("ALLOWLIST_FAIL_CLOSED", default="false")),
        bootstrap_devices=parse_device_list(_getenv("BEACON_ALLOWLIST", "BEACON_WHITELIST")),
        # Negativos se tratan como 0.
        send_interval_seconds=max(
            0.0, _as_float("SEND_INTERVAL_SECONDS", _getenv("SEND_INTERVAL_SECONDS", default="60"))
        ),
        min_temp_delta=max(
            0.0, _as_float("MIN_TEMP_DELTA", _getenv("MIN_TEMP_DELTA", default="0.3"))
        ),
        http_timeout_seconds=_as_float(
            "HTTP_TIMEOUT_SECONDS", _getenv("HTTP_TIMEOUT_SECONDS", default="5")
        ),
        log_level=_getenv("LOG_LEVEL", default="info"),
        metrics_port=_as_int("METRICS_PORT", _getenv("METRICS_PORT", default="0")),
    )
