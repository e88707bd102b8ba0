"""Envelopes MQTT soportados por el bridge.

Dos formatos, resueltos por inspección estructural (en este orden):

1. Lectura simplificada (pruebas / integraciones directas):
    {
        "beacon_mac": "11:22:33:44:55:66",
        "temperature_c": 21.4,        # o "temperature" / "temp_c"
        "battery_mv": 3012,           # o "battery" (opcional)
        "ts": "2026-01-31T08:00:00Z", # opcional, se reenvía tal cual
        "pdv_id": "PDV-17"            # opcional, se reenvía tal cual
    }

2. Scan report del gateway:
    {
        "pkt_type": "scan_report",
        "data": {
            "dev_infos": [
                {"addr": "AA:BB:...", "adv_raw": "0201...", "srp_raw": "..."},
                ...
            ]
        }
    }

Cualquier otra cosa se ignora en silencio: en un topic compartido la mayor
parte del tráfico puede no ser relevante.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

logger = logging.getLogger(__name__)

SCAN_REPORT_TYPE = "scan_report"

# Prioridad fija: gana el primer alias con valor numérico.
TEMPERATURE_FIELDS = ("temperature_c", "temperature", "temp_c")
BATTERY_FIELDS = ("battery_mv", "battery")
PASSTHROUGH_FIELDS = ("pdv_id",)


def _is_number(value: Any) -> bool:
    # bool es subclase de int, pero true/false no es una temperatura.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    # 1e999 llega como inf; un entero enorme no cabe en float
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _first_number(data: dict[str, Any], fields: tuple[str, ...]) -> Optional[float]:
    for name in fields:
        value = data.get(name)
        if _is_number(value):
            return value
    return None


class SimplifiedReadingEnvelope(BaseModel):
    """Lectura ya decodificada de un único beacon."""

    model_config = ConfigDict(extra="allow")

    beacon_mac: str
    ts: Any = None

    @field_validator("beacon_mac", mode="before")
    @classmethod
    def coerce_mac(cls, v):
        if v is None:
            raise ValueError("beacon_mac is required")
        return v if isinstance(v, str) else str(v)

    @property
    def extra_fields(self) -> dict[str, Any]:
        return self.model_extra or {}

    @property
    def resolved_temperature(self) -> Optional[float]:
        return _first_number(self.extra_fields, TEMPERATURE_FIELDS)

    @property
    def resolved_battery(self) -> int:
        value = _first_number(self.extra_fields, BATTERY_FIELDS)
        return value if value is not None else 0

    @property
    def passthrough(self) -> dict[str, Any]:
        return {name: self.extra_fields.get(name) for name in PASSTHROUGH_FIELDS}


class DeviceInfo(BaseModel):
    """Entrada de un beacon dentro de un scan report."""

    model_config = ConfigDict(extra="ignore")

    addr: Any = None
    adv_raw: Any = None
    srp_raw: Any = None

    @property
    def address(self) -> Optional[str]:
        if not self.addr:
            return None
        return self.addr if isinstance(self.addr, str) else str(self.addr)


class ScanReportEnvelope(BaseModel):
    """Batch de tramas crudas de un ciclo de escaneo del gateway."""

    model_config = ConfigDict(extra="ignore")

    pkt_type: str
    dev_infos: list[Any]

    def devices(self) -> list[Optional[DeviceInfo]]:
        """Entradas en orden de llegada; ``None`` si la entrada no es un objeto."""
        result: list[Optional[DeviceInfo]] = []
        for entry in self.dev_infos:
            if isinstance(entry, dict):
                result.append(DeviceInfo.model_validate(entry))
            else:
                result.append(None)
        return result


Envelope = Union[SimplifiedReadingEnvelope, ScanReportEnvelope]


def parse_envelope(data: Any) -> Optional[Envelope]:
    """Resuelve el formato del mensaje o ``None`` si no es relevante."""
    if not isinstance(data, dict):
        return None

    if data.get("beacon_mac"):
        try:
            return SimplifiedReadingEnvelope.model_validate(data)
        except ValidationError as e:
            logger.debug("[ENVELOPE] Invalid simplified payload: %s", e)
            return None

    body = data.get("data")
    if data.get("pkt_type") != SCAN_REPORT_TYPE or not isinstance(body, dict):
        return None
    dev_infos = body.get("dev_infos")
    if not isinstance(dev_infos, list):
        return None
    return ScanReportEnvelope(pkt_type=SCAN_REPORT_TYPE, dev_infos=dev_infos)
