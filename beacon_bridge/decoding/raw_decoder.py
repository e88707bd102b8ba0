"""Decodificación de tramas BLE crudas de los gateways.

Los gateways publican, por cada beacon visto en un ciclo de escaneo, la
advertisement (``adv_raw``) y la scan response (``srp_raw``) como strings
hexadecimales. De ahí se extraen:

- Temperatura: adv_raw[10:12] = parte entera, adv_raw[12:14] = parte decimal
  (ambas en hex; la decimal se rellena a 2 dígitos: 0x1A, 0x05 → 26.05)
- Batería: srp_raw[14:18] = milivoltios en hex

Las dos extracciones son independientes y best-effort: un error de parseo
produce ``None`` en ese campo y nunca se propaga.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

MIN_ADV_LENGTH = 14
MIN_SRP_LENGTH = 18

# int(x, 16) acepta signos, "_" y espacios; aquí solo valen dígitos hex.
_HEX = re.compile(r"[0-9a-fA-F]+")


@dataclass(frozen=True)
class DecodedReading:
    temperature: Optional[float] = None
    battery: Optional[int] = None


def _hex_to_int(chunk: str) -> Optional[int]:
    if not _HEX.fullmatch(chunk):
        return None
    return int(chunk, 16)


def parse_temperature(adv_raw: Any) -> Optional[float]:
    """Extrae la temperatura de la advertisement o ``None``."""
    if not isinstance(adv_raw, str) or len(adv_raw) < MIN_ADV_LENGTH:
        return None

    integer_part = _hex_to_int(adv_raw[10:12])
    fraction_part = _hex_to_int(adv_raw[12:14])
    if integer_part is None or fraction_part is None:
        logger.debug("[DECODER] Non-hex temperature bytes in adv_raw=%s", adv_raw)
        return None

    # Composición decimal, no aritmética: 0x64 → 100 → "26.100"
    return float(f"{integer_part}.{fraction_part:02d}")


def parse_battery(srp_raw: Any) -> Optional[int]:
    """Extrae el voltaje de batería (mV) de la scan response o ``None``."""
    if not isinstance(srp_raw, str) or len(srp_raw) < MIN_SRP_LENGTH:
        return None

    millivolts = _hex_to_int(srp_raw[14:18])
    if millivolts is None:
        logger.debug("[DECODER] Non-hex battery bytes in srp_raw=%s", srp_raw)
    return millivolts


def decode_raw_reading(adv_raw: Any, srp_raw: Any) -> DecodedReading:
    """Decodifica temperatura y batería de las tramas crudas."""
    return DecodedReading(
        temperature=parse_temperature(adv_raw),
        battery=parse_battery(srp_raw),
    )
