"""Normalización de identificadores de dispositivo (MAC)."""

from __future__ import annotations

import re
from typing import Any

# Separadores habituales en MACs: "AA:BB", "AA-BB", "AABB.CCDD", espacios.
_SEPARATORS = re.compile(r"[:\-._\s]")


def canonicalize_device_id(raw: Any) -> str:
    """Convierte una MAC cruda a su clave canónica.

    Minúsculas y sin separadores: ``"AA:BB:CC:DD:EE:FF"`` → ``"aabbccddeeff"``.
    Nunca falla: ``None`` o valores vacíos producen ``""`` (dispositivo
    desconocido) y cualquier otro tipo se convierte con ``str()``.
    La función es idempotente.
    """
    if raw is None:
        return ""
    return _SEPARATORS.sub("", str(raw)).lower()
