"""Throttling por beacon: intervalo mínimo + override por delta.

Reglas (en este orden):
1. Sin registro previo → enviar (cold start)
2. |temp - última_temp| >= delta → enviar ya (cambio significativo)
3. En otro caso, enviar solo si transcurrió el intervalo

El estado vive en memoria y se pierde al reiniciar el proceso.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from ..domain.device_id import canonicalize_device_id


@dataclass(frozen=True)
class ThrottleRecord:
    """Último envío de un beacon."""
    last_sent_at: float
    last_temperature: Optional[float]


class ThrottleEngine:
    """Decide si una lectura merece reenviarse.

    ``mark_sent`` solo debe llamarse tras entregar la lectura al forwarder;
    las lecturas descartadas antes (allowlist, sin temperatura) no tocan
    el registro.

    Uso:
        engine = ThrottleEngine(interval_seconds=60, delta_threshold=0.3)
        if engine.should_send(mac, 21.4):
            await forwarder.forward(reading)
            engine.mark_sent(mac, 21.4)
    """

    def __init__(
        self,
        interval_seconds: float = 60.0,
        delta_threshold: float = 0.3,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._interval = max(0.0, float(interval_seconds))
        self._delta = max(0.0, float(delta_threshold))
        self._clock = clock
        self._records: Dict[str, ThrottleRecord] = {}
        self._lock = threading.Lock()

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def delta_threshold(self) -> float:
        return self._delta

    def should_send(self, device_id: str, temperature: Optional[float]) -> bool:
        key = canonicalize_device_id(device_id)
        with self._lock:
            record = self._records.get(key)
        if record is None:
            return True

        if temperature is not None and record.last_temperature is not None:
            delta = abs(temperature - record.last_temperature)
        else:
            delta = 0.0
        if delta >= self._delta:
            return True

        elapsed = self._clock() - record.last_sent_at
        return elapsed >= self._interval

    def mark_sent(self, device_id: str, temperature: Optional[float]) -> None:
        key = canonicalize_device_id(device_id)
        with self._lock:
            self._records[key] = ThrottleRecord(
                last_sent_at=self._clock(),
                last_temperature=temperature,
            )

    def get_record(self, device_id: str) -> Optional[ThrottleRecord]:
        with self._lock:
            return self._records.get(canonicalize_device_id(device_id))

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    @property
    def stats(self) -> dict:
        return {
            "tracked_devices": len(self),
            "interval_seconds": self._interval,
            "delta_threshold": self._delta,
        }
