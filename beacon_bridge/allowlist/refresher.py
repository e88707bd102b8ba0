"""Sincronización periódica de la allowlist en una tarea asyncio."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .store import AllowlistStore

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_SECONDS = 60.0


class AllowlistRefresher:
    """Llama a ``store.refresh()`` cada ``interval_seconds``.

    El refresh inicial lo hace el arranque (``await store.refresh()``) antes
    de conectar a MQTT; esta tarea solo cubre los siguientes. Un fallo
    nunca detiene el ciclo.
    """

    def __init__(self, store: AllowlistStore, interval_seconds: float = DEFAULT_REFRESH_SECONDS):
        self._store = store
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._cycles = 0

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="allowlist-refresher"
        )
        logger.info("[ALLOWLIST] Periodic sync every %.0fs", self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self._store.refresh()
            except Exception as e:
                logger.exception("[ALLOWLIST] Refresh cycle error: %s", e)
            self._cycles += 1

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def cycles(self) -> int:
        return self._cycles
