"""Allowlist de beacons en memoria.

El set se inicializa con la lista bootstrap (env) y se reemplaza entero en
cada sincronización exitosa con la BD (remoto ∪ bootstrap). Un fallo de
sincronización deja el set anterior intacto: mejor desactualizado que vacío.

Set vacío = sin restricción (fail-open), salvo ``fail_closed=True``.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Optional

from ..domain.device_id import canonicalize_device_id
from ..metrics import ALLOWLIST_REFRESHES, ALLOWLIST_SIZE
from .source import AllowlistFetchError, RestAllowlistSource

logger = logging.getLogger(__name__)


class AllowlistStore:
    """Allowlist con reemplazo atómico.

    El set es un ``frozenset`` inmutable que se intercambia bajo lock, así
    que ``is_allowed`` nunca ve un estado intermedio durante un refresh.
    """

    def __init__(
        self,
        bootstrap: Iterable[str] = (),
        source: Optional[RestAllowlistSource] = None,
        fail_closed: bool = False,
    ):
        keys = (canonicalize_device_id(item) for item in bootstrap)
        self._bootstrap = frozenset(key for key in keys if key)
        self._source = source
        self._fail_closed = fail_closed
        self._members: frozenset[str] = self._bootstrap
        self._lock = threading.Lock()

        self._refresh_ok = 0
        self._refresh_failed = 0
        ALLOWLIST_SIZE.set(len(self._members))

    @property
    def has_source(self) -> bool:
        return self._source is not None

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._members)

    def snapshot(self) -> frozenset[str]:
        with self._lock:
            return self._members

    def is_allowed(self, raw_identifier) -> bool:
        with self._lock:
            members = self._members
        if not members:
            return not self._fail_closed
        return canonicalize_device_id(raw_identifier) in members

    def replace(self, identifiers: Iterable[str]) -> int:
        """Reemplaza el set por ``identifiers ∪ bootstrap``. Retorna el tamaño."""
        keys = (canonicalize_device_id(item) for item in identifiers)
        members = frozenset(key for key in keys if key) | self._bootstrap
        with self._lock:
            self._members = members
        ALLOWLIST_SIZE.set(len(members))
        return len(members)

    async def refresh(self) -> bool:
        """Sincroniza con la fuente remota.

        Nunca lanza excepciones: ante cualquier fallo se loguea y se conserva
        el set anterior.

        Returns:
            True si el set fue reemplazado
        """
        if self._source is None:
            return False

        try:
            remote = await self._source.fetch()
        except AllowlistFetchError as e:
            self._refresh_failed += 1
            ALLOWLIST_REFRESHES.labels(status="failed").inc()
            logger.warning(
                "[ALLOWLIST] Sync failed; keeping previous set (size=%d): %s",
                self.size,
                e,
            )
            return False
        except Exception as e:
            self._refresh_failed += 1
            ALLOWLIST_REFRESHES.labels(status="failed").inc()
            logger.exception("[ALLOWLIST] Unexpected sync error; keeping previous set: %s", e)
            return False

        size = self.replace(remote)
        self._refresh_ok += 1
        ALLOWLIST_REFRESHES.labels(status="success").inc()
        logger.info("[ALLOWLIST] Synced beacon allowlist from DB size=%d", size)
        return True

    @property
    def stats(self) -> dict:
        return {
            "size": self.size,
            "bootstrap_size": len(self._bootstrap),
            "fail_closed": self._fail_closed,
            "refresh_ok": self._refresh_ok,
            "refresh_failed": self._refresh_failed,
        }
