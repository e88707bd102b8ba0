"""Fuente remota de la allowlist (tabla ``beacons`` vía REST)."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..domain.device_id import canonicalize_device_id

logger = logging.getLogger(__name__)


class AllowlistFetchError(Exception):
    """La consulta de la allowlist falló o devolvió algo inesperado."""


class RestAllowlistSource:
    """Consulta las filas ``{normalized_mac, is_active}`` de la BD.

    Autenticación estilo Supabase: ``apikey`` + ``Authorization: Bearer``.
    Solo lectura; se consulta por polling desde ``AllowlistRefresher``.
    """

    def __init__(
        self,
        url: str,
        auth_token: str,
        timeout_seconds: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
        id_field: str = "normalized_mac",
        active_field: str = "is_active",
    ):
        self.url = url
        self._auth_token = auth_token
        self._timeout = timeout_seconds
        self._client = client
        self._id_field = id_field
        self._active_field = active_field

    async def fetch(self) -> set[str]:
        """Retorna los identificadores activos, ya canonicalizados.

        Raises:
            AllowlistFetchError: error HTTP, timeout o respuesta malformada
        """
        headers = {
            "apikey": self._auth_token,
            "Authorization": f"Bearer {self._auth_token}",
        }
        try:
            if self._client is not None:
                response = await self._client.get(self.url, headers=headers, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(self.url, headers=headers)
            response.raise_for_status()
            rows = response.json()
        except httpx.HTTPStatusError as e:
            raise AllowlistFetchError(
                f"HTTP {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise AllowlistFetchError(f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            raise AllowlistFetchError(f"Invalid JSON body: {e}") from e

        return self._extract_active(rows)

    def _extract_active(self, rows: Any) -> set[str]:
        if not isinstance(rows, list):
            raise AllowlistFetchError(f"Expected a list of rows, got {type(rows).__name__}")

        active = set()
        for row in rows:
            if not isinstance(row, dict):
                continue
            # Solo se excluye is_active == false explícito; null/ausente cuenta como activo.
            if row.get(self._active_field) is False:
                continue
            key = canonicalize_device_id(row.get(self._id_field))
            if key:
                active.add(key)
        return active
