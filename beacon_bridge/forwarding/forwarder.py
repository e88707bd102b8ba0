"""Forwarder → edge function de ingesta.

POST JSON autenticado (Bearer) con timeout acotado. Fire-and-forget para
el llamador: nunca lanza y nunca reintenta; el resultado solo se observa
en logs y métricas.

Clasificación:
- 200                                  → SENT
- 404 o ``{"error": "Beacon not registered"}`` → UNREGISTERED (debug)
- otro status                          → REJECTED (warning con body)
- timeout / error de transporte        → FAILED (error)
- cualquier otra excepción del envío   → FAILED (error)
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Optional

import httpx

from ..domain.reading import Reading
from ..metrics import FORWARD_LATENCY, FORWARD_RESULTS

logger = logging.getLogger(__name__)

UNREGISTERED_ERROR = "Beacon not registered"
MAX_LOGGED_BODY = 500


class ForwardOutcome(str, Enum):
    """Resultado de un envío."""
    SENT = "sent"
    UNREGISTERED = "unregistered"
    REJECTED = "rejected"
    FAILED = "failed"


def _error_field(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("error")
    return None


class IngestForwarder:
    """Envía lecturas normalizadas a la edge function.

    Uso:
        forwarder = IngestForwarder(url, token)
        outcome = await forwarder.forward(reading)
        await forwarder.aclose()
    """

    def __init__(
        self,
        url: str,
        auth_token: str,
        timeout_seconds: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self._auth_token = auth_token
        self._timeout = timeout_seconds
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

        self._counts = {outcome: 0 for outcome in ForwardOutcome}

    async def forward(self, reading: Reading) -> ForwardOutcome:
        payload = reading.to_ingest_payload()
        start = time.perf_counter()
        try:
            response = await self._client.post(
                self.url,
                json=payload,
                headers={"Authorization": f"Bearer {self._auth_token}"},
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            logger.error(
                "[FORWARDER] POST error mac=%s: %s: %s",
                reading.device_id,
                type(e).__name__,
                e,
            )
            return self._record(ForwardOutcome.FAILED)
        except Exception as e:
            # p.ej. ValueError al serializar un float no finito
            logger.exception(
                "[FORWARDER] Unexpected POST error mac=%s: %s",
                reading.device_id,
                e,
            )
            return self._record(ForwardOutcome.FAILED)
        finally:
            FORWARD_LATENCY.observe(time.perf_counter() - start)

        if response.status_code == 200:
            logger.debug(
                "[FORWARDER] Sent mac=%s temp=%s gw=%s",
                reading.device_id,
                reading.temperature,
                reading.gateway_id,
            )
            return self._record(ForwardOutcome.SENT)

        if response.status_code == 404 or _error_field(response) == UNREGISTERED_ERROR:
            logger.debug(
                "[FORWARDER] Ignored unregistered beacon mac=%s status=%d",
                reading.device_id,
                response.status_code,
            )
            return self._record(ForwardOutcome.UNREGISTERED)

        logger.warning(
            "[FORWARDER] Non-200 response status=%d mac=%s body=%s",
            response.status_code,
            reading.device_id,
            response.text[:MAX_LOGGED_BODY],
        )
        return self._record(ForwardOutcome.REJECTED)

    def _record(self, outcome: ForwardOutcome) -> ForwardOutcome:
        self._counts[outcome] += 1
        FORWARD_RESULTS.labels(outcome=outcome.value).inc()
        return outcome

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def stats(self) -> dict:
        return {outcome.value: count for outcome, count in self._counts.items()}
