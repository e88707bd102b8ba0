"""Allowlist de beacons: store en memoria, fuente REST y refresco periódico."""

from .refresher import AllowlistRefresher
from .source import AllowlistFetchError, RestAllowlistSource
from .store import AllowlistStore

__all__ = [
    "AllowlistFetchError",
    "AllowlistRefresher",
    "AllowlistStore",
    "RestAllowlistSource",
]
