"""Domain layer - Modelos de dominio del bridge."""

from .device_id import canonicalize_device_id
from .reading import Reading

__all__ = ["Reading", "canonicalize_device_id"]
