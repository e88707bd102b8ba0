from .engine import ThrottleEngine, ThrottleRecord

__all__ = ["ThrottleEngine", "ThrottleRecord"]
