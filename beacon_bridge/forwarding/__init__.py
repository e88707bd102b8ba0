from .forwarder import ForwardOutcome, IngestForwarder

__all__ = ["ForwardOutcome", "IngestForwarder"]
