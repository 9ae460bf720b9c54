"""Backend clients."""

from accessguard.clients.status_client import ProcessingStatusClient

__all__ = [
    "ProcessingStatusClient",
]
