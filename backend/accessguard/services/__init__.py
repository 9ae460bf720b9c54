"""Guard services."""

from accessguard.services.access_guard import AccessGuard, AccountCallback
from accessguard.services.cross_tab_sync import CrossTabSync, processing_platform

__all__ = [
    "AccessGuard",
    "AccountCallback",
    "CrossTabSync",
    "processing_platform",
]
