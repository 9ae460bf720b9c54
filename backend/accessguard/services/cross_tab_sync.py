"""Cross-tab synchronization of processing state.

Another tab or device starting or finishing a platform job mutates the
shared ``<platform>_processing_*`` records. Those mutations schedule one
debounced re-validation of the current route.

Devices that share no storage channel are picked up by a periodic
re-validation while a gated route is open.
"""

from __future__ import annotations

import asyncio
import logging

from accessguard.services.access_guard import AccessGuard
from accessguard.storage.kv_store import KVStore, StorageEvent, Unsubscribe

logger = logging.getLogger(__name__)

PROCESSING_KEY_MARKER = "_processing_"


def processing_platform(key: str, platforms: list[str]) -> str | None:
    """Return the platform a ``<platform>_processing_*`` key belongs to."""
    for platform in platforms:
        if key.startswith(f"{platform}{PROCESSING_KEY_MARKER}"):
            return platform
    return None


class CrossTabSync:
    """Turns storage mutations from other tabs into guard re-validations.

    Args:
        guard: Guard whose current route is re-validated
        store: Store whose mutations are observed
        debounce: Delay (seconds) coalescing a burst of mutations
        sync_interval: Period (seconds) of the backend re-check on gated
            routes; None or 0 disables it
    """

    def __init__(
        self,
        guard: AccessGuard,
        store: KVStore,
        debounce: float = 0.4,
        sync_interval: float | None = None,
    ):
        self.guard = guard
        self.store = store
        self.debounce = debounce
        self.sync_interval = sync_interval
        self._unsubscribe: Unsubscribe | None = None
        self._pending: asyncio.Task | None = None
        self._periodic: asyncio.Task | None = None
        self.revalidations = 0
        self.periodic_syncs = 0

    @property
    def is_running(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> None:
        """Subscribe to storage mutations and start the periodic sync."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self.store.subscribe(self._on_storage_event)
        if self.sync_interval:
            self._periodic = asyncio.get_running_loop().create_task(self._sync_loop())
        logger.info("Cross-tab sync started (origin %s)", self.store.origin)

    async def stop(self) -> None:
        """Unsubscribe and cancel any scheduled re-validation."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        for task in (self._pending, self._periodic):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._pending = None
        self._periodic = None

    def is_relevant(self, event: StorageEvent) -> bool:
        """Whether a mutation affects the platform of the current gated route."""
        if event.origin == self.store.origin:
            return False

        platform = processing_platform(event.key, self.guard.resolver.platforms)
        if platform is None:
            return False

        route = self.guard.current_route
        if route is None or not self.guard.resolver.is_gated(route):
            return False
        return self.guard.resolver.resolve(route) == platform

    def _on_storage_event(self, event: StorageEvent) -> None:
        if not self.is_relevant(event):
            return
        logger.debug("Processing state for %s changed in another tab", event.key)
        self._schedule()

    def notify_focus(self) -> None:
        """Tab regained focus or became visible."""
        route = self.guard.current_route
        if route is not None and self.guard.resolver.is_gated(route):
            self._schedule()

    def _schedule(self) -> None:
        if self._pending is not None and not self._pending.done():
            logger.debug("Re-validation already scheduled, coalescing")
            return
        self._pending = asyncio.get_running_loop().create_task(self._revalidate_later())

    async def _revalidate_later(self) -> None:
        await asyncio.sleep(self.debounce)
        if self.guard.is_validating:
            logger.debug("Validation in flight, skipping cross-tab re-validation")
            return

        self.revalidations += 1
        await self.guard.revalidate()

    async def _sync_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sync_interval)
            route = self.guard.current_route
            if route is None or not self.guard.resolver.is_gated(route):
                continue
            if self.guard.is_validating:
                logger.debug("Validation in flight, skipping periodic sync")
                continue

            self.periodic_syncs += 1
            try:
                await self.guard.revalidate()
            except Exception:
                logger.exception("Periodic sync for %s failed", route)
