"""Redirect arbitration.

Guarantees at most one effective navigation per validation cycle and
suppresses redirects that would loop back onto the active route.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from core.models.decision import GuardDecision
from core.platform_resolver import normalize_route

logger = logging.getLogger(__name__)


@runtime_checkable
class Navigator(Protocol):
    """Navigation sink provided by the routing layer."""

    async def navigate(self, path: str, *, replace: bool, state: dict[str, Any]) -> None:
        """Navigate to ``path``. ``replace`` swaps the current history entry."""
        ...


class RedirectArbiter:
    """Decides whether a guard decision results in a navigation call."""

    def __init__(self, navigator: Navigator):
        self._navigator = navigator
        self._last_target: str | None = None
        self._cycle_route: str | None = None
        self.suppressed_loops = 0

    @property
    def last_target(self) -> str | None:
        return self._last_target

    def begin_cycle(self, route: str) -> None:
        """Start a new navigation cycle on a route change."""
        path = normalize_route(route)
        if path == self._cycle_route:
            return
        self._cycle_route = path
        self._last_target = None

    async def dispatch(self, decision: GuardDecision, current_route: str) -> bool:
        """Navigate for a redirecting decision.

        Returns:
            True if a navigation call was made.
        """
        if decision.allow or not decision.redirect_to:
            return False

        target = normalize_route(decision.redirect_to)
        if target == normalize_route(current_route):
            self.suppressed_loops += 1
            logger.debug("Redirect to active route %s suppressed", target)
            return False

        if target == self._last_target:
            logger.debug("Redirect to %s already issued this cycle", target)
            return False

        self._last_target = target
        state = dict(decision.metadata)
        state["reason"] = decision.reason.value

        try:
            await self._navigator.navigate(decision.redirect_to, replace=True, state=state)
        except Exception as e:
            logger.warning("Navigation to %s failed: %s", decision.redirect_to, e)
            self._last_target = None
            return False

        logger.info(
            "Redirected %s -> %s (%s)", current_route, decision.redirect_to, decision.reason.value
        )
        return True
