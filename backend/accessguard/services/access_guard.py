"""Access guard: validates platform dashboard routes in the background.

For the platform a route resolves to, the guard asks the backend whether a
processing job is still running and whether the dashboard may be shown.
The backend is authoritative; local account state is only consulted when
the backend cannot be reached.

State machine (one instance per mounted guard):

    IDLE -> VALIDATING -> ALLOWED | REDIRECTING

ALLOWED and REDIRECTING are terminal for a navigation and re-enter
VALIDATING on the next route change. A stale result (the route changed
while validating) drops back to IDLE.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

from accessguard.clients.status_client import ProcessingStatusClient
from accessguard.config import Settings, get_settings
from accessguard.storage.local_state_cache import LocalStateCache
from core.models import (
    AccountPatch,
    AccountState,
    DecisionReason,
    GuardDecision,
    GuardState,
    PlatformAccess,
    Unreachable,
    can_transition,
)
from core.platform_resolver import PlatformResolver
from core.redirect_arbiter import RedirectArbiter

logger = logging.getLogger(__name__)

AccountCallback = Callable[[AccountState], Awaitable[None]]


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class AccessGuard:
    """Validates access to platform dashboards for one user."""

    def __init__(
        self,
        user_id: str,
        status_client: ProcessingStatusClient,
        cache: LocalStateCache,
        arbiter: RedirectArbiter,
        resolver: PlatformResolver | None = None,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
        now_ms: Callable[[], int] = _epoch_ms,
    ):
        settings = settings or get_settings()
        self.user_id = user_id
        self.status_client = status_client
        self.cache = cache
        self.arbiter = arbiter
        self.resolver = resolver or PlatformResolver()
        self.validation_timeout = settings.validation_timeout
        self.min_interval = settings.min_validation_interval
        self.fail_open = settings.fail_open
        self._clock = clock
        self._now_ms = now_ms

        self._state = GuardState.IDLE
        self._last_started: float | None = None
        self._last_route: str | None = None
        self._current_route: str | None = None
        self._pending_route: str | None = None
        self._followup: asyncio.Task | None = None
        self._account_callbacks: list[AccountCallback] = []

        self.last_decision: GuardDecision | None = None
        self.account: AccountState | None = None
        self.validation_count = 0

    @property
    def state(self) -> GuardState:
        return self._state

    @property
    def current_route(self) -> str | None:
        return self._current_route

    @property
    def is_validating(self) -> bool:
        return self._state is GuardState.VALIDATING

    def on_account(self, callback: AccountCallback) -> None:
        """Register a callback receiving the resolved account state."""
        self._account_callbacks.append(callback)

    def off_account(self, callback: AccountCallback) -> None:
        """Unregister an account state callback."""
        if callback in self._account_callbacks:
            self._account_callbacks.remove(callback)

    def _transition(self, target: GuardState) -> None:
        if not can_transition(self._state, target):
            raise ValueError(f"Invalid guard transition {self._state.value} -> {target.value}")
        self._state = target

    # =========================================================================
    # Entry points
    # =========================================================================

    async def navigate_to(self, route: str) -> GuardDecision | None:
        """Handle a route change reported by the routing layer."""
        self._current_route = route
        self.arbiter.begin_cycle(route)
        return await self.validate(route)

    async def revalidate(self) -> GuardDecision | None:
        """Re-check the current route, bypassing the rate limit.

        Used for out-of-band triggers (other tabs, focus). Skipped while a
        validation is already in flight.
        """
        if self._current_route is None or self.is_validating:
            return None
        return await self.validate(self._current_route, force=True)

    async def validate(self, route: str | None = None, *, force: bool = False) -> GuardDecision | None:
        """Validate a route and perform at most one redirect.

        Args:
            route: Route to validate (defaults to the current route)
            force: Skip the minimum interval between validations

        Returns:
            The decision, or None if the call was coalesced, rate limited
            or its result went stale
        """
        route = route or self._current_route
        if route is None:
            raise ValueError("No route to validate")
        if route != self._current_route:
            self._current_route = route
            self.arbiter.begin_cycle(route)

        if self.is_validating:
            self._pending_route = route
            logger.debug("Validation in flight, recorded %s", route)
            return None

        now = self._clock()
        if not force and self._last_started is not None:
            elapsed = now - self._last_started
            if elapsed < self.min_interval:
                if route != self._last_route:
                    self._pending_route = route
                    self._schedule_followup(self.min_interval - elapsed)
                logger.debug("Validation for %s rate limited (%.0f ms since last)", route, elapsed * 1000)
                return None

        self._transition(GuardState.VALIDATING)
        self._last_started = now
        self._last_route = route
        self.validation_count += 1

        try:
            decision = await asyncio.wait_for(self._evaluate(route), timeout=self.validation_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Validation for %s exceeded %.1fs, failing %s",
                route,
                self.validation_timeout,
                "open" if self.fail_open else "closed",
            )
            decision = self._fallback_decision(route, DecisionReason.VALIDATION_TIMEOUT)
        except Exception:
            logger.exception("Validation for %s failed", route)
            decision = self._fallback_decision(route, DecisionReason.VALIDATION_ERROR)

        if route != self._current_route:
            logger.info("Discarding stale decision for %s (now on %s)", route, self._current_route)
            self._transition(GuardState.IDLE)
            self._drain_pending(route)
            return None

        self._transition(decision.state)
        self.last_decision = decision
        logger.info(
            "Guard decision for %s: %s (%s)",
            route,
            "allow" if decision.allow else f"redirect -> {decision.redirect_to}",
            decision.reason.value,
        )

        if decision.allow:
            account = decision.metadata.get("account")
            if account is not None:
                await self._publish_account(account)
        else:
            await self.arbiter.dispatch(decision, self._current_route)

        self._drain_pending(route)
        return decision

    async def close(self) -> None:
        """Cancel any scheduled follow-up validation."""
        if self._followup is not None and not self._followup.done():
            self._followup.cancel()
            try:
                await self._followup
            except asyncio.CancelledError:
                pass
        self._followup = None

    # =========================================================================
    # Validation steps
    # =========================================================================

    async def _evaluate(self, route: str) -> GuardDecision:
        if not self.resolver.is_gated(route):
            return GuardDecision.allowed(DecisionReason.NOT_GATED)

        platform = self.resolver.resolve(route)

        states = await self.status_client.query_all(self.user_id)
        if not isinstance(states, Unreachable):
            # Jobs for other platforms never block this route
            state = states.get(platform)
            now = self._now_ms()
            if state is not None and state.is_active(now):
                return GuardDecision.redirect(
                    self.resolver.processing_route(platform),
                    DecisionReason.PROCESSING_ACTIVE,
                    platform=platform,
                    remaining_ms=state.remaining_ms(now),
                    remaining_minutes=state.remaining_minutes(now),
                    original_route=route,
                    from_guard=True,
                )

        access = await self.status_client.query_one(self.user_id, platform)
        if isinstance(access, PlatformAccess):
            return await self._decide_from_access(route, platform, access)

        if isinstance(states, Unreachable):
            return await self._decide_from_cache(route, platform, DecisionReason.CACHED_ACCESS)

        # Processing confirmed inactive; onboarding still has to come from the cache
        return await self._decide_from_cache(route, platform, DecisionReason.PROCESSING_INACTIVE)

    async def _decide_from_access(
        self, route: str, platform: str, access: PlatformAccess
    ) -> GuardDecision:
        if access.access_allowed:
            account = await self._confirm_account(platform, access)
            return GuardDecision.allowed(
                DecisionReason.ACCESS_ALLOWED, platform=platform, account=account
            )

        if access.is_processing:
            minutes = access.processing_data.remaining_minutes if access.processing_data else None
            metadata: dict[str, Any] = {
                "platform": platform,
                "original_route": route,
                "from_guard": True,
            }
            if minutes is not None:
                metadata["remaining_minutes"] = minutes
                metadata["remaining_ms"] = int(minutes * 60 * 1000)
            return GuardDecision.redirect(
                access.redirect_to or self.resolver.processing_route(platform),
                DecisionReason.PROCESSING_ACTIVE,
                **metadata,
            )

        return GuardDecision.redirect(
            access.redirect_to or self.resolver.onboarding_route(platform),
            DecisionReason.ACCESS_DENIED,
            platform=platform,
            backend_reason=access.reason,
            original_route=route,
        )

    async def _decide_from_cache(
        self, route: str, platform: str, reason: DecisionReason
    ) -> GuardDecision:
        account = await self.cache.get(self.user_id, platform)
        if account.is_onboarded:
            logger.info("Access check unavailable, allowing %s from cached state", platform)
            return GuardDecision.allowed(reason, platform=platform, account=account)

        return GuardDecision.redirect(
            self.resolver.onboarding_route(platform),
            DecisionReason.NOT_ONBOARDED,
            platform=platform,
            original_route=route,
        )

    async def _confirm_account(self, platform: str, access: PlatformAccess) -> AccountState:
        """Write backend-confirmed account details through to the cache."""
        cached = await self.cache.get(self.user_id, platform)
        remote = access.account
        if remote is None:
            await self.cache.mark_accessed(self.user_id, platform)
            return cached.model_copy(update={"accessed": True})

        provided = remote.model_fields_set
        account = AccountState(
            platform=platform,
            account_holder=remote.username or cached.account_holder,
            competitors=remote.competitors if "competitors" in provided else cached.competitors,
            account_type=remote.account_type or cached.account_type,
            accessed=True,
        )
        await self.cache.set(
            self.user_id,
            platform,
            AccountPatch(
                account_holder=account.account_holder,
                competitors=account.competitors,
                account_type=account.account_type,
                accessed=True,
            ),
        )
        return account

    def _fallback_decision(self, route: str, reason: DecisionReason) -> GuardDecision:
        """Decision when validation did not finish (timeout or unexpected error)."""
        platform = self.resolver.resolve(route)
        if self.fail_open or not self.resolver.is_gated(route):
            return GuardDecision.allowed(reason, platform=platform)
        return GuardDecision.redirect(
            self.resolver.processing_route(platform),
            reason,
            platform=platform,
            original_route=route,
        )

    # =========================================================================
    # Follow-ups and listeners
    # =========================================================================

    def _drain_pending(self, validated_route: str) -> None:
        """Validate a route change recorded while the guard was busy."""
        pending, self._pending_route = self._pending_route, None
        if pending is None or pending != self._current_route:
            return
        if pending == validated_route and self._state is not GuardState.IDLE:
            return

        elapsed = self._clock() - (self._last_started or 0.0)
        self._schedule_followup(max(0.0, self.min_interval - elapsed))

    def _schedule_followup(self, delay: float) -> None:
        if self._followup is not None and not self._followup.done():
            return
        self._followup = asyncio.get_running_loop().create_task(self._run_followup(delay))

    async def _run_followup(self, delay: float) -> None:
        await asyncio.sleep(delay)
        if self._current_route is None or self.is_validating:
            return
        await self.validate(self._current_route, force=True)

    async def _publish_account(self, account: AccountState) -> None:
        self.account = account
        for callback in list(self._account_callbacks):
            try:
                await callback(account)
            except Exception as e:
                logger.warning("Account callback failed: %s", e)
