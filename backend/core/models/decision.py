"""Guard state machine and validation decision models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class GuardState(str, Enum):
    """Lifecycle of one guard instance within a navigation cycle."""

    IDLE = "idle"
    VALIDATING = "validating"
    ALLOWED = "allowed"
    REDIRECTING = "redirecting"


ALLOWED_TRANSITIONS: dict[GuardState, set[GuardState]] = {
    GuardState.IDLE: {GuardState.VALIDATING},
    # Back to IDLE when the result is discarded as stale
    GuardState.VALIDATING: {GuardState.ALLOWED, GuardState.REDIRECTING, GuardState.IDLE},
    GuardState.ALLOWED: {GuardState.VALIDATING, GuardState.IDLE},
    GuardState.REDIRECTING: {GuardState.VALIDATING, GuardState.IDLE},
}


def can_transition(source: GuardState, target: GuardState) -> bool:
    return target in ALLOWED_TRANSITIONS.get(source, set())


class DecisionReason(str, Enum):
    """Why a validation ended the way it did."""

    NOT_GATED = "not_gated"
    PROCESSING_ACTIVE = "processing_active"
    ACCESS_ALLOWED = "access_allowed"
    ACCESS_DENIED = "access_denied"
    PROCESSING_INACTIVE = "processing_inactive"
    CACHED_ACCESS = "cached_access"
    NOT_ONBOARDED = "not_onboarded"
    VALIDATION_TIMEOUT = "validation_timeout"
    VALIDATION_ERROR = "validation_error"


@dataclass(frozen=True)
class GuardDecision:
    """Result of validating one route.

    Attributes:
        allow: Whether the route may render.
        reason: Which branch produced the decision.
        redirect_to: Replace-navigation target when not allowed.
        metadata: Navigation state for redirects (platform, remaining time,
            original route) or the resolved account for allows.
    """

    allow: bool
    reason: DecisionReason
    redirect_to: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def state(self) -> GuardState:
        return GuardState.ALLOWED if self.allow else GuardState.REDIRECTING

    @classmethod
    def allowed(cls, reason: DecisionReason, **metadata: Any) -> GuardDecision:
        return cls(allow=True, reason=reason, metadata=metadata)

    @classmethod
    def redirect(cls, target: str, reason: DecisionReason, **metadata: Any) -> GuardDecision:
        return cls(allow=False, reason=reason, redirect_to=target, metadata=metadata)
