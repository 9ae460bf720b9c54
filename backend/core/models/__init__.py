"""Domain models."""

from core.models.account import AccountPatch, AccountState, AccountType
from core.models.config import (
    PLATFORMS,
    PRIMARY_PLATFORM,
    RouteTable,
)
from core.models.decision import (
    ALLOWED_TRANSITIONS,
    DecisionReason,
    GuardDecision,
    GuardState,
    can_transition,
)
from core.models.processing_state import ProcessingState
from core.models.status import (
    REASON_PROCESSING_ACTIVE,
    FailureKind,
    PlatformAccess,
    ProcessingData,
    RemoteAccount,
    Unreachable,
)

__all__ = [
    "AccountPatch",
    "AccountState",
    "AccountType",
    "PLATFORMS",
    "PRIMARY_PLATFORM",
    "RouteTable",
    "ALLOWED_TRANSITIONS",
    "DecisionReason",
    "GuardDecision",
    "GuardState",
    "can_transition",
    "ProcessingState",
    "REASON_PROCESSING_ACTIVE",
    "FailureKind",
    "PlatformAccess",
    "ProcessingData",
    "RemoteAccount",
    "Unreachable",
]
