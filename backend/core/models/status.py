"""Backend status responses as tagged variants.

A status query either succeeds with a parsed payload or is ``Unreachable``.
``Unreachable`` means "unknown" and must never be read as "processing
inactive".
"""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from core.models.account import AccountType

REASON_PROCESSING_ACTIVE = "processing_active"


class FailureKind(str, Enum):
    """Failure taxonomy for the access-validation subsystem."""

    NETWORK = "network"  # Timeout, connection failure, non-2xx status
    DATA = "data"  # Malformed backend payload
    CACHE_CORRUPTION = "cache_corruption"  # Unparsable stored record
    REDIRECT_LOOP = "redirect_loop"  # Redirect to the route already active


@dataclass(frozen=True)
class Unreachable:
    """The authoritative path could not answer."""

    kind: FailureKind = FailureKind.NETWORK
    detail: str = ""


class ProcessingData(BaseModel):
    """Extra processing details attached to a denied access check."""

    model_config = ConfigDict(populate_by_name=True)

    remaining_minutes: float | None = Field(default=None, alias="remainingMinutes")


class RemoteAccount(BaseModel):
    """Backend-confirmed account details for a platform."""

    model_config = ConfigDict(populate_by_name=True)

    username: str = ""
    competitors: list[str] = Field(default_factory=list)
    account_type: AccountType | None = Field(default=None, alias="accountType")


class PlatformAccess(BaseModel):
    """Successful per-platform status response."""

    model_config = ConfigDict(populate_by_name=True)

    access_allowed: bool = Field(alias="accessAllowed")
    reason: str | None = None
    redirect_to: str | None = Field(default=None, alias="redirectTo")
    processing_data: ProcessingData | None = Field(default=None, alias="processingData")
    account: RemoteAccount | None = None

    @property
    def is_processing(self) -> bool:
        """Denied because the platform job is still running."""
        return not self.access_allowed and self.reason == REASON_PROCESSING_ACTIVE
