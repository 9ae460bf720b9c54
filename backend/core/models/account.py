"""Account state models cached per user and platform."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class AccountType(str, Enum):
    """Dashboard flavour chosen during onboarding."""

    BRANDING = "branding"
    NON_BRANDING = "non-branding"


class AccountState(BaseModel):
    """Locally known account details for one platform.

    Eventually consistent with the backend. Missing fields stay missing:
    an unknown account holder is ``""`` and an unknown account type is
    ``None``, never a placeholder.
    """

    model_config = ConfigDict(frozen=True)

    platform: str
    account_holder: str = ""
    competitors: list[str] = Field(default_factory=list)
    account_type: AccountType | None = None
    accessed: bool = False

    @property
    def is_onboarded(self) -> bool:
        """Whether the cache holds enough to let the dashboard render."""
        return self.accessed or bool(self.account_holder)


class AccountPatch(BaseModel):
    """Partial account update. Only explicitly provided fields are written."""

    account_holder: str | None = None
    competitors: list[str] | None = None
    account_type: AccountType | None = None
    accessed: bool | None = None

    def provided(self) -> dict:
        """Fields that carry a value."""
        return self.model_dump(exclude_none=True)
