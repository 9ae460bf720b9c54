"""Route table configuration models."""

from __future__ import annotations

from pydantic import BaseModel, model_validator

PRIMARY_PLATFORM = "instagram"
PLATFORMS = ("instagram", "twitter", "facebook", "linkedin")

# Platform dashboards. Only these routes are access-gated by default;
# the main overview, account page, entry forms and processing views never are.
DEFAULT_DASHBOARD_ROUTES: dict[str, str] = {
    "/dashboard": "instagram",
    "/non-branding-dashboard": "instagram",
    "/dashboard/instagram": "instagram",
    "/dashboard/twitter": "twitter",
    "/twitter-dashboard": "twitter",
    "/dashboard/facebook": "facebook",
    "/facebook-dashboard": "facebook",
    "/dashboard/linkedin": "linkedin",
    "/linkedin-dashboard": "linkedin",
}

# Checked in order; the first fragment contained in the route wins
DEFAULT_SUBSTRINGS: list[tuple[str, str]] = [
    ("twitter", "twitter"),
    ("facebook", "facebook"),
    ("linkedin", "linkedin"),
    ("instagram", "instagram"),
]


class RouteTable(BaseModel):
    """Route → platform mapping plus the views the guard redirects to.

    ``gated`` defaults to every exact-match route when left empty.
    """

    primary_platform: str = PRIMARY_PLATFORM
    platforms: list[str] = list(PLATFORMS)
    exact: dict[str, str] = dict(DEFAULT_DASHBOARD_ROUTES)
    substrings: list[tuple[str, str]] = list(DEFAULT_SUBSTRINGS)
    gated: list[str] = []
    processing_prefix: str = "/processing/"
    onboarding: dict[str, str] = {}

    @model_validator(mode="after")
    def _validate(self):
        if self.primary_platform not in self.platforms:
            raise ValueError(
                f"primary_platform '{self.primary_platform}' is not one of {self.platforms}"
            )
        unknown = {p for p in self.exact.values() if p not in self.platforms}
        unknown |= {p for _, p in self.substrings if p not in self.platforms}
        if unknown:
            raise ValueError(f"route table references unknown platforms: {sorted(unknown)}")
        if not self.gated:
            self.gated = list(self.exact)
        if not self.processing_prefix.endswith("/"):
            self.processing_prefix += "/"
        return self

    def onboarding_route(self, platform: str) -> str:
        return self.onboarding.get(platform, f"/{platform}")
