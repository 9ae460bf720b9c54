"""Tests for route → platform resolution."""

import pytest

from core.models import RouteTable
from core.platform_resolver import PlatformResolver, normalize_route


class TestNormalizeRoute:
    @pytest.mark.parametrize(
        "route,expected",
        [
            ("/twitter-dashboard", "/twitter-dashboard"),
            ("/twitter-dashboard/", "/twitter-dashboard"),
            ("/twitter-dashboard?tab=posts", "/twitter-dashboard"),
            ("/dashboard#top", "/dashboard"),
            ("dashboard", "/dashboard"),
            ("/", "/"),
        ],
    )
    def test_normalize(self, route, expected):
        assert normalize_route(route) == expected


class TestPlatformResolver:
    @pytest.fixture
    def resolver(self):
        return PlatformResolver()

    @pytest.mark.parametrize(
        "route,platform",
        [
            ("/dashboard", "instagram"),
            ("/non-branding-dashboard", "instagram"),
            ("/twitter-dashboard", "twitter"),
            ("/dashboard/twitter", "twitter"),
            ("/facebook-dashboard", "facebook"),
            ("/dashboard/linkedin", "linkedin"),
        ],
    )
    def test_exact_match(self, resolver, route, platform):
        assert resolver.resolve(route) == platform

    def test_substring_fallback(self, resolver):
        """Routes outside the exact table resolve by contained platform name."""
        assert resolver.resolve("/processing/twitter") == "twitter"
        assert resolver.resolve("/facebook") == "facebook"
        assert resolver.resolve("/settings/LinkedIn/profile") == "linkedin"

    def test_default_to_primary_platform(self, resolver):
        assert resolver.resolve("/account") == "instagram"
        assert resolver.resolve("/") == "instagram"

    def test_resolution_is_idempotent(self, resolver):
        answers = {resolver.resolve("/twitter-dashboard?x=1") for _ in range(10)}
        assert answers == {"twitter"}

    def test_only_dashboards_are_gated(self, resolver):
        assert resolver.is_gated("/twitter-dashboard")
        assert resolver.is_gated("/dashboard/")
        assert not resolver.is_gated("/account")
        assert not resolver.is_gated("/processing/twitter")
        assert not resolver.is_gated("/twitter")
        assert not resolver.is_gated("/main-dashboard")

    def test_view_routes(self, resolver):
        assert resolver.processing_route("twitter") == "/processing/twitter"
        assert resolver.onboarding_route("linkedin") == "/linkedin"
        assert resolver.is_processing_route("/processing/facebook")
        assert not resolver.is_processing_route("/facebook-dashboard")

    def test_custom_table(self):
        table = RouteTable(
            exact={"/tw": "twitter"},
            processing_prefix="/wait",
            onboarding={"twitter": "/onboarding/twitter"},
        )
        resolver = PlatformResolver(table)

        assert resolver.resolve("/tw") == "twitter"
        assert resolver.is_gated("/tw")
        assert not resolver.is_gated("/twitter-dashboard")
        assert resolver.processing_route("twitter") == "/wait/twitter"
        assert resolver.onboarding_route("twitter") == "/onboarding/twitter"
        assert resolver.onboarding_route("facebook") == "/facebook"
