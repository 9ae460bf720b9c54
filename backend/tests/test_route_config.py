"""Tests for route_config.py and the RouteTable model."""

import textwrap

import pytest
from pydantic import ValidationError

from accessguard.route_config import load_route_table
from core.models.config import DEFAULT_DASHBOARD_ROUTES, RouteTable


# ── RouteTable model tests ────────────────────────────────────────────────


class TestRouteTable:
    def test_defaults_gate_every_dashboard(self):
        table = RouteTable()
        assert set(table.gated) == set(DEFAULT_DASHBOARD_ROUTES)
        assert table.primary_platform == "instagram"

    def test_processing_prefix_gets_trailing_slash(self):
        table = RouteTable(processing_prefix="/wait")
        assert table.processing_prefix == "/wait/"

    def test_unknown_platform_rejected(self):
        with pytest.raises(ValidationError):
            RouteTable(exact={"/tiktok-dashboard": "tiktok"})

    def test_unknown_primary_rejected(self):
        with pytest.raises(ValidationError):
            RouteTable(primary_platform="tiktok")

    def test_explicit_gated_list_kept(self):
        table = RouteTable(gated=["/twitter-dashboard"])
        assert table.gated == ["/twitter-dashboard"]

    def test_onboarding_route_default(self):
        table = RouteTable(onboarding={"facebook": "/entry/facebook"})
        assert table.onboarding_route("facebook") == "/entry/facebook"
        assert table.onboarding_route("twitter") == "/twitter"


# ── load_route_table tests ────────────────────────────────────────────────


class TestLoadRouteTable:
    def test_missing_file_returns_defaults(self, tmp_path):
        table = load_route_table(tmp_path / "missing.yaml")
        assert table == RouteTable()

    def test_empty_file_returns_defaults(self, tmp_path):
        path = tmp_path / "routes.yaml"
        path.write_text("")
        assert load_route_table(path) == RouteTable()

    def test_yaml_overrides(self, tmp_path):
        path = tmp_path / "routes.yaml"
        path.write_text(textwrap.dedent("""\
            exact:
              /dashboard: instagram
              /x-dashboard: twitter
            substrings:
              - [x-, twitter]
            processing_prefix: /processing-view
            onboarding:
              twitter: /connect/twitter
        """))

        table = load_route_table(path)

        assert table.exact == {"/dashboard": "instagram", "/x-dashboard": "twitter"}
        assert table.gated == ["/dashboard", "/x-dashboard"]
        assert table.substrings == [("x-", "twitter")]
        assert table.processing_prefix == "/processing-view/"
        assert table.onboarding_route("twitter") == "/connect/twitter"

    def test_invalid_yaml_table_raises(self, tmp_path):
        path = tmp_path / "routes.yaml"
        path.write_text("exact:\n  /y: myspace\n")
        with pytest.raises(ValidationError):
            load_route_table(path)
