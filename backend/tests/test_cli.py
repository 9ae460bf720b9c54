"""Tests for the command-line entry point."""

import argparse
import sys

import orjson
import pytest
from unittest.mock import AsyncMock, patch

from accessguard import __main__ as cli
from core.models import AccountState, DecisionReason, GuardDecision


class TestParseArgs:
    def test_defaults(self):
        with patch.object(sys, "argv", ["accessguard", "--user", "u1"]):
            args = cli.parse_args()
        assert args.user == "u1"
        assert args.route == "/dashboard"
        assert args.reset is None
        assert not args.redis
        assert not args.watch

    def test_user_required(self):
        with patch.object(sys, "argv", ["accessguard"]):
            with pytest.raises(SystemExit):
                cli.parse_args()


class TestDecisionToDict:
    def test_none(self):
        assert cli.decision_to_dict(None) == {"decision": None}

    def test_allowed_with_account(self):
        decision = GuardDecision.allowed(
            DecisionReason.CACHED_ACCESS,
            platform="twitter",
            account=AccountState(platform="twitter", account_holder="acme"),
        )
        data = cli.decision_to_dict(decision)

        assert data["allow"] is True
        assert data["reason"] == "cached_access"
        assert data["metadata"]["account"]["account_holder"] == "acme"
        orjson.dumps(data)


class TestConsoleNavigator:
    @pytest.mark.asyncio
    async def test_records_and_forwards(self):
        navigator = cli.ConsoleNavigator()
        navigator.guard = AsyncMock()

        await navigator.navigate("/twitter-dashboard", replace=False, state={})
        await navigator.navigate("/processing/twitter", replace=True, state={"reason": "processing_active"})

        assert navigator.history == ["/processing/twitter"]
        navigator.guard.navigate_to.assert_awaited_with("/processing/twitter")


class TestRun:
    @pytest.mark.asyncio
    async def test_reset_without_redis(self, tmp_path, capsys):
        args = argparse.Namespace(
            user="u1",
            route="/dashboard",
            reset="twitter",
            redis=False,
            routes=tmp_path / "routes.yaml",
            watch=False,
            verbose=False,
        )

        assert await cli.run(args) == 0

        out = orjson.loads(capsys.readouterr().out)
        assert out == {"reset": "twitter", "records": 6}
