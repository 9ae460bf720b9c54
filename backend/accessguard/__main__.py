"""CLI entry point for the access guard.

Runs one validation for a user/route against the configured status backend
and prints the decision. With --watch, re-checks the backend periodically and
listens for processing state changes made from other tabs (requires --redis
to see them).

Usage:
    python -m accessguard --user abc123 --route /twitter-dashboard
    python -m accessguard --user abc123 --route /dashboard --redis --watch
    python -m accessguard --user abc123 --reset twitter --redis
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

import orjson

# Configure logging FIRST, before any other imports
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.WARNING)

from accessguard.clients import ProcessingStatusClient
from accessguard.config import get_settings
from accessguard.route_config import load_route_table
from accessguard.services import AccessGuard, CrossTabSync
from accessguard.storage import KVStore, LocalStateCache, MemoryKVStore, RedisKVStore
from core.models import AccountState, GuardDecision
from core.platform_resolver import PlatformResolver
from core.redirect_arbiter import RedirectArbiter

logger = logging.getLogger(__name__)


class ConsoleNavigator:
    """Navigator that logs navigations and feeds them back to the guard."""

    def __init__(self):
        self.guard: AccessGuard | None = None
        self.history: list[str] = []

    async def navigate(self, path: str, *, replace: bool, state: dict[str, Any]) -> None:
        if replace and self.history:
            self.history[-1] = path
        else:
            self.history.append(path)
        logger.info("Navigate %s %s state=%s", "replace" if replace else "push", path, state)
        if self.guard is not None:
            await self.guard.navigate_to(path)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Validate platform dashboard access for a user",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m accessguard --user abc123 --route /twitter-dashboard
  python -m accessguard --user abc123 --route /dashboard --redis --watch
  python -m accessguard --user abc123 --reset twitter --redis
        """,
    )
    parser.add_argument("--user", required=True, help="User ID")
    parser.add_argument(
        "--route",
        type=str,
        default="/dashboard",
        help="Route to validate (default: /dashboard)",
    )
    parser.add_argument(
        "--reset",
        type=str,
        default=None,
        metavar="PLATFORM",
        help="Clear cached account state for a platform and exit",
    )
    parser.add_argument(
        "--redis",
        action="store_true",
        help="Keep local state in Redis instead of memory",
    )
    parser.add_argument(
        "--routes",
        type=Path,
        default=None,
        help="Route table YAML (default: routes.yaml next to the package)",
    )
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Keep re-validating on cross-tab processing changes until interrupted",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose logging",
    )
    return parser.parse_args()


def decision_to_dict(decision: GuardDecision | None) -> dict[str, Any]:
    if decision is None:
        return {"decision": None}

    metadata = {
        key: value.model_dump(mode="json") if isinstance(value, AccountState) else value
        for key, value in decision.metadata.items()
    }
    return {
        "allow": decision.allow,
        "reason": decision.reason.value,
        "redirect_to": decision.redirect_to,
        "metadata": metadata,
    }


async def open_store(use_redis: bool) -> KVStore:
    if use_redis:
        store = await RedisKVStore.connect(get_settings())
        if store is not None:
            return store
    return MemoryKVStore()


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    routes_path = args.routes or (Path(settings.routes_file) if settings.routes_file else None)
    resolver = PlatformResolver(load_route_table(routes_path))

    store = await open_store(args.redis)
    cache = LocalStateCache(store)

    if args.reset:
        deleted = await cache.reset(args.user, args.reset)
        print(orjson.dumps({"reset": args.reset, "records": deleted}).decode())
        if isinstance(store, RedisKVStore):
            await store.close()
        return 0

    client = ProcessingStatusClient.from_settings(settings)
    navigator = ConsoleNavigator()
    guard = AccessGuard(
        args.user,
        client,
        cache,
        RedirectArbiter(navigator),
        resolver=resolver,
        settings=settings,
    )
    navigator.guard = guard
    sync = CrossTabSync(
        guard,
        store,
        debounce=settings.cross_tab_debounce,
        sync_interval=settings.sync_interval,
    )

    try:
        decision = await guard.navigate_to(args.route)
        print(orjson.dumps(decision_to_dict(decision), option=orjson.OPT_INDENT_2).decode())

        if args.watch:
            sync.start()
            logger.info("Watching for processing changes on %s (Ctrl-C to stop)", guard.current_route)
            while True:
                await asyncio.sleep(3600)
    except asyncio.CancelledError:
        pass
    finally:
        await sync.stop()
        await guard.close()
        await client.close()
        if isinstance(store, RedisKVStore):
            await store.close()

    return 0


def main() -> None:
    args = parse_args()
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        sys.exit(asyncio.run(run(args)))
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
