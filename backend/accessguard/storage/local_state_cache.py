"""Per-user, per-platform account state cache.

Local state is an optimistic placeholder for what the backend knows. When
the primary username record is missing it is backfilled, in priority order,
from the raw account-data record and then from the last known processing
info. Every successful backfill is written through to the primary key so
later reads converge without re-deriving.

Data structure (per user/platform):
- {platform}_accessed_{user}        -> "true"
- {platform}_username_{user}        -> username
- {platform}_competitors_{user}     -> JSON list of usernames
- {platform}_account_type_{user}    -> "branding" | "non-branding"
- {platform}_account_data_{user}    -> JSON {username, competitors, accountType}
- {platform}_processing_info_{user} -> JSON {platform, username, startTime, endTime}
"""

from __future__ import annotations

import logging
from typing import Any

import orjson

from accessguard.storage.kv_store import KVStore
from core.models import AccountPatch, AccountState, AccountType

logger = logging.getLogger(__name__)

# Processing windows longer than this are treated as inconsistent records
PROCESSING_INFO_MAX_DURATION_MS = 20 * 60 * 1000


def accessed_key(platform: str, user: str) -> str:
    return f"{platform}_accessed_{user}"


def username_key(platform: str, user: str) -> str:
    return f"{platform}_username_{user}"


def competitors_key(platform: str, user: str) -> str:
    return f"{platform}_competitors_{user}"


def account_type_key(platform: str, user: str) -> str:
    return f"{platform}_account_type_{user}"


def account_data_key(platform: str, user: str) -> str:
    return f"{platform}_account_data_{user}"


def processing_info_key(platform: str, user: str) -> str:
    return f"{platform}_processing_info_{user}"


def _parse_account_type(value: Any) -> AccountType | None:
    try:
        return AccountType(value)
    except (ValueError, TypeError):
        return None


def _parse_competitors(value: Any) -> list[str] | None:
    if isinstance(value, list) and all(isinstance(c, str) for c in value):
        return value
    return None


class LocalStateCache:
    """Account state cache over an injected key-value store."""

    def __init__(self, store: KVStore):
        self.store = store

    async def _read_json(self, key: str) -> Any | None:
        """Read and decode a JSON record; an unparsable record counts as absent."""
        raw = await self.store.get(key)
        if raw is None:
            return None

        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            logger.warning(f"Corrupt cache record {key}, treating as absent: {e}")
            return None

    async def _read_competitors(self, user: str, platform: str) -> list[str] | None:
        key = competitors_key(platform, user)
        data = await self._read_json(key)
        if data is None:
            return None

        competitors = _parse_competitors(data)
        if competitors is None:
            logger.warning(f"Corrupt cache record {key}: expected a list of strings")
        return competitors

    async def _read_account_type(self, user: str, platform: str) -> AccountType | None:
        key = account_type_key(platform, user)
        raw = await self.store.get(key)
        if raw is None:
            return None

        account_type = _parse_account_type(raw)
        if account_type is None:
            logger.warning(f"Corrupt cache record {key}: unknown account type {raw!r}")
        return account_type

    async def _read_processing_info(self, user: str, platform: str) -> dict | None:
        """Last known processing info, ignored if it is inconsistent."""
        key = processing_info_key(platform, user)
        info = await self._read_json(key)
        if not isinstance(info, dict):
            return None

        if info.get("platform", platform) != platform:
            logger.warning(
                f"Ignoring {key}: recorded for platform {info.get('platform')!r}"
            )
            return None

        start, end = info.get("startTime"), info.get("endTime")
        if (
            isinstance(start, (int, float))
            and isinstance(end, (int, float))
            and end - start > PROCESSING_INFO_MAX_DURATION_MS
        ):
            logger.warning(f"Ignoring {key}: unrealistic processing window")
            return None

        return info

    async def get(self, user: str, platform: str) -> AccountState:
        """Read the account state, backfilling a missing username.

        Args:
            user: User ID
            platform: Platform identifier

        Returns:
            AccountState with absent fields left empty
        """
        username = await self.store.get(username_key(platform, user)) or ""
        accessed = await self.store.get(accessed_key(platform, user)) == "true"
        competitors = await self._read_competitors(user, platform)
        account_type = await self._read_account_type(user, platform)

        backfill: dict[str, Any] = {}

        if not username or competitors is None or account_type is None:
            data = await self._read_json(account_data_key(platform, user))
            if isinstance(data, dict):
                candidate = data.get("username") or data.get("accountHolder")
                if not username and isinstance(candidate, str) and candidate:
                    username = backfill["account_holder"] = candidate
                if competitors is None:
                    parsed = _parse_competitors(data.get("competitors"))
                    if parsed is not None:
                        competitors = backfill["competitors"] = parsed
                if account_type is None:
                    parsed_type = _parse_account_type(data.get("accountType"))
                    if parsed_type is not None:
                        account_type = backfill["account_type"] = parsed_type

        if not username:
            info = await self._read_processing_info(user, platform)
            candidate = info.get("username") if info else None
            if isinstance(candidate, str) and candidate:
                username = backfill["account_holder"] = candidate

        if backfill:
            logger.debug(f"Backfilled {platform} cache for {user}: {sorted(backfill)}")
            await self.set(user, platform, AccountPatch(**backfill))

        return AccountState(
            platform=platform,
            account_holder=username,
            competitors=competitors or [],
            account_type=account_type,
            accessed=accessed,
        )

    async def set(self, user: str, platform: str, patch: AccountPatch) -> bool:
        """Merge a partial update into the cache.

        Never destructive: empty usernames and ``accessed=False`` are not
        written. Only ``reset`` removes records.

        Returns:
            True if every provided field was persisted
        """
        writes: dict[str, str] = {}
        if patch.account_holder:
            writes[username_key(platform, user)] = patch.account_holder
        if patch.competitors is not None:
            writes[competitors_key(platform, user)] = orjson.dumps(patch.competitors).decode()
        if patch.account_type is not None:
            writes[account_type_key(platform, user)] = patch.account_type.value
        if patch.accessed:
            writes[accessed_key(platform, user)] = "true"

        ok = True
        for key, value in writes.items():
            ok = await self.store.set(key, value) and ok
        return ok

    async def mark_accessed(self, user: str, platform: str) -> bool:
        return await self.set(user, platform, AccountPatch(accessed=True))

    async def reset(self, user: str, platform: str) -> int:
        """Explicit full account reset for one platform.

        Returns:
            Number of records the store accepted for deletion
        """
        keys = [
            accessed_key(platform, user),
            username_key(platform, user),
            competitors_key(platform, user),
            account_type_key(platform, user),
            account_data_key(platform, user),
            processing_info_key(platform, user),
        ]
        deleted = 0
        for key in keys:
            if await self.store.delete(key):
                deleted += 1
        logger.info(f"Reset {platform} account state for {user}")
        return deleted
