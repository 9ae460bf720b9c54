"""Processing status REST client.

Every failure is reported as an ``Unreachable`` value, never raised:
callers fall back to local state instead of treating the failure as
"processing inactive".
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
import orjson
from pydantic import ValidationError

from accessguard.config import Settings
from core.models import FailureKind, PlatformAccess, ProcessingState, Unreachable

logger = logging.getLogger(__name__)


class ProcessingStatusClient:
    """Queries the backend for authoritative processing state."""

    STATUS_PATH = "/api/processing-status/{user}"

    def __init__(
        self,
        base_url: str = "http://localhost:3000",
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> ProcessingStatusClient:
        return cls(base_url=settings.status_api_url, timeout=settings.status_timeout)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self, method: str, endpoint: str, params: dict[str, Any] | None = None
    ) -> Any:
        """Make an API request and decode the JSON body."""
        client = await self._get_client()
        response = await client.request(method, endpoint, params=params)
        response.raise_for_status()
        return orjson.loads(response.content)

    async def _fetch(
        self, endpoint: str, params: dict[str, Any] | None = None
    ) -> Any | Unreachable:
        try:
            return await self._request("GET", endpoint, params)
        except httpx.TimeoutException as e:
            logger.warning(f"Status request timed out ({endpoint}): {e!r}")
            return Unreachable(FailureKind.NETWORK, "timeout")
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning(f"Status request failed ({endpoint}): HTTP {status}")
            return Unreachable(FailureKind.NETWORK, f"http {status}")
        except httpx.HTTPError as e:
            logger.warning(f"Status request error ({endpoint}): {e!r}")
            return Unreachable(FailureKind.NETWORK, str(e) or type(e).__name__)
        except orjson.JSONDecodeError as e:
            logger.warning(f"Status response is not JSON ({endpoint}): {e}")
            return Unreachable(FailureKind.DATA, "invalid json")

    async def query_one(self, user: str, platform: str) -> PlatformAccess | Unreachable:
        """Check dashboard access for one platform.

        Args:
            user: User ID
            platform: Platform identifier (e.g. "twitter")

        Returns:
            PlatformAccess, or Unreachable on any failure
        """
        data = await self._fetch(self.STATUS_PATH.format(user=user), {"platform": platform})
        if isinstance(data, Unreachable):
            return data

        try:
            return PlatformAccess.model_validate(data)
        except ValidationError as e:
            logger.warning(
                f"Malformed status payload for {platform}: {e.error_count()} errors"
            )
            return Unreachable(FailureKind.DATA, "malformed access payload")

    async def query_all(self, user: str) -> dict[str, ProcessingState] | Unreachable:
        """Fetch processing windows for every platform in one round trip.

        Args:
            user: User ID

        Returns:
            Dict mapping platform to ProcessingState, or Unreachable on failure
        """
        data = await self._fetch(self.STATUS_PATH.format(user=user))
        if isinstance(data, Unreachable):
            return data

        if not isinstance(data, dict):
            logger.warning(f"Malformed processing status payload: {type(data).__name__}")
            return Unreachable(FailureKind.DATA, "expected an object")

        states: dict[str, ProcessingState] = {}
        for platform, entry in data.items():
            if not isinstance(entry, dict):
                continue
            try:
                states[platform] = ProcessingState.model_validate({**entry, "platform": platform})
            except ValidationError as e:
                logger.warning(f"Skipping malformed processing state for {platform}: {e}")
        return states
