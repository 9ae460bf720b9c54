"""Route → platform resolution.

Pure and deterministic: exact-match table first, substring fallback second,
primary platform when nothing matches.
"""

from __future__ import annotations

from core.models.config import RouteTable


def normalize_route(route: str) -> str:
    """Strip query string, fragment and trailing slash (except for the root)."""
    path = route.split("?", 1)[0].split("#", 1)[0].strip()
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return path


class PlatformResolver:
    """Maps routes to canonical platform identifiers."""

    def __init__(self, table: RouteTable | None = None):
        self.table = table or RouteTable()
        self._gated = frozenset(normalize_route(r) for r in self.table.gated)
        self._exact = {normalize_route(r): p for r, p in self.table.exact.items()}

    @property
    def platforms(self) -> list[str]:
        return list(self.table.platforms)

    def resolve(self, route: str) -> str:
        """Resolve a route to its platform."""
        path = normalize_route(route)

        platform = self._exact.get(path)
        if platform is not None:
            return platform

        lowered = path.lower()
        for fragment, candidate in self.table.substrings:
            if fragment in lowered:
                return candidate

        return self.table.primary_platform

    def is_gated(self, route: str) -> bool:
        """Only exact platform dashboard routes require access validation."""
        return normalize_route(route) in self._gated

    def is_processing_route(self, route: str) -> bool:
        return normalize_route(route).startswith(self.table.processing_prefix)

    def processing_route(self, platform: str) -> str:
        return f"{self.table.processing_prefix}{platform}"

    def onboarding_route(self, platform: str) -> str:
        return self.table.onboarding_route(platform)
