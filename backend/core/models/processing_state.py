"""Processing state model for tracking long-running platform jobs."""

import math

from pydantic import BaseModel, ConfigDict, Field


class ProcessingState(BaseModel):
    """Server-tracked processing window for one platform.

    Only ever built from a fresh backend read; the client observes it and
    never mutates it:
    - start_time: Epoch milliseconds when the job started, if reported
    - end_time: Epoch milliseconds when the job is expected to finish

    Activity depends on end_time only.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    platform: str
    start_time: int | None = Field(default=None, alias="startTime")
    end_time: int = Field(alias="endTime")

    def is_active(self, now_ms: int) -> bool:
        """Check whether the job is still running at ``now_ms``."""
        return self.end_time > now_ms

    def remaining_ms(self, now_ms: int) -> int:
        """Milliseconds until the job window closes (never negative)."""
        return max(0, self.end_time - now_ms)

    def remaining_minutes(self, now_ms: int) -> int:
        """Remaining time rounded up to whole minutes, as the processing view shows it."""
        return math.ceil(self.remaining_ms(now_ms) / 1000 / 60)
