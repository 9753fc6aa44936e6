"""Per-client daily request limit, resetting at midnight Asia/Seoul."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

DEFAULT_DAILY_LIMIT = 20
RESET_TIMEZONE = ZoneInfo("Asia/Seoul")


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: str  # ISO-8601, next midnight in RESET_TIMEZONE


class RateLimiter:
    """Count requests per client per calendar day.

    Args:
        daily_limit: Requests allowed per client per day.
        clock:       Returns the current aware datetime (injectable for tests).
    """

    def __init__(
        self,
        daily_limit: int = DEFAULT_DAILY_LIMIT,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._daily_limit = daily_limit
        self._clock = clock or (lambda: datetime.now(RESET_TIMEZONE))
        self._counts: dict[str, tuple[str, int]] = {}  # client → (day, count)

    def check_limit(self, client_id: str) -> RateLimitResult:
        now = self._now()
        used = self._used(client_id, now)
        remaining = max(self._daily_limit - used, 0)
        return RateLimitResult(
            allowed=used < self._daily_limit,
            remaining=remaining,
            reset_at=_next_midnight(now).isoformat(),
        )

    def increment(self, client_id: str) -> None:
        """Count one request for *client_id*, dropping counters from earlier days."""
        now = self._now()
        today = now.date().isoformat()
        used = self._used(client_id, now)
        self._counts = {c: entry for c, entry in self._counts.items() if entry[0] == today}
        self._counts[client_id] = (today, used + 1)

    def _used(self, client_id: str, now: datetime) -> int:
        day, count = self._counts.get(client_id, ("", 0))
        return count if day == now.date().isoformat() else 0

    def _now(self) -> datetime:
        return self._clock().astimezone(RESET_TIMEZONE)


def _next_midnight(now: datetime) -> datetime:
    tomorrow = now.date() + timedelta(days=1)
    return datetime.combine(tomorrow, time.min, tzinfo=RESET_TIMEZONE)
