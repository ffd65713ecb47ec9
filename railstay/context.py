"""Per-request context threaded through every booking call."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable


def system_clock() -> datetime:
    # Naive local time, matching the DateTime columns
    return datetime.now()


@dataclass(frozen=True)
class RequestContext:
    """Authenticated user plus the clock used for validation and timestamps."""

    user_id: int
    clock: Callable[[], datetime] = field(default=system_clock)

    def now(self) -> datetime:
        return self.clock()
