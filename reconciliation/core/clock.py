"""Injectable wall clock.

Services take a ``clock`` callable instead of reading the time directly so
that annotation timestamps and "today" can be pinned in tests.
"""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)
