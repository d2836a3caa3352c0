"""
Document Numbering

Invoice and payout numbers look like INV-YYYYMMDD-NNNNN. The generator is
injected into the engine so tests can force collisions.
"""

import logging
import random
from datetime import datetime, timezone
from typing import Callable, TypeVar

from .errors import NumberCollision, NumberingError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NumberGenerator:
    """Date-seeded numbers with a random 5-digit suffix."""

    def __init__(self, prefix: str, clock: Callable[[], datetime] = _utcnow, rng: random.Random | None = None):
        self.prefix = prefix
        self.clock = clock
        self.rng = rng or random.SystemRandom()

    def next_number(self) -> str:
        stamp = self.clock().strftime("%Y%m%d")
        return f"{self.prefix}-{stamp}-{self.rng.randrange(100000):05d}"


def issue_with_retry(generator: NumberGenerator, write: Callable[[str], T], attempts: int = 5) -> T:
    """
    Call write(number) with fresh numbers until the store accepts one.

    write must raise NumberCollision, before changing anything, when the
    number is taken.
    """
    for attempt in range(1, attempts + 1):
        number = generator.next_number()
        try:
            return write(number)
        except NumberCollision:
            logger.warning(f"{generator.prefix} number collision on {number} (attempt {attempt}/{attempts})")
    raise NumberingError(f"Could not issue a unique {generator.prefix} number after {attempts} attempts")
