"""
Commission Rule Store

Resolves the bank commission rule that applies to a loan type on a date.
"""

from datetime import date, datetime, timezone
from typing import Callable

from .models import ALL_LOAN_TYPES, CommissionRule
from .store import InMemoryStore


class CommissionRuleStore:
    """Versioned per-bank, per-loan-type commission policies."""

    def __init__(self, store: InMemoryStore, clock: Callable[[], datetime] | None = None):
        self.store = store
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def resolve(self, bank_id: str, loan_type: str | None, as_of: date | None = None) -> CommissionRule | None:
        """
        Find the applicable rule, or None when commission is undetermined.

        Lookup order:
        1. Active rules for the exact loan type effective on as_of
        2. Otherwise active 'all' rules effective on as_of

        Among several matches the latest effective_from wins. as_of defaults
        to the current date on the injected UTC clock.
        """
        as_of = as_of or self.clock().date()
        candidates = [r for r in self.store.rules_for_bank(bank_id) if r.is_effective(as_of)]

        if loan_type and loan_type != ALL_LOAN_TYPES:
            rule = self._most_recent([r for r in candidates if r.loan_type == loan_type])
            if rule is not None:
                return rule

        return self._most_recent([r for r in candidates if r.loan_type == ALL_LOAN_TYPES])

    @staticmethod
    def _most_recent(rules: list[CommissionRule]) -> CommissionRule | None:
        if not rules:
            return None
        # max() keeps the first of equal keys, so ties go to the earliest registered rule
        return max(rules, key=lambda r: r.effective_from)
