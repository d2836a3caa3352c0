"""Tests for commission rule resolution."""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from commission_engine.models import CommissionRule
from commission_engine.rules import CommissionRuleStore
from commission_engine.store import InMemoryStore


def _rule(rule_id, loan_type="home_loan", effective_from=date(2024, 1, 1), effective_to=None,
          status="active", bank_id="bank-1", value="1") -> CommissionRule:
    return CommissionRule(
        rule_id=rule_id,
        bank_id=bank_id,
        loan_type=loan_type,
        commission_basis="sanctioned",
        commission_type="percentage",
        commission_value=Decimal(value),
        effective_from=effective_from,
        effective_to=effective_to,
        status=status,
    )


class TestRuleResolution:
    """Exact loan type first, then the bank-wide 'all' rule."""

    @pytest.fixture
    def store(self):
        return InMemoryStore()

    @pytest.fixture
    def rules(self, store):
        return CommissionRuleStore(store)

    def test_exact_loan_type_beats_all(self, store, rules):
        store.add_rule(_rule("all-rule", loan_type="all"))
        store.add_rule(_rule("home-rule"))

        assert rules.resolve("bank-1", "home_loan", date(2025, 1, 1)).rule_id == "home-rule"

    def test_falls_back_to_all(self, store, rules):
        store.add_rule(_rule("all-rule", loan_type="all"))
        store.add_rule(_rule("home-rule"))

        assert rules.resolve("bank-1", "car_loan", date(2025, 1, 1)).rule_id == "all-rule"

    def test_no_rule_returns_none(self, store, rules):
        store.add_rule(_rule("other-bank", bank_id="bank-2"))

        assert rules.resolve("bank-1", "home_loan", date(2025, 1, 1)) is None

    def test_latest_effective_from_wins(self, store, rules):
        store.add_rule(_rule("old", effective_from=date(2023, 1, 1)))
        store.add_rule(_rule("new", effective_from=date(2025, 1, 1)))

        assert rules.resolve("bank-1", "home_loan", date(2025, 6, 1)).rule_id == "new"
        assert rules.resolve("bank-1", "home_loan", date(2024, 6, 1)).rule_id == "old"

    def test_expired_rule_is_skipped(self, store, rules):
        store.add_rule(_rule("expired", effective_to=date(2024, 12, 31)))
        store.add_rule(_rule("all-rule", loan_type="all"))

        assert rules.resolve("bank-1", "home_loan", date(2025, 1, 1)).rule_id == "all-rule"

    def test_window_end_date_is_inclusive(self, store, rules):
        store.add_rule(_rule("q4", effective_from=date(2024, 10, 1), effective_to=date(2024, 12, 31)))

        assert rules.resolve("bank-1", "home_loan", date(2024, 12, 31)).rule_id == "q4"

    def test_inactive_rule_is_skipped(self, store, rules):
        store.add_rule(_rule("paused", status="inactive"))

        assert rules.resolve("bank-1", "home_loan", date(2025, 1, 1)) is None

    def test_tie_goes_to_first_registered(self, store, rules):
        store.add_rule(_rule("first"))
        store.add_rule(_rule("second"))

        assert rules.resolve("bank-1", "home_loan", date(2025, 1, 1)).rule_id == "first"

    def test_missing_rule_id_is_assigned(self, store):
        rule = store.add_rule(_rule(""))

        assert rule.rule_id == "rule-1"


class TestRuleFromDict:
    """Rules loaded from JSON payloads."""

    def test_from_dict_parses_dates_and_decimals(self):
        rule = CommissionRule.from_dict({
            "bank_id": "bank-1",
            "loan_type": "personal_loan",
            "commission_basis": "disbursed",
            "commission_type": "percentage",
            "commission_value": "1.75",
            "effective_from": "2025-04-01",
            "max_commission": 50000,
        })

        assert rule.commission_value == Decimal("1.75")
        assert rule.effective_from == date(2025, 4, 1)
        assert rule.effective_to is None
        assert rule.max_commission == Decimal("50000")
        assert rule.min_commission is None

    def test_loan_type_defaults_to_all(self):
        rule = CommissionRule.from_dict({
            "bank_id": "bank-1",
            "commission_basis": "sanctioned",
            "commission_type": "fixed",
            "commission_value": 5000,
            "effective_from": "2025-01-01",
        })

        assert rule.loan_type == "all"

    def test_missing_field_is_value_error(self):
        with pytest.raises(ValueError, match="Missing required field: commission_basis"):
            CommissionRule.from_dict({
                "bank_id": "bank-1",
                "commission_type": "fixed",
                "commission_value": 5000,
                "effective_from": "2025-01-01",
            })

    @pytest.mark.parametrize("value", ["five thousand", "Infinity"])
    def test_non_numeric_value_is_value_error(self, value):
        with pytest.raises(ValueError):
            CommissionRule.from_dict({
                "bank_id": "bank-1",
                "commission_basis": "sanctioned",
                "commission_type": "fixed",
                "commission_value": value,
                "effective_from": "2025-01-01",
            })


class TestResolveDefaultsToClock:

    def test_injected_clock_sets_date(self):
        store = InMemoryStore()
        store.add_rule(_rule("june", effective_from=date(2025, 6, 1), effective_to=date(2025, 6, 30)))
        rules = CommissionRuleStore(store, clock=lambda: datetime(2025, 6, 15, 23, 30, tzinfo=timezone.utc))

        assert rules.resolve("bank-1", "home_loan").rule_id == "june"
