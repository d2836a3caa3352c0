"""
Tests for the CommissionEngine entry points that are not covered by the
integration scenarios: commission assignment, disbursements, bank commission
and quoting.
"""

import pytest
from datetime import date
from decimal import Decimal

from commission_engine import CommissionEngine, Settings, quote_commission
from commission_engine.errors import (
    InvalidCommissionError,
    PermissionDeniedError,
    PreconditionError,
)
from commission_engine.models import CommissionRule, FranchiseCommissionLimit


def _rule(**overrides) -> CommissionRule:
    fields = dict(
        rule_id="r-1",
        bank_id="bank-1",
        loan_type="home_loan",
        commission_basis="sanctioned",
        commission_type="percentage",
        commission_value=Decimal("1"),
        effective_from=date(2024, 1, 1),
    )
    fields.update(overrides)
    return CommissionRule(**fields)


class TestAssignCommissions:

    def test_agent_sets_rates(self, engine, make_lead):
        engine.add_lead(make_lead(status="sanctioned"))

        lead = engine.assign_commissions("lead-1", "agent", agent="2.5", sub_agent="0.5")

        assert lead.agent_commission_percentage == Decimal("2.5")
        assert lead.sub_agent_commission_percentage == Decimal("0.5")

    def test_relationship_manager_is_refused(self, engine, make_lead):
        """Refused loudly, never silently dropped."""
        engine.add_lead(make_lead(status="sanctioned"))

        with pytest.raises(PermissionDeniedError):
            engine.assign_commissions("lead-1", "relationship_manager", agent=5)

        assert engine.store.get_lead("lead-1").agent_commission_percentage == Decimal("3")

    def test_over_ceiling_is_rolled_back(self, engine, make_lead):
        engine.set_commission_limit(FranchiseCommissionLimit("bank-1", "percentage", Decimal("5")))
        engine.add_lead(make_lead(status="sanctioned"))

        with pytest.raises(InvalidCommissionError):
            engine.assign_commissions("lead-1", "franchise", agent=4, referral_franchise=2)

        lead = engine.store.get_lead("lead-1")
        assert lead.agent_commission_percentage == Decimal("3")
        assert lead.referral_franchise_commission_percentage == Decimal("0")

    def test_non_numeric_rate(self, engine, make_lead):
        engine.add_lead(make_lead(status="sanctioned"))

        with pytest.raises(ValueError, match="agent_commission_percentage must be a number"):
            engine.assign_commissions("lead-1", "agent", agent="two")

        assert engine.store.get_lead("lead-1").agent_commission_percentage == Decimal("3")

    def test_locked_after_invoicing(self, engine, make_lead):
        engine.add_lead(make_lead())
        engine.generate_invoice("lead-1")

        with pytest.raises(PreconditionError):
            engine.assign_commissions("lead-1", "agent", agent=2)


class TestBankCommission:

    def test_calculate_stamps_lead(self, engine, make_lead):
        engine.add_rule(_rule(commission_value=Decimal("0.8")))
        engine.add_lead(make_lead(status="sanctioned", sanctioned_amount=900000, disbursed_amount=0))

        calculation = engine.calculate_lead_commission("lead-1")

        lead = engine.store.get_lead("lead-1")
        assert calculation.commission == Decimal("7200")
        assert lead.expected_commission == Decimal("7200")
        assert lead.commission_percentage == Decimal("0.8")
        assert lead.commission_basis == "sanctioned"

    def test_rule_chosen_as_of_date(self, engine, make_lead):
        engine.add_rule(_rule(rule_id="old", effective_to=date(2024, 12, 31)))
        engine.add_rule(_rule(rule_id="new", commission_value=Decimal("2"), effective_from=date(2025, 1, 1)))
        engine.add_lead(make_lead())

        assert engine.calculate_lead_commission("lead-1", as_of=date(2024, 6, 1)).rule_id == "old"
        assert engine.calculate_lead_commission("lead-1", as_of=date(2025, 6, 1)).rule_id == "new"

    def test_rule_window_follows_engine_clock(self, engine, make_lead):
        """The engine clock (2025-06-15 UTC) picks the rule, not the host date."""
        engine.add_rule(_rule(effective_from=date(2025, 6, 1), effective_to=date(2025, 6, 30)))
        engine.add_lead(make_lead())

        assert engine.calculate_lead_commission("lead-1").commission == Decimal("10000")

        engine.generate_invoice("lead-1")
        assert engine.store.get_lead("lead-1").expected_commission == Decimal("10000")

    def test_lead_without_bank(self, engine, make_lead):
        engine.add_lead(make_lead(bank_id=None))

        with pytest.raises(PreconditionError):
            engine.calculate_lead_commission("lead-1")


class TestRecordDisbursement:

    @pytest.fixture
    def sanctioned(self, engine, make_lead):
        engine.add_lead(make_lead(status="sanctioned", sanctioned_amount=1000000, disbursed_amount=0))
        return engine

    def test_cannot_exceed_sanctioned_amount(self, sanctioned):
        sanctioned.record_disbursement("lead-1", Decimal("700000"))

        with pytest.raises(PreconditionError):
            sanctioned.record_disbursement("lead-1", Decimal("400000"))

        lead = sanctioned.store.get_lead("lead-1")
        assert lead.disbursed_amount == Decimal("700000")
        assert len(lead.disbursement_history) == 1

    def test_partials_reaching_sanctioned_amount_complete_disbursement(self, sanctioned):
        sanctioned.record_disbursement("lead-1", Decimal("600000"))
        sanctioned.record_disbursement("lead-1", Decimal("400000"))

        lead = sanctioned.store.get_lead("lead-1")
        assert lead.status == "disbursed"
        assert lead.disbursement_type == "full"
        assert [e.disbursement_type for e in lead.disbursement_history] == ["partial", "full"]
        assert sanctioned.generate_invoice("lead-1").status == "pending"

    def test_full_below_sanctioned_amount_is_refused(self, sanctioned):
        with pytest.raises(PreconditionError):
            sanctioned.record_disbursement("lead-1", Decimal("100000"), disbursement_type="full")

        lead = sanctioned.store.get_lead("lead-1")
        assert lead.status == "sanctioned"
        assert lead.disbursed_amount == Decimal("0")
        assert lead.disbursement_history == []

    def test_partial_tag_for_whole_amount_is_full(self, sanctioned):
        sanctioned.record_disbursement("lead-1", Decimal("1000000"), disbursement_type="partial")

        assert sanctioned.store.get_lead("lead-1").status == "disbursed"

    def test_history_entry(self, sanctioned):
        sanctioned.record_disbursement("lead-1", 250000, disbursement_date=date(2025, 6, 1), utr="UTR9")

        entry = sanctioned.store.get_lead("lead-1").disbursement_history[0]
        assert entry.amount == Decimal("250000")
        assert entry.disbursement_date == date(2025, 6, 1)
        assert entry.utr == "UTR9"

    @pytest.mark.parametrize("amount, disbursement_type", [(0, "partial"), (-5, "partial"), (100, "bulk")])
    def test_invalid_input(self, sanctioned, amount, disbursement_type):
        with pytest.raises(ValueError):
            sanctioned.record_disbursement("lead-1", amount, disbursement_type=disbursement_type)

    def test_non_numeric_amount(self, sanctioned):
        with pytest.raises(ValueError, match="amount must be a number"):
            sanctioned.record_disbursement("lead-1", "lots")

    def test_wrong_status(self, engine, make_lead):
        engine.add_lead(make_lead(status="logged", disbursed_amount=0))

        with pytest.raises(PreconditionError):
            engine.record_disbursement("lead-1", Decimal("1000"))


class TestReferenceData:

    def test_add_lead_checks_ceiling(self, engine, make_lead):
        engine.set_commission_limit(FranchiseCommissionLimit("bank-1", "percentage", Decimal("2")))

        with pytest.raises(InvalidCommissionError):
            engine.add_lead(make_lead())

    def test_invalid_limit(self, engine):
        with pytest.raises(ValueError):
            engine.set_commission_limit(FranchiseCommissionLimit("bank-1", "percentage", Decimal("150")))

    def test_load_from_dict(self, settings):
        engine = CommissionEngine(settings=settings)
        engine.load({
            "franchises": [{"franchise_id": "fr-1", "name": "Main", "regional_manager_id": "rgm-1"}],
            "relationship_managers": [{"manager_id": "rm-1", "regional_manager_id": "rgm-1"}],
            "agents": [{"agent_id": "ag-1", "managed_by": "rm-1", "managed_by_model": "RelationshipManager"}],
            "commission_rules": [{
                "bank_id": "bank-1", "commission_basis": "sanctioned", "commission_type": "percentage",
                "commission_value": 1, "effective_from": "2024-01-01",
            }],
            "commission_limits": [{"bank_id": "bank-1", "limit_type": "percentage", "max_commission_value": 5}],
            "leads": [{"lead_id": "lead-1", "agent_id": "ag-1", "status": "disbursed", "bank_id": "bank-1",
                       "loan_amount": 200000, "disbursed_amount": 200000, "agent_commission_percentage": 2}],
        })

        invoice = engine.generate_invoice("lead-1")

        assert invoice.franchise_id == "fr-1"
        assert invoice.commission_amount == Decimal("4000")
        assert engine.store.get_lead("lead-1").expected_commission == Decimal("2000")


class TestQuoteCommission:

    def test_quote(self, settings):
        calculation, taxes = quote_commission(
            {"commission_basis": "sanctioned", "commission_type": "percentage", "commission_value": 3},
            1000000,
            settings=settings,
        )

        assert calculation.commission == Decimal("30000")
        assert taxes.net_payable == Decimal("34800")

    def test_quote_uses_configured_rates(self):
        settings = Settings(gst_rate=Decimal("12"), tds_rate=Decimal("10"))

        _, taxes = quote_commission(
            {"commission_basis": "sanctioned", "commission_type": "fixed", "commission_value": 1000},
            50000,
            settings=settings,
        )

        assert taxes.gst == Decimal("120")
        assert taxes.tds == Decimal("100")

    @pytest.mark.parametrize("rule", [
        {"commission_type": "percentage", "commission_value": 3},
        {"commission_basis": "sanctioned", "commission_type": "percentage", "commission_value": "three"},
        {"commission_basis": "sanctioned", "commission_type": "percentage", "commission_value": "NaN"},
        "3%",
    ])
    def test_malformed_rule_is_value_error(self, settings, rule):
        with pytest.raises(ValueError):
            quote_commission(rule, 1000, settings=settings)

    def test_quote_rejects_bad_rule(self, settings):
        with pytest.raises(ValueError):
            quote_commission(
                {"commission_basis": "sanctioned", "commission_type": "percentage", "commission_value": 300},
                1000,
                settings=settings,
            )
