"""
Commission Engine - Main Orchestrator

Wires the rule store, calculators, invoice generator, lifecycle and payout
aggregator around one shared store.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict

from .calculators import CommissionCalculator, TaxComputer
from .config import Settings
from .errors import PreconditionError, RuleNotFoundError
from .generator import GenerationResult, InvoiceGenerator
from .lifecycle import InvoiceLifecycle
from .models import (
    Agent,
    CommissionCalculation,
    CommissionRule,
    DisbursementEntry,
    Franchise,
    FranchiseCommissionLimit,
    Lead,
    RelationshipManager,
    TaxBreakdown,
)
from .numbering import NumberGenerator
from .payouts import PayoutAggregator
from .policy import require_capability
from .rules import CommissionRuleStore
from .store import InMemoryStore
from .validators import InputValidator

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _money(value: Any, name: str) -> Decimal:
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{name} must be a number, got: {value!r}")
    if not result.is_finite():
        raise ValueError(f"{name} must be a finite number, got: {value!r}")
    return result


def quote_commission(
    rule_data: Dict[str, Any],
    base_amount: Any,
    tds_percentage: Any = None,
    settings: Settings | None = None,
) -> tuple[CommissionCalculation, TaxBreakdown]:
    """
    Stateless quote: apply an ad-hoc rule to a base amount and derive taxes.

    No store is involved, so the rule needs neither a bank nor a window.
    """
    if not isinstance(rule_data, dict):
        raise ValueError(f"rule must be an object, got: {type(rule_data).__name__}")
    settings = settings or Settings.from_env()
    rule = CommissionRule.from_dict({"bank_id": "quote", "effective_from": _utcnow().date(), **rule_data})
    InputValidator().validate_rule(rule)

    base = _money(base_amount, "base_amount")
    if base < 0:
        raise ValueError(f"base_amount cannot be negative, got: {base}")

    calculation = CommissionCalculator().calculate(rule, base)
    tds = None if tds_percentage is None else _money(tds_percentage, "tds_percentage")
    taxes = TaxComputer(settings.gst_rate, settings.tds_rate).apply(calculation.commission, tds)
    return calculation, taxes


class CommissionEngine:
    """
    Entry point for commission and invoice operations.

    - calculate_lead_commission / record_disbursement: bank commission per rule
    - assign_commissions: per-actor percentages on a lead
    - generate_invoice: invoices for disbursed/completed leads
    - lifecycle: accept / escalate / resolve / approve / reject
    - payouts: aggregation and settlement
    """

    def __init__(
        self,
        store: InMemoryStore | None = None,
        settings: Settings | None = None,
        invoice_numbers: NumberGenerator | None = None,
        payout_numbers: NumberGenerator | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.settings = settings or Settings.from_env()
        self.store = store or InMemoryStore()
        self.clock = clock

        self.validator = InputValidator()
        self.rules = CommissionRuleStore(self.store, clock=clock)
        self.calculator = CommissionCalculator()
        self.tax_computer = TaxComputer(self.settings.gst_rate, self.settings.tds_rate)
        self.generator = InvoiceGenerator(
            self.store,
            rule_store=self.rules,
            tax_computer=self.tax_computer,
            invoice_numbers=invoice_numbers or NumberGenerator("INV", clock=clock),
            number_retry_attempts=self.settings.number_retry_attempts,
            clock=clock,
        )
        self.lifecycle = InvoiceLifecycle(self.store, tax_computer=self.tax_computer, clock=clock)
        self.payouts = PayoutAggregator(
            self.store,
            lifecycle=self.lifecycle,
            payout_numbers=payout_numbers or NumberGenerator("PAY", clock=clock),
            number_retry_attempts=self.settings.number_retry_attempts,
            clock=clock,
        )

    # -------------------------------------------------------------------------
    # Reference data
    # -------------------------------------------------------------------------

    def add_rule(self, rule: CommissionRule) -> CommissionRule:
        self.validator.validate_rule(rule)
        return self.store.add_rule(rule)

    def set_commission_limit(self, limit: FranchiseCommissionLimit) -> FranchiseCommissionLimit:
        self.validator.validate_limit(limit)
        return self.store.add_limit(limit)

    def add_lead(self, lead: Lead) -> Lead:
        self.validator.validate_lead(lead)
        if lead.bank_id:
            self.validator.validate_commission_ceiling(lead, self.store.get_limit(lead.bank_id))
        return self.store.add_lead(lead)

    # -------------------------------------------------------------------------
    # Bank commission
    # -------------------------------------------------------------------------

    def calculate_lead_commission(self, lead_id: str, as_of: date | None = None) -> CommissionCalculation:
        """Apply the bank rule to the lead and stamp the result on it."""
        with self.store.lead_lock(lead_id), self.store.transaction():
            lead = self.store.get_lead(lead_id)
            calculation = self._evaluate(lead, as_of)
            if calculation is None:
                raise RuleNotFoundError(
                    f"No commission rule found for bank {lead.bank_id} and loan type {lead.loan_type}"
                )
            return calculation

    def record_disbursement(
        self,
        lead_id: str,
        amount: Decimal,
        disbursement_type: str | None = None,
        disbursement_date: date | None = None,
        utr: str | None = None,
        remarks: str | None = None,
    ) -> CommissionCalculation | None:
        """
        Record a disbursement tranche and re-evaluate the bank commission.

        The tranche is 'full' once the cumulative amount reaches the sanctioned
        amount and 'partial' before that. A caller may pass the type it expects;
        'full' below the sanctioned amount is refused. Leads with no sanctioned
        or loan amount take the caller's type (default 'partial').

        Returns None when no rule applies: commission undetermined.
        """
        amount = _money(amount, "amount")
        if amount <= 0:
            raise ValueError(f"Disbursement amount must be positive, got: {amount}")
        if disbursement_type not in [None, "full", "partial"]:
            raise ValueError(f"Invalid disbursement_type: {disbursement_type}. Must be 'full' or 'partial'")

        with self.store.lead_lock(lead_id), self.store.transaction():
            lead = self.store.get_lead(lead_id)
            if lead.status not in ("sanctioned", "partial_disbursed"):
                raise PreconditionError(f"Cannot record a disbursement for a lead in status '{lead.status}'")

            cumulative = lead.disbursed_amount + amount
            sanctioned = lead.sanctioned_base
            if sanctioned > 0:
                if cumulative > sanctioned:
                    raise PreconditionError(
                        f"Cumulative disbursement {cumulative} exceeds sanctioned amount {sanctioned}"
                    )
                if disbursement_type == "full" and cumulative < sanctioned:
                    raise PreconditionError(
                        f"Full disbursement requires the sanctioned amount {sanctioned}, cumulative is {cumulative}"
                    )
                disbursement_type = "full" if cumulative == sanctioned else "partial"
            else:
                disbursement_type = disbursement_type or "partial"

            lead.disbursed_amount = cumulative
            lead.disbursement_type = disbursement_type
            lead.status = "disbursed" if disbursement_type == "full" else "partial_disbursed"
            lead.disbursement_history.append(DisbursementEntry(
                amount=amount,
                disbursement_date=disbursement_date or self.clock().date(),
                disbursement_type=disbursement_type,
                utr=utr,
                remarks=remarks,
            ))

            calculation = self._evaluate(lead, disbursement_date) if lead.bank_id else None
            if calculation is None:
                lead.expected_commission = None

        logger.info(f"Lead {lead_id}: {disbursement_type} disbursement of {amount}, cumulative {cumulative}")
        return calculation

    def _evaluate(self, lead: Lead, as_of: date | None) -> CommissionCalculation | None:
        if not lead.bank_id:
            raise PreconditionError(f"Lead {lead.lead_id} has no bank; commission cannot be determined")

        rule = self.rules.resolve(lead.bank_id, lead.loan_type, as_of)
        if rule is None:
            return None

        calculation = self.calculator.calculate_for_lead(rule, lead)
        lead.commission_basis = calculation.commission_basis
        lead.commission_percentage = calculation.commission_percentage
        lead.expected_commission = calculation.commission
        return calculation

    # -------------------------------------------------------------------------
    # Commission assignment
    # -------------------------------------------------------------------------

    def assign_commissions(
        self,
        lead_id: str,
        role: str,
        agent: Decimal | None = None,
        sub_agent: Decimal | None = None,
        referral_franchise: Decimal | None = None,
        referral_amount: Decimal | None = None,
    ) -> Lead:
        """
        Set per-actor commission percentages on a lead.

        Roles without the assign_commission capability are rejected outright,
        never silently ignored.
        """
        require_capability(role, "assign_commission")

        with self.store.lead_lock(lead_id), self.store.transaction():
            lead = self.store.get_lead(lead_id)
            if lead.is_invoice_generated:
                raise PreconditionError("Commission cannot be changed after invoices have been generated")

            if agent is not None:
                lead.agent_commission_percentage = _money(agent, "agent_commission_percentage")
            if sub_agent is not None:
                lead.sub_agent_commission_percentage = _money(sub_agent, "sub_agent_commission_percentage")
            if referral_franchise is not None:
                lead.referral_franchise_commission_percentage = _money(
                    referral_franchise, "referral_franchise_commission_percentage"
                )
            if referral_amount is not None:
                lead.referral_franchise_commission_amount = _money(referral_amount, "referral_franchise_commission_amount")

            self.validator.validate_lead(lead)
            if lead.bank_id:
                self.validator.validate_commission_ceiling(lead, self.store.get_limit(lead.bank_id))
            return lead

    # -------------------------------------------------------------------------
    # Invoices
    # -------------------------------------------------------------------------

    def generate_invoice(self, lead_id: str) -> GenerationResult:
        return self.generator.generate_invoice(lead_id)

    def load(self, data: Dict[str, Any]) -> None:
        """Load reference data (franchises, managers, agents, rules, limits, leads) from a dict."""
        for item in data.get("franchises", []):
            self.store.add_franchise(Franchise.from_dict(item))
        for item in data.get("relationship_managers", []):
            self.store.add_relationship_manager(RelationshipManager.from_dict(item))
        for item in data.get("agents", []):
            self.store.add_agent(Agent.from_dict(item))
        for item in data.get("commission_rules", []):
            self.add_rule(CommissionRule.from_dict(item))
        for item in data.get("commission_limits", []):
            self.set_commission_limit(FranchiseCommissionLimit.from_dict(item))
        for item in data.get("leads", []):
            self.add_lead(Lead.from_dict(item))
