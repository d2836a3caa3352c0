"""
Invoice Generator

Turns a disbursed or completed lead into commission invoices.

- disbursed: agent-side invoicing (single agent invoice, or agent + sub-agent split)
- completed: franchise-side invoicing (main franchise invoice, plus referral franchise invoice)

Generation for one lead is serialized by a per-lead lock and runs inside a
store transaction, so a failure at any step leaves no invoice behind.
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable

from .calculators import (
    CommissionCalculator,
    TaxComputer,
    commission_on,
    franchise_remaining_share,
    split_agent_commission,
)
from .errors import DuplicateInvoiceError, InvalidCommissionError, PreconditionError
from .hierarchy import resolve_franchise_context
from .models import Franchise, FranchiseInvoices, Invoice, Lead, SplitInvoices
from .numbering import NumberGenerator, issue_with_retry
from .rules import CommissionRuleStore
from .store import InMemoryStore
from .validators import InputValidator

logger = logging.getLogger(__name__)

GenerationResult = Invoice | SplitInvoices | FranchiseInvoices


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InvoiceGenerator:
    """
    Orchestrates invoice generation for a lead.

    Pipeline:
    1. Check lead status
    2. Resolve franchise context
    3. Refresh the bank commission figure from the applicable rule
    4. Split commission along the waterfall
    5. Check idempotency keys
    6. Compute GST/TDS and write invoices
    7. Stamp the lead
    """

    def __init__(
        self,
        store: InMemoryStore,
        rule_store: CommissionRuleStore | None = None,
        tax_computer: TaxComputer | None = None,
        invoice_numbers: NumberGenerator | None = None,
        number_retry_attempts: int = 5,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.rule_store = rule_store or CommissionRuleStore(store, clock=clock)
        self.tax_computer = tax_computer or TaxComputer()
        self.invoice_numbers = invoice_numbers or NumberGenerator("INV", clock=clock)
        self.number_retry_attempts = number_retry_attempts
        self.clock = clock
        self.calculator = CommissionCalculator()
        self.validator = InputValidator()

    def generate_invoice(self, lead_id: str) -> GenerationResult:
        """
        Generate the invoice set for a lead.

        Returns an Invoice, SplitInvoices (agent + sub-agent) or
        FranchiseInvoices (main + referral franchise).
        """
        with self.store.lead_lock(lead_id):
            try:
                with self.store.transaction():
                    lead = self.store.get_lead(lead_id)
                    result = self._generate(lead)
            except ValueError as e:
                logger.warning(f"Invoice generation failed for lead {lead_id}: {e}")
                raise

        for invoice in _invoices_of(result):
            logger.info(
                f"Invoice {invoice.invoice_number} generated for lead {lead_id}: "
                f"{invoice.invoice_type}{' (referral)' if invoice.is_referral_franchise else ''} "
                f"commission {invoice.commission_amount}, net payable {invoice.net_payable}"
            )
        return result

    def _generate(self, lead: Lead) -> GenerationResult:
        if lead.status not in ('disbursed', 'completed'):
            raise PreconditionError(
                f'Invoice can only be generated for leads with status "disbursed" or "completed". '
                f'Current status: {lead.status}'
            )

        franchise = resolve_franchise_context(self.store, lead)
        self._refresh_expected_commission(lead)

        if lead.status == 'disbursed':
            result = self._generate_agent_side(lead, franchise)
        else:
            result = self._generate_franchise_side(lead, franchise)

        primary = _invoices_of(result)[0]
        if lead.invoice_id is None:
            lead.invoice_id = primary.invoice_id
        lead.is_invoice_generated = True
        return result

    # -------------------------------------------------------------------------
    # Branch A: disbursed
    # -------------------------------------------------------------------------

    def _generate_agent_side(self, lead: Lead, franchise: Franchise) -> Invoice | SplitInvoices:
        limit = self.store.get_limit(lead.bank_id) if lead.bank_id else None
        self.validator.validate_commission_ceiling(lead, limit)

        if lead.has_sub_agent:
            return self._generate_split(lead, franchise)

        percentage = lead.agent_commission_percentage or lead.commission_percentage
        if percentage <= 0:
            raise InvalidCommissionError(
                "Agent commission percentage is not set or is zero. Please set the commission "
                "percentage for this lead before generating an invoice."
            )

        commission = commission_on(lead.loan_amount, percentage)
        if commission <= 0:
            raise InvalidCommissionError("Calculated agent commission amount is zero. Cannot generate invoice.")

        if self.store.find_invoice(lead.lead_id, 'agent'):
            raise DuplicateInvoiceError(
                "Agent invoice already exists for this lead. Duplicate invoice generation prevented."
            )

        return self._create_invoice(lead, franchise.franchise_id, 'agent', commission)

    def _generate_split(self, lead: Lead, franchise: Franchise) -> SplitInvoices:
        split = split_agent_commission(
            lead.loan_amount,
            lead.agent_commission_percentage,
            lead.sub_agent_commission_percentage,
        )

        if self.store.find_invoice(lead.lead_id, 'agent') or self.store.find_invoice(lead.lead_id, 'sub_agent'):
            raise DuplicateInvoiceError(
                "Invoices already exist for this lead. Duplicate invoice generation prevented."
            )

        sub_agent_id = self._resolve_sub_agent(lead)

        agent_invoice = self._create_invoice(lead, franchise.franchise_id, 'agent', split.agent_amount)
        sub_agent_invoice = self._create_invoice(
            lead, franchise.franchise_id, 'sub_agent', split.sub_agent_amount, sub_agent_id=sub_agent_id
        )
        return SplitInvoices(agent_invoice=agent_invoice, sub_agent_invoice=sub_agent_invoice)

    def _resolve_sub_agent(self, lead: Lead) -> str:
        if lead.sub_agent_id:
            return lead.sub_agent_id

        sub_agent = self.store.find_sub_agent(lead.agent_id, lead.sub_agent_name)
        if sub_agent is None:
            raise PreconditionError(
                f'Sub-agent "{lead.sub_agent_name}" not found for this agent. Cannot generate sub-agent invoice.'
            )
        return sub_agent.agent_id

    # -------------------------------------------------------------------------
    # Branch B: completed
    # -------------------------------------------------------------------------

    def _generate_franchise_side(self, lead: Lead, franchise: Franchise) -> Invoice | FranchiseInvoices:
        if not lead.bank_id:
            raise PreconditionError(
                "Bank information not found for this lead. Cannot determine franchise commission percentage."
            )

        limit = self.store.get_limit(lead.bank_id)
        ceiling = self.validator.require_percentage_limit(limit)
        self.validator.validate_commission_ceiling(lead, limit)

        remaining = franchise_remaining_share(
            ceiling,
            lead.agent_commission_percentage,
            lead.referral_franchise_commission_percentage,
        )
        commission = commission_on(lead.loan_amount, remaining)
        if commission <= 0:
            raise InvalidCommissionError(
                f"Calculated franchise commission amount is zero. Loan Amount: {lead.loan_amount}, "
                f"Remaining Commission %: {remaining}%."
            )

        if self.store.find_invoice(lead.lead_id, 'franchise', is_referral_franchise=False):
            raise DuplicateInvoiceError(
                "Main franchise invoice already exists for this lead. Duplicate invoice generation prevented."
            )

        referral_franchise_id = self._referral_franchise_for(lead)

        main_invoice = self._create_invoice(lead, franchise.franchise_id, 'franchise', commission)
        if referral_franchise_id is None:
            return main_invoice

        referral_invoice = self._create_invoice(
            lead,
            referral_franchise_id,
            'franchise',
            lead.referral_franchise_commission_amount,
            is_referral_franchise=True,
        )
        return FranchiseInvoices(main_invoice=main_invoice, referral_invoice=referral_invoice)

    def _referral_franchise_for(self, lead: Lead) -> str | None:
        """The referral franchise to invoice, or None when no referral invoice is due."""
        if not lead.referral_franchise_id:
            return None

        if lead.referral_franchise_commission_amount <= 0:
            logger.info(
                f"Lead {lead.lead_id} names referral franchise {lead.referral_franchise_id} "
                f"without a referral commission amount; no referral invoice"
            )
            return None

        if self.store.get_franchise(lead.referral_franchise_id) is None:
            raise PreconditionError(f"Referral franchise not found: {lead.referral_franchise_id}")

        existing = self.store.find_invoice(
            lead.lead_id, 'franchise', is_referral_franchise=True, franchise_id=lead.referral_franchise_id
        )
        if existing:
            raise DuplicateInvoiceError(
                "Referral franchise invoice already exists for this lead. Duplicate invoice generation prevented."
            )
        return lead.referral_franchise_id

    # -------------------------------------------------------------------------
    # Shared steps
    # -------------------------------------------------------------------------

    def _refresh_expected_commission(self, lead: Lead) -> None:
        """Re-derive the bank commission figure; None means undetermined, not zero."""
        as_of = self.clock().date()
        rule = self.rule_store.resolve(lead.bank_id, lead.loan_type, as_of) if lead.bank_id else None
        if rule is None:
            lead.expected_commission = None
            logger.info(f"No commission rule for lead {lead.lead_id}; bank commission undetermined")
            return

        calculation = self.calculator.calculate_for_lead(rule, lead)
        lead.commission_basis = calculation.commission_basis
        lead.expected_commission = calculation.commission

    def _create_invoice(
        self,
        lead: Lead,
        franchise_id: str,
        invoice_type: str,
        commission: Decimal,
        sub_agent_id: str | None = None,
        is_referral_franchise: bool = False,
    ) -> Invoice:
        taxes = self.tax_computer.apply(commission)
        invoice_date = self.clock()

        def write(number: str) -> Invoice:
            return self.store.add_invoice(Invoice(
                invoice_id=uuid.uuid4().hex,
                invoice_number=number,
                lead_id=lead.lead_id,
                agent_id=lead.agent_id,
                franchise_id=franchise_id,
                invoice_type=invoice_type,
                commission_amount=taxes.taxable,
                gst_amount=taxes.gst,
                tds_amount=taxes.tds,
                tds_percentage=taxes.tds_percentage,
                net_payable=taxes.net_payable,
                invoice_date=invoice_date,
                sub_agent_id=sub_agent_id,
                is_referral_franchise=is_referral_franchise,
            ))

        return issue_with_retry(self.invoice_numbers, write, self.number_retry_attempts)


def _invoices_of(result: GenerationResult) -> list[Invoice]:
    if isinstance(result, Invoice):
        return [result]
    return result.invoices
