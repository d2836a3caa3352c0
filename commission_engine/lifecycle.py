"""
Invoice Lifecycle

Invoice states:
    pending -> approved -> paid
    pending -> escalated -> pending (resolved) -> approved
    pending | escalated -> rejected

- accept: payee accepts a pending invoice
- escalate: payee disputes a pending invoice (reason required)
- resolve_escalation: staff answers a dispute, optionally adjusting the commission
- approve: staff approves a pending or escalated invoice
- reject: staff rejects an open invoice (reason required); terminal
- mark_paid: payout confirmation settles an approved invoice

Every other move raises InvalidStateTransition. There are no silent no-ops.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable

from .calculators import TaxComputer
from .errors import InvalidCommissionError, InvalidStateTransition
from .models import Invoice
from .store import InMemoryStore

logger = logging.getLogger(__name__)

# action: (allowed source states, target state)
TRANSITIONS: dict[str, tuple[frozenset, str]] = {
    "accept": (frozenset({"pending"}), "approved"),
    "escalate": (frozenset({"pending"}), "escalated"),
    "resolve_escalation": (frozenset({"escalated"}), "pending"),
    "approve": (frozenset({"pending", "escalated"}), "approved"),
    "reject": (frozenset({"pending", "escalated"}), "rejected"),
    "mark_paid": (frozenset({"approved"}), "paid"),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def allowed_actions(status: str) -> list[str]:
    """Actions that may be applied to an invoice in this status."""
    return [action for action, (sources, _) in TRANSITIONS.items() if status in sources]


def _require_text(value: str | None, message: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidStateTransition(message)
    return str(value).strip()


class InvoiceLifecycle:
    """Applies status transitions to stored invoices."""

    def __init__(
        self,
        store: InMemoryStore,
        tax_computer: TaxComputer | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.tax_computer = tax_computer or TaxComputer()
        self.clock = clock

    def accept(self, invoice_id: str, remarks: str = "") -> Invoice:
        with self.store.transaction():
            invoice = self._begin(invoice_id, "accept")
            invoice.accepted_at = self.clock()
            invoice.agent_remarks = remarks
            return self._finish(invoice, "accept")

    def escalate(self, invoice_id: str, reason: str, remarks: str | None = None,
                 user_id: str | None = None) -> Invoice:
        reason = _require_text(reason, "Escalation reason is required")
        with self.store.transaction():
            invoice = self._begin(invoice_id, "escalate")
            invoice.is_escalated = True
            invoice.escalation_reason = reason
            invoice.escalation_remarks = remarks
            invoice.escalated_at = self.clock()
            invoice.escalated_by = user_id
            return self._finish(invoice, "escalate")

    def resolve_escalation(
        self,
        invoice_id: str,
        resolution_remarks: str,
        user_id: str | None = None,
        commission_amount: Decimal | None = None,
    ) -> Invoice:
        """Return an escalated invoice to pending, recomputing taxes when the commission is adjusted."""
        resolution_remarks = _require_text(resolution_remarks, "Resolution remarks are required")
        with self.store.transaction():
            invoice = self._begin(invoice_id, "resolve_escalation")

            if commission_amount is not None:
                try:
                    commission_amount = Decimal(str(commission_amount))
                except InvalidOperation:
                    raise InvalidCommissionError(
                        f"Adjusted commission amount must be a number, got: {commission_amount!r}"
                    )
                if not commission_amount.is_finite() or commission_amount <= 0:
                    raise InvalidCommissionError(
                        f"Adjusted commission amount must be positive, got: {commission_amount}"
                    )
                taxes = self.tax_computer.apply(commission_amount, invoice.tds_percentage)
                invoice.commission_amount = taxes.taxable
                invoice.gst_amount = taxes.gst
                invoice.tds_amount = taxes.tds
                invoice.net_payable = taxes.net_payable

            invoice.resolution_remarks = resolution_remarks
            invoice.resolved_at = self.clock()
            invoice.resolved_by = user_id
            return self._finish(invoice, "resolve_escalation")

    def approve(self, invoice_id: str, user_id: str | None = None) -> Invoice:
        with self.store.transaction():
            invoice = self._begin(invoice_id, "approve")
            now = self.clock()
            invoice.approved_at = now
            invoice.approved_by = user_id

            # Approving an unresolved escalation resolves it
            if invoice.is_escalated and invoice.resolved_at is None:
                invoice.resolved_at = now
                invoice.resolved_by = user_id
            return self._finish(invoice, "approve")

    def reject(self, invoice_id: str, rejection_reason: str, user_id: str | None = None) -> Invoice:
        rejection_reason = _require_text(rejection_reason, "Rejection reason is required")
        with self.store.transaction():
            invoice = self._begin(invoice_id, "reject")
            invoice.rejection_reason = rejection_reason
            invoice.rejected_at = self.clock()
            invoice.rejected_by = user_id
            return self._finish(invoice, "reject")

    def mark_paid(self, invoice_id: str) -> Invoice:
        with self.store.transaction():
            invoice = self._begin(invoice_id, "mark_paid")
            invoice.paid_at = self.clock()
            return self._finish(invoice, "mark_paid")

    def _begin(self, invoice_id: str, action: str) -> Invoice:
        invoice = self.store.get_invoice(invoice_id)
        sources, _ = TRANSITIONS[action]
        if invoice.status not in sources:
            raise InvalidStateTransition(
                f"Cannot {action.replace('_', ' ')} invoice {invoice.invoice_number} "
                f"in status '{invoice.status}'"
            )
        return invoice

    def _finish(self, invoice: Invoice, action: str) -> Invoice:
        previous = invoice.status
        invoice.status = TRANSITIONS[action][1]
        logger.info(f"Invoice {invoice.invoice_number}: {previous} -> {invoice.status} ({action})")
        return invoice
