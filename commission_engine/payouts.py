"""
Payout Aggregator

Rolls approved invoices up into one payout per payee and settles them.
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable

from .errors import InvalidStateTransition, PreconditionError
from .lifecycle import InvoiceLifecycle
from .models import Invoice, Payout
from .numbering import NumberGenerator, issue_with_retry
from .store import InMemoryStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def payee_of(invoice: Invoice) -> tuple[str, str]:
    """(payee_type, payee_id). Agents and sub-agents share one namespace."""
    if invoice.invoice_type == "franchise":
        return "franchise", invoice.franchise_id
    return "agent", invoice.payee_id


class PayoutAggregator:
    """Groups approved invoices by payee into payouts."""

    def __init__(
        self,
        store: InMemoryStore,
        lifecycle: InvoiceLifecycle | None = None,
        payout_numbers: NumberGenerator | None = None,
        number_retry_attempts: int = 5,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.lifecycle = lifecycle or InvoiceLifecycle(store, clock=clock)
        self.payout_numbers = payout_numbers or NumberGenerator("PAY", clock=clock)
        self.number_retry_attempts = number_retry_attempts
        self.clock = clock

    def process_payouts(self, invoice_ids: list[str], user_id: str | None = None) -> list[Payout]:
        """
        Create one payout per payee.

        Payout Net = Sum(commission) - Sum(TDS)

        Every invoice must be approved and not already part of a payout.
        """
        if not invoice_ids:
            raise PreconditionError("At least one invoice is required")

        with self.store.transaction():
            groups: dict[tuple[str, str], list[Invoice]] = {}
            for invoice_id in dict.fromkeys(invoice_ids):
                invoice = self.store.get_invoice(invoice_id)
                if invoice.status != "approved":
                    raise PreconditionError(
                        f"Invoice {invoice.invoice_number} is '{invoice.status}'; only approved invoices can be paid out"
                    )
                if invoice.payout_id is not None:
                    raise PreconditionError(
                        f"Invoice {invoice.invoice_number} already belongs to payout {invoice.payout_id}"
                    )
                groups.setdefault(payee_of(invoice), []).append(invoice)

            payouts = [self._create_payout(payee, invoices, user_id) for payee, invoices in groups.items()]

        for payout in payouts:
            logger.info(
                f"Payout {payout.payout_number} created for {payout.payee_type} {payout.payee_id}: "
                f"{len(payout.invoice_ids)} invoice(s), net payable {payout.net_payable}"
            )
        return payouts

    def confirm_payment(
        self,
        payout_id: str,
        transaction_id: str,
        transaction_date: datetime | None = None,
        payment_method: str = "NEFT",
        user_id: str | None = None,
    ) -> Payout:
        """Mark the payout paid and settle every invoice in it."""
        if not transaction_id:
            raise PreconditionError("transaction_id is required to confirm a payment")

        with self.store.transaction():
            payout = self.store.get_payout(payout_id)
            if payout.status == "paid":
                raise InvalidStateTransition("Payout is already marked as paid")

            now = self.clock()
            payout.status = "paid"
            payout.payment_confirmation = {
                "transaction_id": transaction_id,
                "transaction_date": transaction_date or now,
                "payment_method": payment_method,
                "confirmed_at": now,
                "confirmed_by": user_id,
            }
            for invoice_id in payout.invoice_ids:
                self.lifecycle.mark_paid(invoice_id)

        logger.info(f"Payout {payout.payout_number} paid (transaction {transaction_id})")
        return payout

    def mark_failed(self, payout_id: str, remarks: str | None = None, user_id: str | None = None) -> Payout:
        with self.store.transaction():
            payout = self.store.get_payout(payout_id)
            if payout.status == "paid":
                raise InvalidStateTransition("A paid payout cannot be marked as failed")
            payout.status = "failed"
            payout.remarks = remarks

        logger.warning(f"Payout {payout.payout_number} marked failed by {user_id}: {remarks}")
        return payout

    def _create_payout(self, payee: tuple[str, str], invoices: list[Invoice], user_id: str | None) -> Payout:
        payee_type, payee_id = payee
        total_amount = sum((i.commission_amount for i in invoices), Decimal("0"))
        tds_amount = sum((i.tds_amount for i in invoices), Decimal("0"))

        def write(number: str) -> Payout:
            return self.store.add_payout(Payout(
                payout_id=uuid.uuid4().hex,
                payout_number=number,
                payee_id=payee_id,
                payee_type=payee_type,
                franchise_id=invoices[0].franchise_id,
                invoice_ids=[i.invoice_id for i in invoices],
                total_amount=total_amount,
                tds_amount=tds_amount,
                net_payable=total_amount - tds_amount,
                processed_at=self.clock(),
                processed_by=user_id,
                bank_details=self._bank_details(payee_type, payee_id),
            ))

        payout = issue_with_retry(self.payout_numbers, write, self.number_retry_attempts)
        for invoice in invoices:
            invoice.payout_id = payout.payout_id
        return payout

    def _bank_details(self, payee_type: str, payee_id: str) -> dict:
        if payee_type == "franchise":
            franchise = self.store.get_franchise(payee_id)
            return dict(franchise.bank_details) if franchise else {}
        agent = self.store.get_agent(payee_id)
        return dict(agent.bank_details) if agent else {}
