"""
Output Builder

Constructs API responses from engine results.
"""

from datetime import date, datetime
from decimal import Decimal

from .models import (
    CommissionCalculation,
    FranchiseInvoices,
    Invoice,
    Lead,
    Payout,
    SplitInvoices,
    TaxBreakdown,
)


def to_money(value: Decimal | None) -> float | None:
    """Convert Decimal to float with 2 decimal places."""
    if value is None:
        return None
    return round(float(value), 2)


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class OutputBuilder:
    """Builds JSON-ready dictionaries."""

    def invoice(self, invoice: Invoice) -> dict:
        return {
            "invoice_id": invoice.invoice_id,
            "invoice_number": invoice.invoice_number,
            "lead_id": invoice.lead_id,
            "invoice_type": invoice.invoice_type,
            "is_referral_franchise": invoice.is_referral_franchise,
            "agent_id": invoice.agent_id,
            "sub_agent_id": invoice.sub_agent_id,
            "franchise_id": invoice.franchise_id,
            "commission_amount": to_money(invoice.commission_amount),
            "gst_amount": to_money(invoice.gst_amount),
            "tds_amount": to_money(invoice.tds_amount),
            "tds_percentage": float(invoice.tds_percentage),
            "net_payable": to_money(invoice.net_payable),
            "status": invoice.status,
            "invoice_date": _iso(invoice.invoice_date),
            "escalation": {
                "reason": invoice.escalation_reason,
                "remarks": invoice.escalation_remarks,
                "escalated_at": _iso(invoice.escalated_at),
                "escalated_by": invoice.escalated_by,
                "resolution_remarks": invoice.resolution_remarks,
                "resolved_at": _iso(invoice.resolved_at),
                "resolved_by": invoice.resolved_by,
            } if invoice.is_escalated else None,
            "accepted_at": _iso(invoice.accepted_at),
            "approved_at": _iso(invoice.approved_at),
            "approved_by": invoice.approved_by,
            "rejected_at": _iso(invoice.rejected_at),
            "rejection_reason": invoice.rejection_reason,
            "payout_id": invoice.payout_id,
        }

    def lead(self, lead: Lead) -> dict:
        return {
            "lead_id": lead.lead_id,
            "status": lead.status,
            "bank_id": lead.bank_id,
            "loan_type": lead.loan_type,
            "loan_amount": to_money(lead.loan_amount),
            "disbursed_amount": to_money(lead.disbursed_amount),
            "commission_basis": lead.commission_basis,
            "commission_percentage": float(lead.commission_percentage),
            "expected_commission": to_money(lead.expected_commission),
            "agent_commission_percentage": float(lead.agent_commission_percentage),
            "sub_agent_commission_percentage": float(lead.sub_agent_commission_percentage),
            "referral_franchise_commission_percentage": float(lead.referral_franchise_commission_percentage),
            "referral_franchise_commission_amount": to_money(lead.referral_franchise_commission_amount),
            "is_invoice_generated": lead.is_invoice_generated,
            "invoice_id": lead.invoice_id,
        }

    def generation(self, result: Invoice | SplitInvoices | FranchiseInvoices) -> dict:
        """Shape the result of invoice generation."""
        if isinstance(result, SplitInvoices):
            return {
                "agent_invoice": self.invoice(result.agent_invoice),
                "sub_agent_invoice": self.invoice(result.sub_agent_invoice),
                "is_split": True,
            }
        if isinstance(result, FranchiseInvoices):
            return {
                "main_invoice": self.invoice(result.main_invoice),
                "referral_invoice": self.invoice(result.referral_invoice),
                "is_dual_franchise": True,
            }
        return {"invoice": self.invoice(result)}

    def payout(self, payout: Payout) -> dict:
        confirmation = payout.payment_confirmation
        return {
            "payout_id": payout.payout_id,
            "payout_number": payout.payout_number,
            "payee_type": payout.payee_type,
            "payee_id": payout.payee_id,
            "franchise_id": payout.franchise_id,
            "invoice_ids": list(payout.invoice_ids),
            "total_amount": to_money(payout.total_amount),
            "tds_amount": to_money(payout.tds_amount),
            "net_payable": to_money(payout.net_payable),
            "status": payout.status,
            "processed_at": _iso(payout.processed_at),
            "payment_confirmation": {
                **confirmation,
                "transaction_date": _iso(confirmation["transaction_date"]),
                "confirmed_at": _iso(confirmation["confirmed_at"]),
            } if confirmation else None,
            "remarks": payout.remarks,
        }

    def commission(self, calculation: CommissionCalculation) -> dict:
        return {
            "commission": to_money(calculation.commission),
            "base_amount": to_money(calculation.base_amount),
            "commission_basis": calculation.commission_basis,
            "commission_percentage": float(calculation.commission_percentage),
            "rule_id": calculation.rule_id,
            "clamped_to": calculation.clamped_to,
            "message": calculation.message,
        }

    def taxes(self, taxes: TaxBreakdown) -> dict:
        return {
            "taxable": to_money(taxes.taxable),
            "gst": to_money(taxes.gst),
            "tds": to_money(taxes.tds),
            "tds_percentage": float(taxes.tds_percentage),
            "net_payable": to_money(taxes.net_payable),
        }
