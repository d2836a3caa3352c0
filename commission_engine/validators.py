"""
Input Validation for the Commission Engine

Validates rules, limits and lead commission settings before they are used.
Raises engine errors (all ValueError subclasses) with clear messages.
"""

from decimal import Decimal

from .errors import InvalidCommissionError, PreconditionError
from .models import (
    ALL_LOAN_TYPES,
    LEAD_STATUSES,
    LOAN_TYPES,
    CommissionRule,
    FranchiseCommissionLimit,
    Lead,
)


class InputValidator:
    """Validates engine input according to business rules."""

    def validate_rule(self, rule: CommissionRule) -> None:
        if rule.loan_type not in LOAN_TYPES and rule.loan_type != ALL_LOAN_TYPES:
            raise ValueError(f"Invalid loan_type: {rule.loan_type}")

        if rule.commission_basis not in ['sanctioned', 'disbursed']:
            raise ValueError(
                f"Invalid commission_basis: {rule.commission_basis}. Must be 'sanctioned' or 'disbursed'"
            )

        if rule.commission_type not in ['percentage', 'fixed']:
            raise ValueError(f"Invalid commission_type: {rule.commission_type}. Must be 'percentage' or 'fixed'")

        if rule.commission_value < 0:
            raise ValueError(f"commission_value cannot be negative, got: {rule.commission_value}")

        if rule.commission_type == 'percentage' and rule.commission_value > 100:
            raise ValueError(f"Percentage commission cannot exceed 100, got: {rule.commission_value}")

        if rule.min_commission is not None and rule.max_commission is not None:
            if rule.min_commission > rule.max_commission:
                raise ValueError(
                    f"min_commission ({rule.min_commission}) cannot exceed max_commission ({rule.max_commission})"
                )

        if rule.effective_to is not None and rule.effective_to < rule.effective_from:
            raise ValueError("effective_to cannot be before effective_from")

        if rule.status not in ['active', 'inactive']:
            raise ValueError(f"Invalid status: {rule.status}. Must be 'active' or 'inactive'")

    def validate_limit(self, limit: FranchiseCommissionLimit) -> None:
        if limit.limit_type not in ['amount', 'percentage']:
            raise ValueError('Limit type must be either "amount" or "percentage"')

        if limit.max_commission_value < 0:
            raise ValueError(f"max_commission_value cannot be negative, got: {limit.max_commission_value}")

        if limit.limit_type == 'percentage' and limit.max_commission_value > 100:
            raise ValueError("Percentage cannot exceed 100")

    def validate_lead(self, lead: Lead) -> None:
        if lead.status not in LEAD_STATUSES:
            raise ValueError(f"Invalid lead status: {lead.status}")

        if lead.loan_amount < 0:
            raise ValueError(f"loan_amount cannot be negative, got: {lead.loan_amount}")

        if lead.disbursed_amount < 0:
            raise ValueError(f"disbursed_amount cannot be negative, got: {lead.disbursed_amount}")

        for name in (
            'commission_percentage',
            'agent_commission_percentage',
            'sub_agent_commission_percentage',
            'referral_franchise_commission_percentage',
            'referral_franchise_commission_amount',
        ):
            value = getattr(lead, name)
            if value < 0:
                raise InvalidCommissionError(f"{name} cannot be negative, got: {value}")

    def validate_commission_ceiling(self, lead: Lead, limit: FranchiseCommissionLimit | None) -> None:
        """
        Agent + sub-agent + referral franchise must stay within the bank's ceiling.

        Percentage limits compare rates; amount limits compare the rupee
        amounts those rates produce on the loan amount.
        """
        if limit is None:
            return

        total_percentage = (
            lead.agent_commission_percentage
            + lead.sub_agent_commission_percentage
            + lead.referral_franchise_commission_percentage
        )

        if limit.limit_type == 'percentage':
            if total_percentage > limit.max_commission_value:
                raise InvalidCommissionError(
                    f"Assigned commission {total_percentage}% exceeds the franchise limit of "
                    f"{limit.max_commission_value}% for this bank"
                )
            return

        agent_side = lead.agent_commission_percentage + lead.sub_agent_commission_percentage
        referral_amount = lead.referral_franchise_commission_amount or (
            lead.loan_amount * lead.referral_franchise_commission_percentage / 100
        )
        total_amount = lead.loan_amount * agent_side / 100 + referral_amount
        if total_amount > limit.max_commission_value:
            raise InvalidCommissionError(
                f"Assigned commission amount {total_amount} exceeds the franchise limit of "
                f"{limit.max_commission_value} for this bank"
            )

    def require_percentage_limit(self, limit: FranchiseCommissionLimit | None) -> Decimal:
        """Return the percentage ceiling used by franchise invoicing."""
        if limit is None:
            raise PreconditionError(
                "Franchise commission limit is not set for this bank. Please set the commission limit "
                "for this bank in the Franchise Commission settings."
            )
        if limit.limit_type != 'percentage':
            raise PreconditionError(
                f"Franchise commission limit for this bank is set as amount ({limit.max_commission_value}), "
                f"not percentage. Please configure it as percentage in Franchise Commission settings."
            )
        return limit.max_commission_value
