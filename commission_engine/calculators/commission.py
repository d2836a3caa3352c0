"""
Commission Calculator

Applies a bank commission rule to a lead's sanctioned or disbursed amount.
"""

from decimal import Decimal

from ..models import CommissionCalculation, CommissionRule, Lead
from .tax import quantize_money


class CommissionCalculator:
    """Calculates bank commission from a resolved rule."""

    def calculate(self, rule: CommissionRule, base_amount: Decimal) -> CommissionCalculation:
        """
        Calculate commission on base_amount.

        - Zero base amount: commission is 0 (disbursement may still be pending)
        - percentage: base_amount * value / 100
        - fixed: value, whatever the base amount
        - min/max clamps apply after the calculation
        """
        percentage = rule.commission_value if rule.commission_type == 'percentage' else Decimal('0')

        if base_amount == 0:
            return CommissionCalculation(
                commission=Decimal('0'),
                base_amount=Decimal('0'),
                commission_basis=rule.commission_basis,
                commission_percentage=percentage,
                rule_id=rule.rule_id,
                message="Base amount is zero, commission cannot be calculated",
            )

        if rule.commission_type == 'percentage':
            commission = base_amount * rule.commission_value / 100
        else:
            commission = rule.commission_value

        commission, clamped_to = self._clamp(commission, rule)

        return CommissionCalculation(
            commission=quantize_money(commission),
            base_amount=base_amount,
            commission_basis=rule.commission_basis,
            commission_percentage=percentage,
            rule_id=rule.rule_id,
            clamped_to=clamped_to,
        )

    def calculate_for_lead(self, rule: CommissionRule, lead: Lead) -> CommissionCalculation:
        """Calculate on the lead's current amounts. The basis is re-read on every call."""
        return self.calculate(rule, self.base_amount(rule, lead))

    @staticmethod
    def base_amount(rule: CommissionRule, lead: Lead) -> Decimal:
        if rule.commission_basis == 'sanctioned':
            return lead.sanctioned_base
        return lead.disbursed_amount

    @staticmethod
    def _clamp(commission: Decimal, rule: CommissionRule) -> tuple[Decimal, str | None]:
        if rule.min_commission is not None and commission < rule.min_commission:
            return rule.min_commission, 'min'
        if rule.max_commission is not None and commission > rule.max_commission:
            return rule.max_commission, 'max'
        return commission, None
