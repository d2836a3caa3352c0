"""
Commission Waterfall

Splits a commission percentage across agent, sub-agent, franchise and
referral franchise. Each downstream share is carved out of the upstream
total and every share must stay strictly positive.
"""

from dataclasses import dataclass
from decimal import Decimal

from ..errors import InvalidCommissionError
from .tax import quantize_money


def commission_on(loan_amount: Decimal, percentage: Decimal) -> Decimal:
    """Loan Amount x Rate% / 100, rounded to money."""
    return quantize_money(loan_amount * percentage / 100)


@dataclass
class AgentSplit:
    agent_percentage: Decimal
    sub_agent_percentage: Decimal
    agent_amount: Decimal
    sub_agent_amount: Decimal


def split_agent_commission(
    loan_amount: Decimal,
    agent_commission_percentage: Decimal,
    sub_agent_commission_percentage: Decimal,
) -> AgentSplit:
    """
    Split the agent's total rate with the sub-agent.

    The sub-agent's rate was decided by the agent when the lead was created;
    the agent keeps the remainder.
    """
    if agent_commission_percentage <= 0:
        raise InvalidCommissionError(
            "Agent commission percentage is not set or is zero. Cannot generate split invoices."
        )
    if sub_agent_commission_percentage <= 0:
        raise InvalidCommissionError(
            "Sub-agent commission percentage is not set or is zero. Cannot generate split invoices."
        )

    remaining = agent_commission_percentage - sub_agent_commission_percentage
    if remaining <= 0:
        raise InvalidCommissionError(
            f"Agent remaining commission percentage is zero or negative. "
            f"Agent: {agent_commission_percentage}%, SubAgent: {sub_agent_commission_percentage}%."
        )

    split = AgentSplit(
        agent_percentage=remaining,
        sub_agent_percentage=sub_agent_commission_percentage,
        agent_amount=commission_on(loan_amount, remaining),
        sub_agent_amount=commission_on(loan_amount, sub_agent_commission_percentage),
    )
    if split.agent_amount <= 0 or split.sub_agent_amount <= 0:
        raise InvalidCommissionError("Calculated commission amounts are zero. Cannot generate invoices.")
    return split


def franchise_remaining_share(
    franchise_ceiling: Decimal,
    agent_commission_percentage: Decimal,
    referral_franchise_commission_percentage: Decimal,
) -> Decimal:
    """Ceiling minus what the agent and the referral franchise already take."""
    if franchise_ceiling <= 0:
        raise InvalidCommissionError(
            "Franchise commission percentage is zero for this bank. "
            "Please set a valid commission percentage in the Franchise Commission settings."
        )

    remaining = franchise_ceiling - agent_commission_percentage - referral_franchise_commission_percentage
    if remaining <= 0:
        raise InvalidCommissionError(
            f"Franchise commission is zero or negative. Total commission: {franchise_ceiling}%, "
            f"Agent commission: {agent_commission_percentage}%, "
            f"Referral franchise commission: {referral_franchise_commission_percentage}%."
        )
    return remaining
