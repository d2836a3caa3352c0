"""
Calculators Package

Pure calculation components: no store access, no side effects.
"""

from .commission import CommissionCalculator
from .tax import TaxComputer, quantize_money
from .waterfall import AgentSplit, commission_on, franchise_remaining_share, split_agent_commission

__all__ = [
    "CommissionCalculator",
    "TaxComputer",
    "quantize_money",
    "AgentSplit",
    "commission_on",
    "franchise_remaining_share",
    "split_agent_commission",
]
