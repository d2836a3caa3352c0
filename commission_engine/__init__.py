"""
Loan Referral Commission Engine

Bank commission rules, the agent/franchise commission waterfall, invoice
generation with GST/TDS, the invoice lifecycle and payout aggregation.
"""

from .config import Settings
from .errors import (
    CommissionEngineError,
    DuplicateInvoiceError,
    InvalidCommissionError,
    InvalidStateTransition,
    NotFoundError,
    NumberingError,
    PermissionDeniedError,
    PreconditionError,
    RuleNotFoundError,
)
from .generator import InvoiceGenerator
from .lifecycle import InvoiceLifecycle
from .models import (
    Agent,
    CommissionRule,
    Franchise,
    FranchiseCommissionLimit,
    FranchiseInvoices,
    FranchiseRef,
    Invoice,
    Lead,
    Payout,
    RelationshipManager,
    RelationshipManagerRef,
    SplitInvoices,
)
from .numbering import NumberGenerator
from .output import OutputBuilder
from .payouts import PayoutAggregator
from .processor import CommissionEngine, quote_commission
from .rules import CommissionRuleStore
from .store import InMemoryStore

__all__ = [
    "CommissionEngine",
    "quote_commission",
    "Settings",
    "InMemoryStore",
    "CommissionRuleStore",
    "InvoiceGenerator",
    "InvoiceLifecycle",
    "PayoutAggregator",
    "NumberGenerator",
    "OutputBuilder",
    # Models
    "Agent",
    "CommissionRule",
    "Franchise",
    "FranchiseCommissionLimit",
    "FranchiseInvoices",
    "FranchiseRef",
    "Invoice",
    "Lead",
    "Payout",
    "RelationshipManager",
    "RelationshipManagerRef",
    "SplitInvoices",
    # Errors
    "CommissionEngineError",
    "DuplicateInvoiceError",
    "InvalidCommissionError",
    "InvalidStateTransition",
    "NotFoundError",
    "NumberingError",
    "PermissionDeniedError",
    "PreconditionError",
    "RuleNotFoundError",
]

__version__ = "1.0.0"
