"""
Domain Models for the Commission Engine

These dataclasses provide type-safe representations of all business entities.
All monetary values and percentages use Decimal for precision.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

LOAN_TYPES = (
    "personal_loan",
    "home_loan",
    "business_loan",
    "loan_against_property",
    "education_loan",
    "car_loan",
    "gold_loan",
)
ALL_LOAN_TYPES = "all"

LEAD_STATUSES = ("logged", "sanctioned", "partial_disbursed", "disbursed", "completed", "rejected")
INVOICE_TYPES = ("agent", "sub_agent", "franchise")
INVOICE_STATUSES = ("pending", "approved", "escalated", "rejected", "paid")
PAYOUT_STATUSES = ("pending", "processing", "paid", "failed")


def _required(data: dict, key: str):
    value = data.get(key)
    if value is None or value == "":
        raise ValueError(f"Missing required field: {key}")
    return value


def _decimal(value, default: Decimal | None = None) -> Decimal | None:
    if value is None or value == "":
        return default
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Expected a number, got: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Expected a finite number, got: {value!r}")
    return result


def _date(value) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


# =============================================================================
# HIERARCHY
# =============================================================================


@dataclass(frozen=True)
class FranchiseRef:
    """Lead or agent attached directly to a franchise."""

    franchise_id: str


@dataclass(frozen=True)
class RelationshipManagerRef:
    """Lead or agent attached to a relationship manager."""

    manager_id: str


HierarchyRef = FranchiseRef | RelationshipManagerRef


def hierarchy_ref(model: str | None, ref_id: str | None) -> HierarchyRef | None:
    """Build a HierarchyRef from the stored (model name, id) pair."""
    if not model or not ref_id:
        return None
    if model == "Franchise":
        return FranchiseRef(str(ref_id))
    if model == "RelationshipManager":
        return RelationshipManagerRef(str(ref_id))
    raise ValueError(f"Unknown hierarchy model: {model}. Must be 'Franchise' or 'RelationshipManager'")


@dataclass
class Franchise:
    franchise_id: str
    name: str = ""
    regional_manager_id: str | None = None
    bank_details: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "Franchise":
        return cls(
            franchise_id=str(_required(data, "franchise_id")),
            name=data.get("name", ""),
            regional_manager_id=data.get("regional_manager_id"),
            bank_details=data.get("bank_details", {}),
        )


@dataclass
class RelationshipManager:
    manager_id: str
    name: str = ""
    regional_manager_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "RelationshipManager":
        return cls(
            manager_id=str(_required(data, "manager_id")),
            name=data.get("name", ""),
            regional_manager_id=data.get("regional_manager_id"),
        )


@dataclass
class Agent:
    """An agent or, when parent_agent_id is set, a sub-agent."""

    agent_id: str
    name: str = ""
    managed_by: HierarchyRef | None = None
    parent_agent_id: str | None = None
    bank_details: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "Agent":
        return cls(
            agent_id=str(_required(data, "agent_id")),
            name=data.get("name", ""),
            managed_by=hierarchy_ref(data.get("managed_by_model"), data.get("managed_by")),
            parent_agent_id=data.get("parent_agent_id"),
            bank_details=data.get("bank_details", {}),
        )


# =============================================================================
# RULES AND LIMITS
# =============================================================================


@dataclass
class CommissionRule:
    """A bank commission policy for one loan type (or 'all') over a date window."""

    rule_id: str
    bank_id: str
    loan_type: str
    commission_basis: str  # 'sanctioned' or 'disbursed'
    commission_type: str  # 'percentage' or 'fixed'
    commission_value: Decimal
    effective_from: date
    effective_to: date | None = None  # None = open-ended
    min_commission: Decimal | None = None
    max_commission: Decimal | None = None
    status: str = "active"

    def is_effective(self, as_of: date) -> bool:
        if self.status != "active":
            return False
        if as_of < self.effective_from:
            return False
        if self.effective_to is not None and as_of > self.effective_to:
            return False
        return True

    @classmethod
    def from_dict(cls, data: dict) -> "CommissionRule":
        return cls(
            rule_id=str(data.get("rule_id", "")),
            bank_id=str(_required(data, "bank_id")),
            loan_type=data.get("loan_type", ALL_LOAN_TYPES),
            commission_basis=_required(data, "commission_basis"),
            commission_type=_required(data, "commission_type"),
            commission_value=_decimal(_required(data, "commission_value")),
            effective_from=_date(_required(data, "effective_from")),
            effective_to=_date(data.get("effective_to")),
            min_commission=_decimal(data.get("min_commission")),
            max_commission=_decimal(data.get("max_commission")),
            status=data.get("status", "active"),
        )


@dataclass
class FranchiseCommissionLimit:
    """Per-bank commission ceiling. One record per bank."""

    bank_id: str
    limit_type: str  # 'amount' or 'percentage'
    max_commission_value: Decimal

    @classmethod
    def from_dict(cls, data: dict) -> "FranchiseCommissionLimit":
        return cls(
            bank_id=str(_required(data, "bank_id")),
            limit_type=_required(data, "limit_type"),
            max_commission_value=_decimal(_required(data, "max_commission_value")),
        )


# =============================================================================
# LEADS
# =============================================================================


@dataclass
class DisbursementEntry:
    amount: Decimal
    disbursement_date: date
    disbursement_type: str  # 'full' or 'partial'
    utr: str | None = None
    remarks: str | None = None


@dataclass
class Lead:
    """A loan application moving through the referral pipeline."""

    lead_id: str
    agent_id: str
    status: str = "logged"
    bank_id: str | None = None
    loan_type: str | None = None
    loan_amount: Decimal = Decimal("0")
    sanctioned_amount: Decimal | None = None
    disbursed_amount: Decimal = Decimal("0")
    disbursement_type: str | None = None
    disbursement_history: list[DisbursementEntry] = field(default_factory=list)
    associated: HierarchyRef | None = None
    sub_agent_id: str | None = None
    sub_agent_name: str | None = None
    referral_franchise_id: str | None = None
    commission_percentage: Decimal = Decimal("0")
    agent_commission_percentage: Decimal = Decimal("0")
    sub_agent_commission_percentage: Decimal = Decimal("0")
    referral_franchise_commission_percentage: Decimal = Decimal("0")
    referral_franchise_commission_amount: Decimal = Decimal("0")
    # Bank commission figures, re-derived whenever amounts change
    commission_basis: str | None = None
    expected_commission: Decimal | None = None
    is_invoice_generated: bool = False
    invoice_id: str | None = None

    @property
    def sanctioned_base(self) -> Decimal:
        """Sanctioned amount, falling back to the requested loan amount."""
        if self.sanctioned_amount is not None:
            return self.sanctioned_amount
        return self.loan_amount

    @property
    def has_sub_agent(self) -> bool:
        return bool(self.sub_agent_id or self.sub_agent_name)

    @classmethod
    def from_dict(cls, data: dict) -> "Lead":
        return cls(
            lead_id=str(_required(data, "lead_id")),
            agent_id=str(_required(data, "agent_id")),
            status=data.get("status", "logged"),
            bank_id=data.get("bank_id"),
            loan_type=data.get("loan_type"),
            loan_amount=_decimal(data.get("loan_amount"), Decimal("0")),
            sanctioned_amount=_decimal(data.get("sanctioned_amount")),
            disbursed_amount=_decimal(data.get("disbursed_amount"), Decimal("0")),
            disbursement_type=data.get("disbursement_type"),
            associated=hierarchy_ref(data.get("associated_model"), data.get("associated")),
            sub_agent_id=data.get("sub_agent_id"),
            sub_agent_name=data.get("sub_agent_name"),
            referral_franchise_id=data.get("referral_franchise_id"),
            commission_percentage=_decimal(data.get("commission_percentage"), Decimal("0")),
            agent_commission_percentage=_decimal(data.get("agent_commission_percentage"), Decimal("0")),
            sub_agent_commission_percentage=_decimal(data.get("sub_agent_commission_percentage"), Decimal("0")),
            referral_franchise_commission_percentage=_decimal(
                data.get("referral_franchise_commission_percentage"), Decimal("0")
            ),
            referral_franchise_commission_amount=_decimal(
                data.get("referral_franchise_commission_amount"), Decimal("0")
            ),
            is_invoice_generated=data.get("is_invoice_generated", False),
            invoice_id=data.get("invoice_id"),
        )


# =============================================================================
# INVOICES AND PAYOUTS
# =============================================================================


@dataclass
class Invoice:
    """A commission invoice raised for one payee of one lead."""

    invoice_id: str
    invoice_number: str
    lead_id: str
    agent_id: str
    franchise_id: str
    invoice_type: str
    commission_amount: Decimal
    gst_amount: Decimal
    tds_amount: Decimal
    tds_percentage: Decimal
    net_payable: Decimal
    invoice_date: datetime
    status: str = "pending"
    sub_agent_id: str | None = None
    is_referral_franchise: bool = False

    # Escalation
    is_escalated: bool = False
    escalation_reason: str | None = None
    escalation_remarks: str | None = None
    escalated_at: datetime | None = None
    escalated_by: str | None = None

    # Resolution
    resolution_remarks: str | None = None
    resolved_at: datetime | None = None
    resolved_by: str | None = None

    # Approval / acceptance / rejection
    accepted_at: datetime | None = None
    agent_remarks: str | None = None
    approved_at: datetime | None = None
    approved_by: str | None = None
    rejected_at: datetime | None = None
    rejected_by: str | None = None
    rejection_reason: str | None = None

    # Settlement
    payout_id: str | None = None
    paid_at: datetime | None = None

    @property
    def payee_id(self) -> str:
        if self.invoice_type == "sub_agent":
            return self.sub_agent_id
        if self.invoice_type == "franchise":
            return self.franchise_id
        return self.agent_id

    @property
    def idempotency_key(self) -> tuple:
        """Uniqueness key: one invoice per (lead, type), referral invoices per referral franchise."""
        referral_franchise = self.franchise_id if self.is_referral_franchise else None
        return (self.lead_id, self.invoice_type, self.is_referral_franchise, referral_franchise)


@dataclass
class Payout:
    """One disbursement to a single payee covering one or more approved invoices."""

    payout_id: str
    payout_number: str
    payee_id: str
    payee_type: str  # 'agent' (agents and sub-agents) or 'franchise'
    franchise_id: str
    invoice_ids: list[str]
    total_amount: Decimal
    tds_amount: Decimal
    net_payable: Decimal
    processed_at: datetime
    processed_by: str | None = None
    status: str = "pending"
    bank_details: dict = field(default_factory=dict)
    payment_confirmation: dict | None = None
    remarks: str | None = None


# =============================================================================
# OUTPUT / RESULT MODELS
# =============================================================================


@dataclass
class CommissionCalculation:
    """Result of applying a commission rule to a base amount."""

    commission: Decimal = Decimal("0")
    base_amount: Decimal = Decimal("0")
    commission_basis: str | None = None
    commission_percentage: Decimal = Decimal("0")
    rule_id: str | None = None
    clamped_to: str | None = None  # 'min', 'max' or None
    message: str | None = None


@dataclass
class TaxBreakdown:
    """GST/TDS split of a taxable commission."""

    taxable: Decimal
    gst: Decimal
    tds: Decimal
    tds_percentage: Decimal
    net_payable: Decimal


@dataclass
class SplitInvoices:
    """Agent and sub-agent invoices created together for one disbursed lead."""

    agent_invoice: Invoice
    sub_agent_invoice: Invoice

    @property
    def invoices(self) -> list[Invoice]:
        return [self.agent_invoice, self.sub_agent_invoice]


@dataclass
class FranchiseInvoices:
    """Main franchise invoice plus the referral franchise invoice."""

    main_invoice: Invoice
    referral_invoice: Invoice

    @property
    def invoices(self) -> list[Invoice]:
        return [self.main_invoice, self.referral_invoice]
