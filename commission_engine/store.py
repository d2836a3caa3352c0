"""
In-Memory Store

Holds leads, hierarchy records, rules, limits, invoices and payouts.
Writes go through transaction(): on any exception every change made inside
the block is rolled back. Invoice idempotency keys and invoice/payout
numbers are unique constraints enforced here, so a racing writer that
slipped past an application-level check still cannot persist a duplicate.
"""

import copy
import threading
from contextlib import contextmanager

from .errors import DuplicateInvoiceError, NotFoundError, NumberCollision, PreconditionError
from .models import (
    Agent,
    CommissionRule,
    Franchise,
    FranchiseCommissionLimit,
    Invoice,
    Lead,
    Payout,
    RelationshipManager,
)

_STATE_FIELDS = (
    "leads",
    "agents",
    "franchises",
    "managers",
    "rules",
    "limits",
    "invoices",
    "payouts",
    "_invoice_keys",
    "_invoice_numbers",
    "_payout_numbers",
)

# Records mutated in place by engine operations; their field values are
# captured per transaction so a rollback can restore them without replacing
# the objects.
_MUTABLE_TABLES = ("leads", "invoices", "payouts")


def _restore_container(current, saved) -> None:
    if isinstance(current, list):
        current[:] = saved
    else:
        current.clear()
        current.update(saved)


class InMemoryStore:
    """Thread-safe store with snapshot/rollback transactions."""

    def __init__(self):
        self._lock = threading.RLock()
        self._lead_locks: dict[str, threading.Lock] = {}
        self._lead_locks_guard = threading.Lock()

        self.leads: dict[str, Lead] = {}
        self.agents: dict[str, Agent] = {}
        self.franchises: dict[str, Franchise] = {}
        self.managers: dict[str, RelationshipManager] = {}
        self.rules: list[CommissionRule] = []
        self.limits: dict[str, FranchiseCommissionLimit] = {}
        self.invoices: dict[str, Invoice] = {}
        self.payouts: dict[str, Payout] = {}
        self._invoice_keys: dict[tuple, str] = {}
        self._invoice_numbers: set[str] = set()
        self._payout_numbers: set[str] = set()

    # -------------------------------------------------------------------------
    # Concurrency
    # -------------------------------------------------------------------------

    @contextmanager
    def transaction(self):
        """
        All-or-nothing unit of work.

        On failure the tables get their previous membership back and every
        pre-existing lead, invoice and payout gets its previous field values
        restored in place, so objects already handed to callers stay live.
        """
        with self._lock:
            tables = {name: copy.copy(getattr(self, name)) for name in _STATE_FIELDS}
            records = [
                (record, copy.deepcopy(vars(record)))
                for name in _MUTABLE_TABLES
                for record in getattr(self, name).values()
            ]
            try:
                yield self
            except BaseException:
                for name, saved in tables.items():
                    _restore_container(getattr(self, name), saved)
                for record, state in records:
                    vars(record).clear()
                    vars(record).update(state)
                raise

    @contextmanager
    def lead_lock(self, lead_id: str):
        """Serialize work on a single lead."""
        with self._lead_locks_guard:
            lock = self._lead_locks.setdefault(lead_id, threading.Lock())
        with lock:
            yield

    # -------------------------------------------------------------------------
    # Hierarchy
    # -------------------------------------------------------------------------

    def add_agent(self, agent: Agent) -> Agent:
        with self._lock:
            self.agents[agent.agent_id] = agent
        return agent

    def get_agent(self, agent_id: str | None) -> Agent | None:
        if agent_id is None:
            return None
        return self.agents.get(agent_id)

    def find_sub_agent(self, parent_agent_id: str, name: str) -> Agent | None:
        for agent in self.agents.values():
            if agent.parent_agent_id == parent_agent_id and agent.name == name:
                return agent
        return None

    def add_franchise(self, franchise: Franchise) -> Franchise:
        with self._lock:
            self.franchises[franchise.franchise_id] = franchise
        return franchise

    def get_franchise(self, franchise_id: str | None) -> Franchise | None:
        if franchise_id is None:
            return None
        return self.franchises.get(franchise_id)

    def find_franchises_by_regional_manager(self, regional_manager_id: str) -> list[Franchise]:
        matches = [f for f in self.franchises.values() if f.regional_manager_id == regional_manager_id]
        return sorted(matches, key=lambda f: f.franchise_id)

    def add_relationship_manager(self, manager: RelationshipManager) -> RelationshipManager:
        with self._lock:
            self.managers[manager.manager_id] = manager
        return manager

    def get_relationship_manager(self, manager_id: str) -> RelationshipManager | None:
        return self.managers.get(manager_id)

    # -------------------------------------------------------------------------
    # Leads
    # -------------------------------------------------------------------------

    def add_lead(self, lead: Lead) -> Lead:
        with self._lock:
            self.leads[lead.lead_id] = lead
        return lead

    def get_lead(self, lead_id: str) -> Lead:
        lead = self.leads.get(lead_id)
        if lead is None:
            raise NotFoundError(f"Lead not found: {lead_id}")
        return lead

    # -------------------------------------------------------------------------
    # Rules and limits
    # -------------------------------------------------------------------------

    def add_rule(self, rule: CommissionRule) -> CommissionRule:
        with self._lock:
            if not rule.rule_id:
                rule.rule_id = f"rule-{len(self.rules) + 1}"
            self.rules.append(rule)
        return rule

    def rules_for_bank(self, bank_id: str) -> list[CommissionRule]:
        return [r for r in self.rules if r.bank_id == bank_id]

    def add_limit(self, limit: FranchiseCommissionLimit) -> FranchiseCommissionLimit:
        with self._lock:
            if limit.bank_id in self.limits:
                raise PreconditionError(f"Franchise commission limit already exists for bank {limit.bank_id}")
            self.limits[limit.bank_id] = limit
        return limit

    def get_limit(self, bank_id: str) -> FranchiseCommissionLimit | None:
        return self.limits.get(bank_id)

    # -------------------------------------------------------------------------
    # Invoices
    # -------------------------------------------------------------------------

    def add_invoice(self, invoice: Invoice) -> Invoice:
        """Persist a new invoice, enforcing number and idempotency-key uniqueness."""
        with self._lock:
            if invoice.invoice_number in self._invoice_numbers:
                raise NumberCollision(invoice.invoice_number)
            key = invoice.idempotency_key
            if key in self._invoice_keys:
                raise DuplicateInvoiceError(
                    f"Invoice already exists for lead {invoice.lead_id} ({invoice.invoice_type}). "
                    f"Duplicate invoice generation prevented."
                )
            self.invoices[invoice.invoice_id] = invoice
            self._invoice_keys[key] = invoice.invoice_id
            self._invoice_numbers.add(invoice.invoice_number)
        return invoice

    def get_invoice(self, invoice_id: str) -> Invoice:
        invoice = self.invoices.get(invoice_id)
        if invoice is None:
            raise NotFoundError(f"Invoice not found: {invoice_id}")
        return invoice

    def find_invoice(self, lead_id: str, invoice_type: str, is_referral_franchise: bool = False,
                     franchise_id: str | None = None) -> Invoice | None:
        key = (lead_id, invoice_type, is_referral_franchise, franchise_id if is_referral_franchise else None)
        invoice_id = self._invoice_keys.get(key)
        return self.invoices.get(invoice_id) if invoice_id else None

    def invoices_for_lead(self, lead_id: str) -> list[Invoice]:
        return [i for i in self.invoices.values() if i.lead_id == lead_id]

    # -------------------------------------------------------------------------
    # Payouts
    # -------------------------------------------------------------------------

    def add_payout(self, payout: Payout) -> Payout:
        with self._lock:
            if payout.payout_number in self._payout_numbers:
                raise NumberCollision(payout.payout_number)
            self.payouts[payout.payout_id] = payout
            self._payout_numbers.add(payout.payout_number)
        return payout

    def get_payout(self, payout_id: str) -> Payout:
        payout = self.payouts.get(payout_id)
        if payout is None:
            raise NotFoundError(f"Payout not found: {payout_id}")
        return payout
