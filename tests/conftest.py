"""
Shared fixtures: a small referral network and a deterministic engine.

Network:
    fr-1 (regional manager rgm-1)  <- ag-1 (agent), sub-1 (sub-agent of ag-1, "Sunil")
    fr-2 (regional manager rgm-2)  referral franchise
    rm-1 (relationship manager under rgm-1) <- ag-2
"""

import random
from datetime import datetime, timezone

import pytest

from commission_engine import (
    Agent,
    CommissionEngine,
    Franchise,
    FranchiseRef,
    InMemoryStore,
    Lead,
    NumberGenerator,
    RelationshipManager,
    RelationshipManagerRef,
    Settings,
)

FIXED_NOW = datetime(2025, 6, 15, 10, 30, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


class SequenceRng:
    """Stands in for random.Random: returns the given suffixes, repeating the last one."""

    def __init__(self, *values):
        self.values = list(values)

    def randrange(self, stop):
        if len(self.values) > 1:
            return self.values.pop(0)
        return self.values[0]


@pytest.fixture
def settings():
    return Settings(environment="test")


@pytest.fixture
def store():
    store = InMemoryStore()
    store.add_franchise(Franchise("fr-1", "Main Franchise", regional_manager_id="rgm-1",
                                  bank_details={"account_number": "111"}))
    store.add_franchise(Franchise("fr-2", "Referral Franchise", regional_manager_id="rgm-2",
                                  bank_details={"account_number": "999"}))
    store.add_relationship_manager(RelationshipManager("rm-1", "Riya", regional_manager_id="rgm-1"))
    store.add_agent(Agent("ag-1", "Asha", managed_by=FranchiseRef("fr-1"),
                          bank_details={"account_number": "222"}))
    store.add_agent(Agent("sub-1", "Sunil", managed_by=FranchiseRef("fr-1"), parent_agent_id="ag-1",
                          bank_details={"account_number": "333"}))
    store.add_agent(Agent("ag-2", "Vikram", managed_by=RelationshipManagerRef("rm-1")))
    return store


@pytest.fixture
def engine(store, settings):
    return CommissionEngine(
        store=store,
        settings=settings,
        invoice_numbers=NumberGenerator("INV", clock=fixed_clock, rng=random.Random(7)),
        payout_numbers=NumberGenerator("PAY", clock=fixed_clock, rng=random.Random(11)),
        clock=fixed_clock,
    )


@pytest.fixture
def make_lead():
    """Factory for leads: a disbursed 10 lakh home loan by ag-1 at 3% unless overridden."""
    def _make(**overrides) -> Lead:
        data = {
            "lead_id": "lead-1",
            "agent_id": "ag-1",
            "status": "disbursed",
            "bank_id": "bank-1",
            "loan_type": "home_loan",
            "loan_amount": 1000000,
            "disbursed_amount": 1000000,
            "agent_commission_percentage": 3,
        }
        data.update(overrides)
        return Lead.from_dict(data)
    return _make


@pytest.fixture
def clock():
    return fixed_clock


@pytest.fixture
def sequence_rng():
    return SequenceRng
