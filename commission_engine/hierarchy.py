"""
Hierarchy Resolution

Finds the franchise a lead's commission flows through.
"""

from .errors import PreconditionError
from .models import Franchise, FranchiseRef, HierarchyRef, Lead, RelationshipManagerRef
from .store import InMemoryStore


def resolve_franchise_context(store: InMemoryStore, lead: Lead) -> Franchise:
    """
    Resolve the lead's franchise.

    Priority order:
    1. Lead associated directly with a franchise
    2. Agent managed directly by a franchise
    3. Agent managed by a relationship manager: franchise of that manager's regional manager
    4. Lead associated with a relationship manager: same regional-manager lookup
    """
    agent = store.get_agent(lead.agent_id)
    candidates: list[HierarchyRef] = []
    if isinstance(lead.associated, FranchiseRef):
        candidates.append(lead.associated)
    if agent is not None and agent.managed_by is not None:
        candidates.append(agent.managed_by)
    if isinstance(lead.associated, RelationshipManagerRef):
        candidates.append(lead.associated)

    for ref in candidates:
        franchise = _franchise_for(store, ref)
        if franchise is not None:
            return franchise

    raise PreconditionError(
        "Franchise information not found for this lead. Please ensure the lead is associated "
        "with a franchise or the agent is managed by a franchise."
    )


def _franchise_for(store: InMemoryStore, ref: HierarchyRef) -> Franchise | None:
    if isinstance(ref, FranchiseRef):
        return store.get_franchise(ref.franchise_id)

    manager = store.get_relationship_manager(ref.manager_id)
    if manager is None or manager.regional_manager_id is None:
        return None
    franchises = store.find_franchises_by_regional_manager(manager.regional_manager_id)
    return franchises[0] if franchises else None
