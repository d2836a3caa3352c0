"""
Role policy table.

Each role maps to the capabilities it holds; super_admin holds them all.
Authentication happens upstream, the engine only checks the capability.
"""

from .errors import PermissionDeniedError

CAPABILITIES = [
    "generate_invoice",
    "accept_invoice",
    "escalate_invoice",
    "resolve_escalation",
    "approve_invoice",
    "reject_invoice",
    "process_payout",
    "confirm_payout",
    "assign_commission",
    "calculate_commission",
]

ROLE_CAPABILITY_MAP = {
    "super_admin": list(CAPABILITIES),
    "accounts_manager": [
        "generate_invoice",
        "resolve_escalation",
        "approve_invoice",
        "reject_invoice",
        "process_payout",
        "confirm_payout",
        "calculate_commission",
    ],
    "regional_manager": ["resolve_escalation", "approve_invoice", "reject_invoice", "calculate_commission"],
    "relationship_manager": ["calculate_commission"],
    "franchise": ["accept_invoice", "escalate_invoice", "assign_commission", "calculate_commission"],
    "agent": ["accept_invoice", "escalate_invoice", "assign_commission"],
}


def capabilities_for(role: str | None) -> list[str]:
    return ROLE_CAPABILITY_MAP.get(role or "", [])


def has_capability(role: str | None, capability: str) -> bool:
    return capability in capabilities_for(role)


def require_capability(role: str | None, capability: str) -> None:
    """Raise PermissionDeniedError unless role holds capability."""
    if capability not in CAPABILITIES:
        raise ValueError(f"Unknown capability: {capability}")
    if not has_capability(role, capability):
        raise PermissionDeniedError(f"Role '{role}' is not allowed to {capability.replace('_', ' ')}")
