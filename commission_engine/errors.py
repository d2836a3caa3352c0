"""
Error Taxonomy for the Commission Engine

Every error derives from ValueError so adapters can treat the whole family
as client errors. None of these are swallowed inside the engine.
"""


class CommissionEngineError(ValueError):
    """Base class for all engine errors."""


class NotFoundError(CommissionEngineError):
    """A lead, invoice, payout or other record does not exist."""


class PreconditionError(CommissionEngineError):
    """Wrong lead status, missing bank/franchise, or unusable commission limit."""


class RuleNotFoundError(CommissionEngineError):
    """No commission rule applies. Distinct from a computed zero commission."""


class InvalidCommissionError(CommissionEngineError):
    """A required percentage is not positive or a waterfall share is <= 0."""


class DuplicateInvoiceError(CommissionEngineError):
    """An invoice already exists for the idempotency key in play."""


class InvalidStateTransition(CommissionEngineError):
    """Lifecycle operation from an incompatible status or without justification."""


class PermissionDeniedError(CommissionEngineError):
    """The acting role lacks the capability for the operation."""


class NumberingError(CommissionEngineError):
    """Numbering collisions exhausted the retry budget."""


class NumberCollision(Exception):
    """Raised by the store when an invoice/payout number is already taken.

    Retried by the engine, never surfaced to callers.
    """
