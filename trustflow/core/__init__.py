"""
Core utilities: the error taxonomy shared by the calculus, ledger, scheduler and API.
"""

from trustflow.core.exceptions import (
    AgentNotFoundError,
    EmptyGraphError,
    ExternalServiceError,
    InvariantViolation,
    TrustflowError,
    ValidationError,
)

__all__ = [
    "AgentNotFoundError",
    "EmptyGraphError",
    "ExternalServiceError",
    "InvariantViolation",
    "TrustflowError",
    "ValidationError",
]
