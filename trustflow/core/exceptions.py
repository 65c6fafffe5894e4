"""
Application-level exceptions.

None of these is fatal to the running process: every caller degrades to
"retain last known good state". The API maps ValidationError to 400 and
AgentNotFoundError to 404.
"""

from __future__ import annotations


class TrustflowError(Exception):
    """Base class for all trustflow errors."""


class ValidationError(TrustflowError):
    """Rejected input: negative/non-finite evidence, bad reliability, bad role, wrong dimension."""


class AgentNotFoundError(ValidationError):
    """Command referenced an agent id that is not in the world."""

    def __init__(self, agent_id: str) -> None:
        super().__init__(f"unknown agent: {agent_id}")
        self.agent_id = agent_id


class InvariantViolation(TrustflowError):
    """Opinion masses do not sum to 1 (within tolerance) or fall outside [0, 1]."""


class ExternalServiceError(TrustflowError):
    """Label provider failed, timed out, or returned an unusable payload."""


class EmptyGraphError(TrustflowError):
    """Fewer than two agents: nothing can interact."""
