"""
Simulation package: agents, initial topology, partner selection and shared world state.

World lives in trustflow.simulation.world; import it from there.
"""

from trustflow.simulation.models import (
    ROLE_DEFAULT_RELIABILITY,
    ROLES,
    Agent,
    HeuristicLabel,
    LogEntry,
    LogKind,
    Outcome,
    OverrideLabel,
    Pulse,
    Role,
)
from trustflow.simulation.topology import INITIAL_TOPOLOGY, initial_agents

__all__ = [
    "Agent",
    "HeuristicLabel",
    "INITIAL_TOPOLOGY",
    "LogEntry",
    "LogKind",
    "Outcome",
    "OverrideLabel",
    "Pulse",
    "ROLES",
    "ROLE_DEFAULT_RELIABILITY",
    "Role",
    "initial_agents",
]
