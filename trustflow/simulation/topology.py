"""
Fixed initial topology: seven agents, no edges.

reset() restores exactly this set, with fresh copies every time.
"""

from __future__ import annotations

from trustflow.simulation.models import Agent, Role

# (id, label, role, reliability, x, y)
INITIAL_TOPOLOGY: tuple[tuple[str, str, Role, float, float, float], ...] = (
    ("N1", "Alpha", Role.VALIDATOR, 0.98, 400.0, 100.0),
    ("N2", "Beta", Role.TRADER, 0.90, 200.0, 250.0),
    ("N3", "Gamma", Role.TRADER, 0.85, 600.0, 250.0),
    ("N4", "Delta", Role.OBSERVER, 0.95, 400.0, 400.0),
    ("N5", "Epsilon", Role.SYBIL, 0.20, 150.0, 400.0),
    ("N6", "Zeta", Role.SYBIL, 0.30, 650.0, 400.0),
    ("N7", "Eta", Role.TRADER, 0.70, 400.0, 250.0),
)


def initial_agents() -> list[Agent]:
    """Fresh Agent objects for the initial topology (at rest, no flash)."""
    return [
        Agent(id=aid, label=label, role=role, reliability=rel, x=x, y=y)
        for aid, label, role, rel, x, y in INITIAL_TOPOLOGY
    ]
