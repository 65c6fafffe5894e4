"""
trustflow: evidence-based trust simulation engine.

Runs a long-lived, in-memory multi-agent simulation: agents transact,
outcomes accumulate as (r, s) evidence on directed edges, evidence is
turned into subjective-logic opinions, ages over time, and is categorized
into stable labels. Modular architecture with clear separation between
the calculus, the ledger, the categorizer, the scheduler and the layout.
"""

__version__ = "0.1.0"
