"""
Evidence-based subjective logic: evidence (r, s) -> opinion (b, d, u, a).

b = r / (r + s + K), d = s / (r + s + K), u = K / (r + s + K), with K = 2.
Opinions are always derived from evidence on demand; nothing here keeps state.
Inputs are expected to be validated (non-negative, finite) by the ledger.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from trustflow.core.exceptions import InvariantViolation
from trustflow.trustflow_logging import get_logger

logger = get_logger(__name__)

# Normalization constant (prior weight / pseudocount mass)
K = 2.0
DEFAULT_BASE_RATE = 0.5
OPINION_TOLERANCE = 1e-9


@dataclass(frozen=True)
class Opinion:
    """Subjective logic opinion. b + d + u = 1, each mass in [0, 1]."""

    b: float
    """Belief mass."""
    d: float
    """Disbelief mass."""
    u: float
    """Uncertainty mass."""
    a: float = DEFAULT_BASE_RATE
    """Base rate (prior probability with no evidence)."""

    def expectation(self) -> float:
        return expected_probability(self)

    def to_dict(self) -> dict[str, Any]:
        return {"b": self.b, "d": self.d, "u": self.u, "a": self.a}


def calculate_opinion(r: float, s: float, base_rate: float = DEFAULT_BASE_RATE) -> Opinion:
    """Map evidence to an opinion. Always defined: the denominator is at least K."""
    denominator = r + s + K
    return Opinion(b=r / denominator, d=s / denominator, u=K / denominator, a=base_rate)


def expected_probability(opinion: Opinion) -> float:
    """E(w) = b + a * u."""
    return opinion.b + opinion.a * opinion.u


def vacuous_opinion(base_rate: float = DEFAULT_BASE_RATE) -> Opinion:
    return Opinion(b=0.0, d=0.0, u=1.0, a=base_rate)


def fuse_opinions(op1: Opinion, op2: Opinion) -> Opinion:
    """
    Consensus (cumulative) fusion of two independent opinions on the same proposition.

    b = (b1*u2 + b2*u1)/k, d = (d1*u2 + d2*u1)/k, u = u1*u2/k, with k = u1 + u2 - u1*u2.
    Two dogmatic opinions (u1 = u2 = 0, so k = 0) are averaged with u = 0.
    For evidence-derived opinions with the same K this equals summing the evidence.
    The base rate of the first operand is kept.
    """
    k = op1.u + op2.u - op1.u * op2.u
    if k <= 0.0:
        return Opinion(
            b=(op1.b + op2.b) / 2.0,
            d=(op1.d + op2.d) / 2.0,
            u=0.0,
            a=op1.a,
        )
    return Opinion(
        b=(op1.b * op2.u + op2.b * op1.u) / k,
        d=(op1.d * op2.u + op2.d * op1.u) / k,
        u=(op1.u * op2.u) / k,
        a=op1.a,
    )


def fuse_all(opinions: list[Opinion], base_rate: float = DEFAULT_BASE_RATE) -> Opinion:
    """Fold fuse_opinions over a list; an empty list yields the vacuous opinion."""
    result = vacuous_opinion(base_rate)
    for op in opinions:
        result = fuse_opinions(result, op)
    return result


def discount_opinion(op_ab: Opinion, op_bc: Opinion) -> Opinion:
    """
    Transitive trust: A's derived opinion about C via B.

    b = b1*b2, d = b1*d2, u = d1 + u1 + b1*u2; the base rate comes from op_bc.
    """
    return Opinion(
        b=op_ab.b * op_bc.b,
        d=op_ab.b * op_bc.d,
        u=op_ab.d + op_ab.u + op_ab.b * op_bc.u,
        a=op_bc.a,
    )


def combine_evidence(e1: tuple[float, float], e2: tuple[float, float]) -> tuple[float, float]:
    """Evidence is additive: (r1, s1) + (r2, s2) = (r1 + r2, s1 + s2)."""
    return (e1[0] + e2[0], e1[1] + e2[1])


def check_opinion(opinion: Opinion, tolerance: float = OPINION_TOLERANCE) -> None:
    """Raise InvariantViolation if b + d + u deviates from 1 or a mass leaves [0, 1]."""
    masses = (opinion.b, opinion.d, opinion.u)
    if not all(math.isfinite(m) for m in masses):
        raise InvariantViolation(f"non-finite opinion masses: {masses}")
    total = opinion.b + opinion.d + opinion.u
    if abs(total - 1.0) > tolerance:
        raise InvariantViolation(f"b+d+u = {total!r}, expected 1")
    for m in masses:
        if m < -tolerance or m > 1.0 + tolerance:
            raise InvariantViolation(f"opinion mass out of range: {m!r}")


def ensure_opinion(opinion: Opinion, r: float, s: float) -> Opinion:
    """
    Return opinion if it satisfies the invariant, else recompute it from evidence.

    Evidence is the single source of truth; a bad opinion is never trusted.
    """
    try:
        check_opinion(opinion)
        return opinion
    except InvariantViolation as e:
        logger.warning("opinion_invariant_violation", error=str(e), r=r, s=s)
        r_ok = r if math.isfinite(r) and r > 0 else 0.0
        s_ok = s if math.isfinite(s) and s > 0 else 0.0
        return calculate_opinion(r_ok, s_ok, opinion.a)
