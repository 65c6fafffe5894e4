"""
Prototype categorizer: feature vector -> probability distribution over categories.

Each category owns a fixed prototype in feature space. Logits are the negative
squared Euclidean distance to each prototype divided by a fixed temperature;
a numerically stable softmax turns them into probabilities. The hard assignment
is the argmax, ties broken by the lowest category id.

Low-evidence agents land in the Unverified category because its prototype sits at
high uncertainty and zero evidence volume; there is no special-casing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

import numpy as np

from trustflow.analysis_engine.features import FEATURE_DIM, FEATURE_NAMES, FeatureVector
from trustflow.core.exceptions import ValidationError
from trustflow.trustflow_logging import get_logger

logger = get_logger(__name__)

DEFAULT_TEMPERATURE = 0.1
PROBABILITY_TOLERANCE = 1e-9

CATEGORY_STEWARD = 0
CATEGORY_RELIABLE = 1
CATEGORY_CONTROVERSIAL = 2
CATEGORY_HIGH_RISK = 3
CATEGORY_UNVERIFIED = 4


@dataclass(frozen=True)
class CategoryLabel:
    """Human-facing label metadata for a category."""

    handle: str
    description: str
    guidance: str | None = None
    tag: str = "slate"
    """Presentation tag for the render layer (colour family)."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "handle": self.handle,
            "description": self.description,
            "guidance": self.guidance,
            "tag": self.tag,
        }


@dataclass(frozen=True)
class Category:
    """A category: stable id, prototype vector (FEATURE_NAMES order), label metadata."""

    id: int
    prototype: tuple[float, ...]
    label: CategoryLabel

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "prototype": dict(zip(FEATURE_NAMES, self.prototype)),
            "label": self.label.to_dict(),
        }


#                       b     d     u     vol   cent  clust rec   volat hyper
DEFAULT_CATEGORIES: tuple[Category, ...] = (
    Category(
        CATEGORY_STEWARD,
        (0.95, 0.02, 0.03, 0.90, 0.80, 0.45, 0.90, 0.05, 0.55),
        CategoryLabel(
            "Ecosystem Steward",
            "High volume of positive evidence with negligible defects. Trust anchor.",
            "Safe to route critical interactions through.",
            "emerald",
        ),
    ),
    Category(
        CATEGORY_RELIABLE,
        (0.80, 0.08, 0.12, 0.35, 0.45, 0.30, 0.70, 0.20, 0.35),
        CategoryLabel(
            "Reliable Operator",
            "Consistent positive performance with minor or justified exceptions.",
            "Suitable for routine interactions.",
            "teal",
        ),
    ),
    Category(
        CATEGORY_CONTROVERSIAL,
        (0.45, 0.45, 0.10, 0.55, 0.60, 0.30, 0.75, 0.90, 0.40),
        CategoryLabel(
            "Controversial Figure",
            "Significant evidence exists, but it is deeply polarized.",
            "Review context before relying on this agent.",
            "amber",
        ),
    ),
    Category(
        CATEGORY_HIGH_RISK,
        (0.15, 0.70, 0.15, 0.30, 0.30, 0.20, 0.50, 0.35, 0.20),
        CategoryLabel(
            "High-Risk Actor",
            "History of negative outcomes. Interaction discouraged.",
            "Avoid or require additional guarantees.",
            "red",
        ),
    ),
    Category(
        CATEGORY_UNVERIFIED,
        (0.05, 0.05, 0.90, 0.00, 0.30, 0.00, 0.50, 0.00, 0.30),
        CategoryLabel(
            "Unverified Participant",
            "Insufficient evidence or activity to form a reliable reputation.",
            "Gather more evidence before trusting.",
            "slate",
        ),
    ),
)


@dataclass(frozen=True)
class Classification:
    """Result of classify(): hard assignment plus the full distribution."""

    category_id: int
    probabilities: tuple[float, ...]

    @property
    def confidence(self) -> float:
        return self.probabilities[self.category_id]

    def to_dict(self) -> dict[str, Any]:
        return {"category_id": self.category_id, "probabilities": list(self.probabilities)}


@dataclass(frozen=True)
class Assignment:
    """One agent's classification together with the features it was computed from."""

    agent_id: str
    category_id: int
    probabilities: tuple[float, ...]
    features: FeatureVector

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "category_id": self.category_id,
            "probabilities": list(self.probabilities),
            "features": self.features.to_dict(),
        }


def softmax(logits: np.ndarray) -> np.ndarray:
    """Max-shifted softmax; stable for large-magnitude logits."""
    shifted = logits - np.max(logits)
    exps = np.exp(shifted)
    return exps / np.sum(exps)


@dataclass(eq=False)
class PrototypeCategorizer:
    """Fixed set of labelled prototypes with temperature-scaled softmax."""

    categories: Sequence[Category] = DEFAULT_CATEGORIES
    temperature: float = DEFAULT_TEMPERATURE
    _prototypes: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.categories:
            raise ValidationError("categorizer needs at least one category")
        if self.temperature <= 0:
            raise ValidationError(f"temperature must be positive, got {self.temperature!r}")
        ids = [c.id for c in self.categories]
        if sorted(ids) != list(range(len(ids))):
            raise ValidationError(f"category ids must be 0..K-1, got {ids}")
        ordered = sorted(self.categories, key=lambda c: c.id)
        for c in ordered:
            if len(c.prototype) != FEATURE_DIM:
                raise ValidationError(
                    f"prototype {c.id} has dimension {len(c.prototype)}, expected {FEATURE_DIM}"
                )
        self.categories = tuple(ordered)
        self._prototypes = np.asarray([c.prototype for c in ordered], dtype=np.float64)

    @property
    def category_count(self) -> int:
        return len(self.categories)

    @property
    def input_dim(self) -> int:
        return FEATURE_DIM

    def category(self, category_id: int) -> Category:
        return self.categories[category_id]

    def _as_array(self, vector: FeatureVector | Sequence[float] | np.ndarray) -> np.ndarray:
        if isinstance(vector, FeatureVector):
            x = vector.to_array()
        else:
            x = np.asarray(vector, dtype=np.float64)
        if x.ndim != 1 or x.shape[0] != FEATURE_DIM:
            raise ValidationError(f"feature vector dimension mismatch: expected {FEATURE_DIM}, got {x.shape}")
        if not np.all(np.isfinite(x)):
            raise ValidationError("feature vector contains non-finite values")
        return x

    def predict(self, vector: FeatureVector | Sequence[float] | np.ndarray) -> np.ndarray:
        """Probability vector over categories (sums to 1)."""
        x = self._as_array(vector)
        sq_dist = np.sum((self._prototypes - x) ** 2, axis=1)
        return softmax(-sq_dist / self.temperature)

    def classify(self, vector: FeatureVector | Sequence[float] | np.ndarray) -> Classification:
        """Distribution plus argmax; np.argmax returns the first (lowest id) maximum."""
        probs = self.predict(vector)
        category_id = int(np.argmax(probs))
        return Classification(category_id=category_id, probabilities=tuple(float(p) for p in probs))

    def assign(self, features: FeatureVector) -> Assignment:
        result = self.classify(features)
        return Assignment(
            agent_id=features.agent_id,
            category_id=result.category_id,
            probabilities=result.probabilities,
            features=features,
        )
