# coherence/scoring.py
"""
Portais Scoring — v1.0.0

Read-only projections of a CoherenceVector:
- compute_score(): the single 0-100 coherence score (Φ)
- recommend(): the dimension with the highest dissonance and the
  mentor category responsible for it
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from coherence.vector import (
    DIMENSIONS,
    CoherenceVector,
    Dimension,
    clamp,
)


# =============================================================================
# MENTOR CATEGORIES
# =============================================================================

class MentorCategory(str, Enum):
    """Mentor (agent) categories a chat or recommendation can point to."""
    COHERENCE = "coherence"
    SELF_KNOWLEDGE = "self_knowledge"
    HEALTH = "health"
    EMOTIONAL_FINANCE = "emotional_finance"
    INVESTMENTS = "investments"
    GUIDE = "guide"


DIMENSION_MENTORS: Dict[Dimension, MentorCategory] = {
    Dimension.PROPOSITO: MentorCategory.SELF_KNOWLEDGE,
    Dimension.MENTAL: MentorCategory.SELF_KNOWLEDGE,
    Dimension.RELACIONAL: MentorCategory.COHERENCE,
    Dimension.EMOCIONAL: MentorCategory.COHERENCE,
    Dimension.SOMATICO: MentorCategory.HEALTH,
    Dimension.ETICO_ACAO: MentorCategory.COHERENCE,
    Dimension.RECURSOS: MentorCategory.EMOTIONAL_FINANCE,
}

FALLBACK_CATEGORY = MentorCategory.COHERENCE
FALLBACK_DIMENSION_NAME = "Geral"


# =============================================================================
# SCORE
# =============================================================================

def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (built-in round() is banker's)."""
    return int(math.floor(value + 0.5))


def compute_score(vector: CoherenceVector) -> int:
    """
    Compute the coherence score (Φ).

    Formula:
    net = avg(coerencia) - avg(dissonancia)
    pac_factor = (alinhamentoPAC / 100) * 0.2 + 0.9   (0.9 .. 1.1)
    score = round(clamp((net * pac_factor + 100) / 2, 0, 100))
    """
    count = len(DIMENSIONS)
    avg_coherence = sum(vector[dim].coerencia for dim in DIMENSIONS) / count
    avg_dissonance = sum(vector[dim].dissonancia for dim in DIMENSIONS) / count

    net = avg_coherence - avg_dissonance
    pac_factor = (vector.alinhamento_pac / 100) * 0.2 + 0.9

    raw = (net * pac_factor + 100) / 2
    return round_half_up(clamp(raw))


# =============================================================================
# RECOMMENDATION
# =============================================================================

@dataclass(frozen=True)
class Recommendation:
    """Where the user's attention is most needed."""
    category: MentorCategory
    dimension_name: str
    dimension: Optional[Dimension] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "agentId": self.category.value,
            "dimension": self.dimension.value if self.dimension else None,
            "dimensionName": self.dimension_name,
        }


def recommend(vector: CoherenceVector) -> Recommendation:
    """
    Pick the dimension with the strictly highest dissonance.

    Ties keep the earliest dimension in the fixed order.
    """
    highest = -1.0
    recommendation = Recommendation(FALLBACK_CATEGORY, FALLBACK_DIMENSION_NAME)

    for dim in DIMENSIONS:
        dissonance = vector[dim].dissonancia
        if dissonance > highest:
            highest = dissonance
            recommendation = Recommendation(
                category=DIMENSION_MENTORS[dim],
                dimension_name=dim.label,
                dimension=dim,
            )

    return recommendation


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    "MentorCategory",
    "DIMENSION_MENTORS",
    "Recommendation",
    "compute_score",
    "recommend",
    "round_half_up",
]
