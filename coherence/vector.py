# coherence/vector.py
"""
Portais Coherence Vector — v1.0.0

The user's well-being state across seven life dimensions plus one
"conscious alignment" scalar (alinhamentoPAC).

Each dimension carries two independent axes:
- coerencia: harmony / flow (0-100)
- dissonancia: conflict / chaos (0-100)

They are NOT complements. High/high is ambivalence, low/low is apathy.

Every numeric field is clamped to [0, 100] on every write.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Tuple


# =============================================================================
# CONSTANTS
# =============================================================================

MIN_VALUE = 0.0
MAX_VALUE = 100.0

FIELD_COERENCIA = "coerencia"
FIELD_DISSONANCIA = "dissonancia"
FIELDS = (FIELD_COERENCIA, FIELD_DISSONANCIA)

PAC_KEY = "alinhamentoPAC"


class Dimension(str, Enum):
    """The seven life dimensions, in their fixed iteration order."""
    PROPOSITO = "proposito"
    MENTAL = "mental"
    RELACIONAL = "relacional"
    EMOCIONAL = "emocional"
    SOMATICO = "somatico"
    ETICO_ACAO = "eticoAcao"
    RECURSOS = "recursos"

    @property
    def label(self) -> str:
        return DIMENSION_LABELS[self]


# Enum definition order is the iteration order used everywhere
DIMENSIONS: Tuple[Dimension, ...] = tuple(Dimension)

DIMENSION_LABELS: Dict[Dimension, str] = {
    Dimension.PROPOSITO: "Propósito",
    Dimension.MENTAL: "Mental",
    Dimension.RELACIONAL: "Relacional",
    Dimension.EMOCIONAL: "Emocional",
    Dimension.SOMATICO: "Somático",
    Dimension.ETICO_ACAO: "Ético-Ação",
    Dimension.RECURSOS: "Recursos",
}


def clamp(value: float, min_val: float = MIN_VALUE, max_val: float = MAX_VALUE) -> float:
    """Clamp value into [min_val, max_val]."""
    return max(min_val, min(max_val, value))


def _as_number(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return number if math.isfinite(number) else default


# =============================================================================
# DIMENSION STATE
# =============================================================================

@dataclass
class DimensionState:
    """Harmony and conflict readings for one dimension."""
    coerencia: float = 50.0
    dissonancia: float = 50.0

    def __post_init__(self) -> None:
        self.coerencia = clamp(self.coerencia)
        self.dissonancia = clamp(self.dissonancia)

    def get(self, field_name: str) -> float:
        if field_name not in FIELDS:
            raise KeyError(field_name)
        return getattr(self, field_name)

    def set(self, field_name: str, value: float) -> None:
        """Write a field, clamped."""
        if field_name not in FIELDS:
            raise KeyError(field_name)
        setattr(self, field_name, clamp(value))

    def adjust(self, field_name: str, delta: float) -> None:
        """Clamped addition."""
        self.set(field_name, self.get(field_name) + delta)

    def to_dict(self) -> Dict[str, float]:
        return {
            FIELD_COERENCIA: self.coerencia,
            FIELD_DISSONANCIA: self.dissonancia,
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        fallback: Optional["DimensionState"] = None,
    ) -> "DimensionState":
        fallback = fallback or cls()
        return cls(
            coerencia=_as_number(data.get(FIELD_COERENCIA), fallback.coerencia),
            dissonancia=_as_number(data.get(FIELD_DISSONANCIA), fallback.dissonancia),
        )


# =============================================================================
# COHERENCE VECTOR
# =============================================================================

@dataclass
class CoherenceVector:
    """
    The full coherence state.

    Attributes:
        alinhamento_pac: Principle of Conscious Action alignment (0-100)
        dimensions: One DimensionState per Dimension
    """
    alinhamento_pac: float = 70.0
    dimensions: Dict[Dimension, DimensionState] = field(
        default_factory=lambda: {dim: DimensionState() for dim in DIMENSIONS}
    )

    def __post_init__(self) -> None:
        self.alinhamento_pac = clamp(self.alinhamento_pac)
        for dim in DIMENSIONS:
            self.dimensions.setdefault(dim, DimensionState())

    def __getitem__(self, dim: Dimension) -> DimensionState:
        return self.dimensions[Dimension(dim)]

    def items(self) -> Iterator[Tuple[Dimension, DimensionState]]:
        """Iterate dimensions in fixed order."""
        for dim in DIMENSIONS:
            yield dim, self.dimensions[dim]

    def set_pac(self, value: float) -> None:
        self.alinhamento_pac = clamp(value)

    def copy(self) -> "CoherenceVector":
        """Deep copy."""
        return CoherenceVector(
            alinhamento_pac=self.alinhamento_pac,
            dimensions={
                dim: DimensionState(state.coerencia, state.dissonancia)
                for dim, state in self.items()
            },
        )

    def clamped(self) -> "CoherenceVector":
        """Return a copy with every field forced into [0, 100]."""
        # DimensionState clamps in __post_init__, so a copy is enough
        return self.copy()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {PAC_KEY: self.alinhamento_pac}
        for dim, state in self.items():
            data[dim.value] = state.to_dict()
        return data

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        fallback: Optional["CoherenceVector"] = None,
    ) -> "CoherenceVector":
        """
        Build a vector from its wire form.

        Missing or non-numeric fields are taken from `fallback`
        (the seed vector when no fallback is given).
        """
        fallback = fallback or seed_vector()
        dimensions = {}
        for dim in DIMENSIONS:
            raw = data.get(dim.value)
            if isinstance(raw, dict):
                dimensions[dim] = DimensionState.from_dict(raw, fallback[dim])
            else:
                previous = fallback[dim]
                dimensions[dim] = DimensionState(previous.coerencia, previous.dissonancia)
        return cls(
            alinhamento_pac=_as_number(data.get(PAC_KEY), fallback.alinhamento_pac),
            dimensions=dimensions,
        )


# =============================================================================
# SEED
# =============================================================================

SEED_VALUES: Dict[Dimension, Tuple[float, float]] = {
    Dimension.PROPOSITO: (60, 30),
    Dimension.MENTAL: (75, 40),
    Dimension.RELACIONAL: (65, 35),
    Dimension.EMOCIONAL: (50, 50),
    Dimension.SOMATICO: (70, 20),
    Dimension.ETICO_ACAO: (80, 10),
    Dimension.RECURSOS: (55, 60),
}

SEED_PAC = 70


def seed_vector() -> CoherenceVector:
    """The vector every new user starts with."""
    return CoherenceVector(
        alinhamento_pac=SEED_PAC,
        dimensions={
            dim: DimensionState(coerencia=c, dissonancia=d)
            for dim, (c, d) in SEED_VALUES.items()
        },
    )


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    "Dimension",
    "DIMENSIONS",
    "DIMENSION_LABELS",
    "FIELD_COERENCIA",
    "FIELD_DISSONANCIA",
    "DimensionState",
    "CoherenceVector",
    "clamp",
    "seed_vector",
]
