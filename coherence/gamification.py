# coherence/gamification.py
"""
Portais Gamification Rules — v1.0.0

The tuning tables the ledger runs on:
- Coherence levels (point thresholds)
- Achievements (write-once milestones)
- Coherence paths (tool -> valid next tools, for combos)
- Windows, bonuses and caps

Everything here is data. GamificationRules bundles it so a deployment (or
a test) can swap in its own numbers without touching the ledger.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Optional, Sequence, Tuple

from coherence.activities import ToolId


# =============================================================================
# CONSTANTS
# =============================================================================

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

COMBO_WINDOW_MS = 15 * MINUTE_MS
COMBO_BONUS_POINTS = 25
STREAK_WINDOW_MS = 2 * DAY_MS
STREAK_POINTS_PER_DAY = 2
MAX_LOG_ENTRIES = 100
MAX_TOOL_HISTORY = 50


# =============================================================================
# LEVELS
# =============================================================================

@dataclass(frozen=True)
class CoherenceLevel:
    level: int
    name: str
    min_points: int

    def to_dict(self) -> Dict[str, object]:
        return {"level": self.level, "name": self.name, "minPoints": self.min_points}


COHERENCE_LEVELS: Tuple[CoherenceLevel, ...] = (
    CoherenceLevel(0, "Iniciante da Harmonia", 0),
    CoherenceLevel(1, "Praticante Focado", 100),
    CoherenceLevel(2, "Cultivador da Paz", 250),
    CoherenceLevel(3, "Arquiteto do Eu", 500),
    CoherenceLevel(4, "Mestre da Coerência", 1000),
)


def compute_level(points: int, levels: Sequence[CoherenceLevel] = COHERENCE_LEVELS) -> int:
    """Highest level index whose min_points <= points (0 if none)."""
    level = 0
    for entry in sorted(levels, key=lambda l: l.min_points):
        if points >= entry.min_points:
            level = entry.level
    return level


def get_level(level: int, levels: Sequence[CoherenceLevel] = COHERENCE_LEVELS) -> Optional[CoherenceLevel]:
    for entry in levels:
        if entry.level == level:
            return entry
    return None


def get_points_to_next_level(points: int, levels: Sequence[CoherenceLevel] = COHERENCE_LEVELS) -> int:
    """Points still needed for the next level (0 at max level)."""
    for entry in sorted(levels, key=lambda l: l.min_points):
        if entry.min_points > points:
            return entry.min_points - points
    return 0


# =============================================================================
# ACHIEVEMENTS
# =============================================================================

class AchievementId(str, Enum):
    FIRST_QUEST = "first_quest"
    STREAK_7 = "streak_7"
    COMBO_MASTER_10 = "combo_master_10"
    HIGH_PHI_90 = "high_phi_90"


@dataclass(frozen=True)
class Achievement:
    id: AchievementId
    name: str
    description: str


ACHIEVEMENTS: Dict[AchievementId, Achievement] = {
    AchievementId.FIRST_QUEST: Achievement(
        AchievementId.FIRST_QUEST,
        "Primeira Missão",
        "Você completou sua primeira Missão de Coerência!",
    ),
    AchievementId.STREAK_7: Achievement(
        AchievementId.STREAK_7,
        "Ritmo Consistente",
        "Manteve uma sequência de prática por 7 dias seguidos.",
    ),
    AchievementId.COMBO_MASTER_10: Achievement(
        AchievementId.COMBO_MASTER_10,
        "Mestre dos Fluxos",
        "Executou 10 Fluxos de Coerência (combos).",
    ),
    AchievementId.HIGH_PHI_90: Achievement(
        AchievementId.HIGH_PHI_90,
        "Pico de Coerência",
        "Alcançou uma pontuação de Coerência (Φ) de 90 ou mais.",
    ),
}


@dataclass(frozen=True)
class AchievementThresholds:
    completed_quests: int = 1
    streak: int = 7
    total_combos: int = 10
    score: int = 90


# =============================================================================
# COHERENCE PATHS (COMBOS)
# =============================================================================

@dataclass(frozen=True)
class CoherencePath:
    """Valid follow-up tools after a given tool, and the path's display name."""
    next_tools: FrozenSet[ToolId]
    name: str


def _path(name: str, *tools: ToolId) -> CoherencePath:
    return CoherencePath(frozenset(tools), name)


_PRACTICE_TO_INTEGRATION = _path("Prática → Integração", ToolId.THERAPEUTIC_JOURNAL)
_REFLECTION_TO_PRACTICE = _path(
    "Reflexão → Prática Contemplativa", ToolId.MEDITATION, ToolId.GUIDED_PRAYER
)

COHERENCE_PATHS: Dict[ToolId, CoherencePath] = {
    ToolId.DOSH_DIAGNOSIS: _path("Diagnóstico → Ação", ToolId.ROUTINE_ALIGNER),
    ToolId.DISSONANCE_ANALYZER: _path(
        "Insight → Ressignificação", ToolId.BELIEF_RESIGNIFIER, ToolId.MEDITATION
    ),
    ToolId.EMOTIONAL_SPENDING_MAP: _path(
        "Padrão → Transformação",
        ToolId.BELIEF_RESIGNIFIER, ToolId.MEDITATION, ToolId.THERAPEUTIC_JOURNAL,
    ),
    ToolId.MEDITATION: _PRACTICE_TO_INTEGRATION,
    ToolId.GUIDED_PRAYER: _PRACTICE_TO_INTEGRATION,
    ToolId.PRAYER_PILLS: _PRACTICE_TO_INTEGRATION,
    ToolId.VERBAL_FREQUENCY_ANALYSIS: _path(
        "Frequência → Causa Raiz",
        ToolId.DISSONANCE_ANALYZER, ToolId.ARCHETYPE_JOURNEY,
        ToolId.MEDITATION, ToolId.THERAPEUTIC_JOURNAL,
    ),
    ToolId.ARCHETYPE_JOURNEY: _path(
        "Jornada → Reflexão", ToolId.THERAPEUTIC_JOURNAL, ToolId.MEDITATION
    ),
    ToolId.THERAPEUTIC_JOURNAL: _REFLECTION_TO_PRACTICE,
    ToolId.VOICE_THERAPEUTIC_JOURNAL: _REFLECTION_TO_PRACTICE,
}


# =============================================================================
# RULES BUNDLE
# =============================================================================

@dataclass(frozen=True)
class GamificationRules:
    """All tuning knobs the ledger reads."""
    levels: Tuple[CoherenceLevel, ...] = COHERENCE_LEVELS
    paths: Dict[ToolId, CoherencePath] = field(default_factory=lambda: dict(COHERENCE_PATHS))
    combo_window_ms: int = COMBO_WINDOW_MS
    combo_bonus_points: int = COMBO_BONUS_POINTS
    streak_window_ms: int = STREAK_WINDOW_MS
    streak_points_per_day: int = STREAK_POINTS_PER_DAY
    max_log_entries: int = MAX_LOG_ENTRIES
    max_tool_history: int = MAX_TOOL_HISTORY
    thresholds: AchievementThresholds = AchievementThresholds()

    def level_for(self, points: int) -> int:
        return compute_level(points, self.levels)

    def level_info(self, level: int) -> Optional[CoherenceLevel]:
        return get_level(level, self.levels)


DEFAULT_RULES = GamificationRules()


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    "CoherenceLevel",
    "COHERENCE_LEVELS",
    "compute_level",
    "get_level",
    "get_points_to_next_level",
    "AchievementId",
    "Achievement",
    "ACHIEVEMENTS",
    "AchievementThresholds",
    "CoherencePath",
    "COHERENCE_PATHS",
    "GamificationRules",
    "DEFAULT_RULES",
    "COMBO_WINDOW_MS",
    "COMBO_BONUS_POINTS",
    "STREAK_WINDOW_MS",
    "MAX_LOG_ENTRIES",
    "MAX_TOOL_HISTORY",
    "MINUTE_MS",
    "HOUR_MS",
    "DAY_MS",
]
