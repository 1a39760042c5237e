# coherence/orchestrator.py
"""
Portais Orchestrator — v1.0.0

Pure function from (activity, current vector) to (new vector, points gained).

Three kinds of updates:
- Replacement: the wellness visualizer returns a full vector from an
  external analysis. It replaces the current one outright.
- Flat nudges: chats and most tools apply small clamped deltas from
  static tables (CHAT_CATEGORY_DIMENSIONS, TOOL_EFFECTS).
- Recency-weighted blend: score-bearing tools (1-10 score in their result)
  pull the emotional dimension toward score*10 with weight 0.2.

Unknown tools are a silent no-op. The tables are data: pass your own to
orchestrate() to retune without touching the algorithm.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from coherence.activities import Activity, ActivityType, ToolId, parse_tool_id
from coherence.scoring import MentorCategory, round_half_up
from coherence.vector import (
    FIELD_COERENCIA as C,
    FIELD_DISSONANCIA as D,
    CoherenceVector,
    Dimension,
    clamp,
)


# =============================================================================
# CONSTANTS
# =============================================================================

CHAT_MIN_MESSAGES = 4          # sessions with <= this many messages are ignored
CHAT_BOOST_CAP = 3
CHAT_POINTS_PER_BOOST = 2

VISUALIZER_POINTS = 10

SCORE_MIN = 1.0
SCORE_MAX = 10.0
BLEND_KEEP = 0.8               # weight of the previous value
BLEND_NEW = 0.2                # weight of the score-derived target
VOICE_JOURNAL_BONUS = 10


# =============================================================================
# EFFECT MODEL
# =============================================================================

@dataclass(frozen=True)
class Adjustment:
    """One clamped delta on one field of one dimension."""
    dimension: Dimension
    field: str
    delta: float


@dataclass(frozen=True)
class ToolEffect:
    """Fixed points plus a list of adjustments."""
    points: int
    adjustments: Tuple[Adjustment, ...] = ()


def _effect(points: int, *adjustments: Tuple[Dimension, str, float]) -> ToolEffect:
    return ToolEffect(points, tuple(Adjustment(dim, f, delta) for dim, f, delta in adjustments))


PRO = Dimension.PROPOSITO
MEN = Dimension.MENTAL
EMO = Dimension.EMOCIONAL
SOM = Dimension.SOMATICO
ETI = Dimension.ETICO_ACAO
REC = Dimension.RECURSOS

_CONTEMPLATIVE = _effect(15, (EMO, C, 5), (MEN, C, 3), (EMO, D, -4), (MEN, D, -2))
_ANALYTIC = _effect(20, (MEN, C, 6), (EMO, C, 4), (EMO, D, -5), (MEN, D, -3))
_EXPLORATORY = _effect(15, (PRO, C, 5), (MEN, C, 5))
_SOMATIC = _effect(15, (SOM, C, 5), (SOM, D, -2))

TOOL_EFFECTS: Dict[ToolId, ToolEffect] = {
    ToolId.MEDITATION: _CONTEMPLATIVE,
    ToolId.GUIDED_PRAYER: _CONTEMPLATIVE,
    ToolId.PRAYER_PILLS: _CONTEMPLATIVE,
    ToolId.DISSONANCE_ANALYZER: _ANALYTIC,
    ToolId.CONTENT_ANALYZER: _ANALYTIC,
    ToolId.THERAPEUTIC_JOURNAL: _effect(18, (EMO, C, 4), (MEN, C, 4), (EMO, D, -3)),
    ToolId.ARCHETYPE_JOURNEY: _effect(22, (PRO, C, 6), (MEN, C, 3)),
    ToolId.QUANTUM_SIMULATOR: _EXPLORATORY,
    ToolId.PHI_FRONTIER_RADAR: _EXPLORATORY,
    ToolId.DOSH_DIAGNOSIS: _SOMATIC,
    ToolId.ROUTINE_ALIGNER: _SOMATIC,
    ToolId.EMOTIONAL_SPENDING_MAP: _effect(12, (REC, C, 4), (EMO, C, 3), (REC, D, -3)),
    ToolId.BELIEF_RESIGNIFIER: _effect(16, (MEN, C, 5), (REC, C, 4), (MEN, D, -4)),
    ToolId.RISK_CALCULATOR: _effect(10, (MEN, C, 6), (REC, C, 2)),
    ToolId.SCHEDULED_SESSION: _effect(5, (ETI, C, 2), (MEN, C, 1)),
}

CHAT_CATEGORY_DIMENSIONS: Dict[MentorCategory, Tuple[Dimension, ...]] = {
    MentorCategory.COHERENCE: (EMO,),
    MentorCategory.SELF_KNOWLEDGE: (PRO, MEN),
    MentorCategory.HEALTH: (SOM,),
    MentorCategory.EMOTIONAL_FINANCE: (REC,),
}


@dataclass
class OrchestrationResult:
    new_vector: CoherenceVector
    points_gained: int = 0
    applied: List[Adjustment] = field(default_factory=list)


# =============================================================================
# HELPERS
# =============================================================================

def apply_adjustments(vector: CoherenceVector, adjustments: Tuple[Adjustment, ...]) -> None:
    """Apply deltas in place, each write clamped."""
    for adj in adjustments:
        vector[adj.dimension].adjust(adj.field, adj.delta)


def chat_boost(message_count: int) -> int:
    """
    Diminishing credit for chat length.

    boost = min((messages - 2) // 4, 3); zero for sessions of <= 4 messages.
    """
    if message_count <= CHAT_MIN_MESSAGES:
        return 0
    return min((message_count - 2) // 4, CHAT_BOOST_CAP)


def extract_coherence_score(result: Any, *path: str) -> Optional[float]:
    """
    Pull the embedded 1-10 coherence score out of a tool result.

    Walks `path` into nested dicts. Returns None when the score is missing or
    not numeric; otherwise the value clamped into [1, 10].
    """
    node = result
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    if isinstance(node, bool) or not isinstance(node, (int, float)):
        return None
    try:
        score = float(node)
    except OverflowError:
        return None
    if not math.isfinite(score):
        return None
    return clamp(score, SCORE_MIN, SCORE_MAX)


def blend_emotional(vector: CoherenceVector, score: float, offset: float = 0.0) -> None:
    """
    Recency-weighted update of the emotional dimension.

    coerencia   <- old*0.8 + (score*10)*0.2 + offset
    dissonancia <- old*0.8 + (100 - score*10)*0.2 - offset
    """
    state = vector[EMO]
    target = score * 10
    state.set(C, state.coerencia * BLEND_KEEP + target * BLEND_NEW + offset)
    state.set(D, state.dissonancia * BLEND_KEEP + (100 - target) * BLEND_NEW - offset)


# =============================================================================
# ORCHESTRATE
# =============================================================================

def orchestrate(
    activity: Activity,
    current_vector: CoherenceVector,
    tool_effects: Optional[Mapping[ToolId, ToolEffect]] = None,
    chat_dimensions: Optional[Mapping[MentorCategory, Tuple[Dimension, ...]]] = None,
) -> OrchestrationResult:
    """
    Compute the vector after `activity` and the points it earns.

    `current_vector` is never mutated.
    """
    tool_effects = TOOL_EFFECTS if tool_effects is None else tool_effects
    chat_dimensions = CHAT_CATEGORY_DIMENSIONS if chat_dimensions is None else chat_dimensions

    if activity.type == ActivityType.TOOL_USAGE:
        tool = parse_tool_id(activity.tool_id)
        if tool == ToolId.WELLNESS_VISUALIZER:
            return _replace_vector(activity, current_vector)

    new_vector = current_vector.copy()
    result = OrchestrationResult(new_vector=new_vector)

    if activity.type == ActivityType.CHAT_SESSION:
        _apply_chat(activity, result, chat_dimensions)
    elif activity.type == ActivityType.TOOL_USAGE:
        _apply_tool(activity, result, tool_effects)

    return result


def _replace_vector(activity: Activity, current_vector: CoherenceVector) -> OrchestrationResult:
    result = activity.data.get("result")
    raw = result.get("vector") if isinstance(result, dict) else None
    if not isinstance(raw, dict):
        return OrchestrationResult(new_vector=current_vector.copy())

    replacement = CoherenceVector.from_dict(raw, fallback=current_vector).clamped()
    return OrchestrationResult(new_vector=replacement, points_gained=VISUALIZER_POINTS)


def _apply_chat(
    activity: Activity,
    result: OrchestrationResult,
    chat_dimensions: Mapping[MentorCategory, Tuple[Dimension, ...]],
) -> None:
    boost = chat_boost(activity.message_count)
    if boost == 0:
        return

    result.points_gained += boost * CHAT_POINTS_PER_BOOST

    category = activity.category
    adjustments = tuple(
        Adjustment(dim, C, boost) for dim in chat_dimensions.get(category, ())
    )
    apply_adjustments(result.new_vector, adjustments)
    result.applied.extend(adjustments)


def _apply_tool(
    activity: Activity,
    result: OrchestrationResult,
    tool_effects: Mapping[ToolId, ToolEffect],
) -> None:
    tool = parse_tool_id(activity.tool_id)
    if tool is None:
        return

    payload = activity.data.get("result")

    if tool == ToolId.VERBAL_FREQUENCY_ANALYSIS:
        score = extract_coherence_score(payload, "result", "coerencia_score")
        if score is None:
            score = extract_coherence_score(payload, "coerencia_score")
        if score is None:
            return
        result.points_gained += round_half_up(score * 2)
        blend_emotional(result.new_vector, score)
        return

    if tool == ToolId.VOICE_THERAPEUTIC_JOURNAL:
        score = extract_coherence_score(payload, "result", "verbalFrequency", "coerencia_score")
        if score is None:
            score = extract_coherence_score(payload, "verbalFrequency", "coerencia_score")
        if score is None:
            return
        result.points_gained += round_half_up(score * 2) + VOICE_JOURNAL_BONUS
        blend_emotional(result.new_vector, score, offset=2)
        mental = (Adjustment(MEN, C, 4),)
        apply_adjustments(result.new_vector, mental)
        result.applied.extend(mental)
        return

    effect = tool_effects.get(tool)
    if effect is None:
        return

    result.points_gained += effect.points
    apply_adjustments(result.new_vector, effect.adjustments)
    result.applied.extend(effect.adjustments)


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    "Adjustment",
    "ToolEffect",
    "TOOL_EFFECTS",
    "CHAT_CATEGORY_DIMENSIONS",
    "OrchestrationResult",
    "orchestrate",
    "chat_boost",
    "extract_coherence_score",
    "apply_adjustments",
]
