# coherence/quests.py
"""
Portais Coherence Quests — v1.0.0

A quest is a single current goal: "use tool X to work on dimension Y".

Generation:
1. Pick the dimension with the highest dissonance
2. Ask the AI collaborator for a title/description/tool among the tools
   suited to that dimension (DIMENSION_TOOLS)
3. Anything unusable (no answer, missing fields, unknown tool) falls back to
   the default exploration quest

Completion is handled by the ledger when the target tool is used.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from coherence.activities import ToolId, parse_tool_id
from coherence.scoring import recommend
from coherence.vector import CoherenceVector, Dimension

logger = logging.getLogger("portais.quests")


# =============================================================================
# CONSTANTS
# =============================================================================

DIMENSION_TOOLS: Dict[Dimension, List[ToolId]] = {
    Dimension.PROPOSITO: [ToolId.ARCHETYPE_JOURNEY, ToolId.QUANTUM_SIMULATOR, ToolId.PHI_FRONTIER_RADAR],
    Dimension.MENTAL: [ToolId.DISSONANCE_ANALYZER, ToolId.CONTENT_ANALYZER, ToolId.MEDITATION],
    Dimension.RELACIONAL: [ToolId.THERAPEUTIC_JOURNAL, ToolId.GUIDED_PRAYER],
    Dimension.EMOCIONAL: [
        ToolId.DISSONANCE_ANALYZER, ToolId.THERAPEUTIC_JOURNAL,
        ToolId.MEDITATION, ToolId.VERBAL_FREQUENCY_ANALYSIS,
    ],
    Dimension.SOMATICO: [ToolId.DOSH_DIAGNOSIS, ToolId.ROUTINE_ALIGNER, ToolId.WELLNESS_VISUALIZER],
    Dimension.ETICO_ACAO: [ToolId.THERAPEUTIC_JOURNAL, ToolId.ARCHETYPE_JOURNEY],
    Dimension.RECURSOS: [ToolId.EMOTIONAL_SPENDING_MAP, ToolId.BELIEF_RESIGNIFIER, ToolId.RISK_CALCULATOR],
}

FALLBACK_TITLE = "Explore suas Ferramentas"
FALLBACK_DESCRIPTION = (
    "Navegue até a seção de ferramentas e escolha uma que ressoe com você agora."
)
FALLBACK_TOOL = ToolId.MEDITATION
FALLBACK_DIMENSION = Dimension.MENTAL

# (dimension, candidate tool ids) -> {"title", "description", "targetTool"} or None
QuestIdeator = Callable[[Dimension, List[str]], Optional[Dict[str, Any]]]


# =============================================================================
# PARSING
# =============================================================================

def _parse_dimension(value: Any) -> Dimension:
    """Unknown or missing dimensions fall back to the default quest dimension."""
    try:
        return Dimension(value)
    except (ValueError, TypeError):
        logger.warning("Unknown quest dimension %r, using %s", value, FALLBACK_DIMENSION.value)
        return FALLBACK_DIMENSION


def _parse_timestamp(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


# =============================================================================
# QUEST MODEL
# =============================================================================

@dataclass
class CoherenceQuest:
    id: str
    title: str
    description: str
    target_tool: ToolId
    target_dimension: Dimension
    is_completed: bool = False
    completion_timestamp: Optional[int] = None

    def copy(self) -> "CoherenceQuest":
        return CoherenceQuest(**self.__dict__)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "targetTool": self.target_tool.value,
            "targetDimension": self.target_dimension.value,
            "isCompleted": self.is_completed,
        }
        if self.completion_timestamp is not None:
            data["completionTimestamp"] = self.completion_timestamp
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CoherenceQuest":
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            target_tool=parse_tool_id(data.get("targetTool")) or FALLBACK_TOOL,
            target_dimension=_parse_dimension(data.get("targetDimension")),
            is_completed=bool(data.get("isCompleted", False)),
            completion_timestamp=_parse_timestamp(data.get("completionTimestamp")),
        )


# =============================================================================
# GENERATION
# =============================================================================

def pick_quest_dimension(vector: CoherenceVector) -> Dimension:
    """Dimension with the highest dissonance (first wins on ties)."""
    return recommend(vector).dimension or Dimension.EMOCIONAL


def build_fallback_quest(now: int) -> CoherenceQuest:
    return CoherenceQuest(
        id=f"quest-fallback-{now}",
        title=FALLBACK_TITLE,
        description=FALLBACK_DESCRIPTION,
        target_tool=FALLBACK_TOOL,
        target_dimension=FALLBACK_DIMENSION,
    )


def generate_quest(
    vector: CoherenceVector,
    now: int,
    ideate: Optional[QuestIdeator] = None,
) -> CoherenceQuest:
    """
    Generate the next quest for `vector`.

    `ideate` is the AI collaborator. Without one, or when its answer is
    unusable, the fallback quest is returned.
    """
    dimension = pick_quest_dimension(vector)
    candidates = [tool.value for tool in DIMENSION_TOOLS[dimension]]

    if ideate is None:
        return build_fallback_quest(now)

    try:
        proposal = ideate(dimension, candidates)
    except Exception as e:
        logger.error("Quest ideation failed: %s", e)
        return build_fallback_quest(now)

    if not isinstance(proposal, dict):
        logger.warning("Quest ideation returned nothing, using fallback")
        return build_fallback_quest(now)

    title = str(proposal.get("title") or "").strip()
    description = str(proposal.get("description") or "").strip()
    tool = parse_tool_id(proposal.get("targetTool"))

    if not title or not description or tool is None:
        logger.warning("Invalid quest format received: %r", proposal)
        return build_fallback_quest(now)

    return CoherenceQuest(
        id=f"quest-{now}",
        title=title,
        description=description,
        target_tool=tool,
        target_dimension=dimension,
    )


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    "CoherenceQuest",
    "DIMENSION_TOOLS",
    "QuestIdeator",
    "pick_quest_dimension",
    "build_fallback_quest",
    "generate_quest",
]
