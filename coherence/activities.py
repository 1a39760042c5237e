# coherence/activities.py
"""
Portais Activities — v1.0.0

An Activity is one discrete thing the user (or the system) did:

- chat_session:      a mentor conversation finished (agent id + message count)
- tool_usage:        a tool produced a result (tool id + opaque result payload)
- level_up:          system event, log only
- streak_maintained: system event, log only
- combo_achieved:    system event, log only

Wire form (shared with the persisted activity log):
    {"type": "tool_usage", "agentId": "coherence",
     "data": {"toolId": "meditation", "result": {...}}}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from coherence.scoring import MentorCategory


# =============================================================================
# TYPES
# =============================================================================

class ActivityType(str, Enum):
    CHAT_SESSION = "chat_session"
    TOOL_USAGE = "tool_usage"
    LEVEL_UP = "level_up"
    STREAK_MAINTAINED = "streak_maintained"
    COMBO_ACHIEVED = "combo_achieved"


SYSTEM_ACTIVITY_TYPES = frozenset({
    ActivityType.LEVEL_UP,
    ActivityType.STREAK_MAINTAINED,
    ActivityType.COMBO_ACHIEVED,
})


class ToolId(str, Enum):
    MEDITATION = "meditation"
    CONTENT_ANALYZER = "content_analyzer"
    GUIDED_PRAYER = "guided_prayer"
    PRAYER_PILLS = "prayer_pills"
    DISSONANCE_ANALYZER = "dissonance_analyzer"
    THERAPEUTIC_JOURNAL = "therapeutic_journal"
    QUANTUM_SIMULATOR = "quantum_simulator"
    PHI_FRONTIER_RADAR = "phi_frontier_radar"
    DOSH_DIAGNOSIS = "dosh_diagnosis"
    WELLNESS_VISUALIZER = "wellness_visualizer"
    BELIEF_RESIGNIFIER = "belief_resignifier"
    EMOTIONAL_SPENDING_MAP = "emotional_spending_map"
    RISK_CALCULATOR = "risk_calculator"
    ARCHETYPE_JOURNEY = "archetype_journey"
    VERBAL_FREQUENCY_ANALYSIS = "verbal_frequency_analysis"
    ROUTINE_ALIGNER = "routine_aligner"
    SCHEDULED_SESSION = "scheduled_session"
    VOICE_THERAPEUTIC_JOURNAL = "voice_therapeutic_journal"


_TOOLS_BY_VALUE: Dict[str, ToolId] = {tool.value: tool for tool in ToolId}


def parse_tool_id(value: Any) -> Optional[ToolId]:
    """Resolve a tool id string. Unknown ids return None (never raise)."""
    if isinstance(value, ToolId):
        return value
    if isinstance(value, str):
        return _TOOLS_BY_VALUE.get(value)
    return None


def parse_category(value: Any) -> Optional[MentorCategory]:
    if isinstance(value, MentorCategory):
        return value
    try:
        return MentorCategory(value)
    except ValueError:
        return None


# =============================================================================
# ACTIVITY
# =============================================================================

@dataclass
class Activity:
    """
    A submitted activity, before the ledger turns it into a log entry.

    Attributes:
        type: Which variant this is
        agent_id: Mentor category (chat) or owning agent (tools); GUIDE for system events
        data: Variant payload. chat_session -> {"messageCount": int};
              tool_usage -> {"toolId": str, "result": Any}
    """
    type: ActivityType
    agent_id: str = MentorCategory.GUIDE.value
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def chat_session(cls, agent_id: str, message_count: int) -> "Activity":
        return cls(
            type=ActivityType.CHAT_SESSION,
            agent_id=str(getattr(agent_id, "value", agent_id)),
            data={"messageCount": int(message_count)},
        )

    @classmethod
    def tool_usage(
        cls,
        tool_id: str,
        result: Any = None,
        agent_id: str = MentorCategory.GUIDE.value,
    ) -> "Activity":
        return cls(
            type=ActivityType.TOOL_USAGE,
            agent_id=str(getattr(agent_id, "value", agent_id)),
            data={"toolId": str(getattr(tool_id, "value", tool_id)), "result": result},
        )

    @property
    def tool_id(self) -> Optional[str]:
        """Tool id for tool_usage activities, None otherwise."""
        if self.type != ActivityType.TOOL_USAGE:
            return None
        return self.data.get("toolId")

    @property
    def message_count(self) -> int:
        """
        Message count for chat sessions.

        Accepts either an explicit "messageCount" or the raw "messages" list.
        """
        if "messageCount" in self.data:
            try:
                return int(self.data["messageCount"])
            except (TypeError, ValueError, OverflowError):
                return 0
        messages = self.data.get("messages")
        if isinstance(messages, list):
            return len(messages)
        return 0

    @property
    def is_system(self) -> bool:
        """level_up / streak_maintained / combo_achieved are ledger-generated."""
        return self.type in SYSTEM_ACTIVITY_TYPES

    @property
    def category(self) -> Optional[MentorCategory]:
        return parse_category(self.agent_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "agentId": self.agent_id,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Activity":
        """
        Parse the wire form.

        Raises:
            ValueError: unknown activity type
        """
        return cls(
            type=ActivityType(data.get("type")),
            agent_id=data.get("agentId", MentorCategory.GUIDE.value),
            data=dict(data.get("data") or {}),
        )


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    "ActivityType",
    "SYSTEM_ACTIVITY_TYPES",
    "ToolId",
    "Activity",
    "parse_tool_id",
    "parse_category",
]
