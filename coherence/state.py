# coherence/state.py
"""
Portais Coherence State — v1.0.0

Two shapes of the same aggregate:

- CoherenceState: the runtime snapshot the ledger works on. Score and
  recommendation are derived on read; coherence_level is kept in step with
  points by the ledger; is_loading_quest is transient.
- PersistedState: the strict subset that goes to the blob store. Derived
  and transient fields are never stored as truth: rehydrate() recomputes
  them, since the rules that derive them may change between versions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from coherence.activity_log import ActivityLogEntry
from coherence.activities import ToolId, parse_tool_id
from coherence.gamification import DEFAULT_RULES, GamificationRules
from coherence.quests import CoherenceQuest
from coherence.scoring import Recommendation, compute_score, recommend
from coherence.vector import CoherenceVector, seed_vector

logger = logging.getLogger("portais.state")

PERSISTED_VERSION = 1


# =============================================================================
# ACTIVE COMBO
# =============================================================================

@dataclass(frozen=True)
class ActiveCombo:
    """Pointer to the last tool in a potential coherence path."""
    last_tool_id: ToolId
    start_time: int

    def to_dict(self) -> Dict[str, Any]:
        return {"lastToolId": self.last_tool_id.value, "startTime": self.start_time}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["ActiveCombo"]:
        tool = parse_tool_id(data.get("lastToolId"))
        if tool is None:
            return None
        return cls(last_tool_id=tool, start_time=int(data.get("startTime", 0)))


# =============================================================================
# RUNTIME STATE
# =============================================================================

@dataclass
class CoherenceState:
    vector: CoherenceVector = field(default_factory=seed_vector)
    activity_log: List[ActivityLogEntry] = field(default_factory=list)
    coherence_points: int = 0
    coherence_level: int = 0
    coherence_streak: int = 0
    last_activity_timestamp: Optional[int] = None
    active_combo: Optional[ActiveCombo] = None
    total_combos: int = 0
    unlocked_achievements: Dict[str, int] = field(default_factory=dict)
    active_quest: Optional[CoherenceQuest] = None
    completed_quests: List[CoherenceQuest] = field(default_factory=list)
    tool_histories: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)

    # Transient - never persisted
    is_loading_quest: bool = False

    @property
    def score(self) -> int:
        return compute_score(self.vector)

    @property
    def recommendation(self) -> Recommendation:
        return recommend(self.vector)

    def copy(self) -> "CoherenceState":
        """
        Snapshot copy. Log entries are immutable and shared; everything
        mutable is duplicated.
        """
        return CoherenceState(
            vector=self.vector.copy(),
            activity_log=list(self.activity_log),
            coherence_points=self.coherence_points,
            coherence_level=self.coherence_level,
            coherence_streak=self.coherence_streak,
            last_activity_timestamp=self.last_activity_timestamp,
            active_combo=self.active_combo,
            total_combos=self.total_combos,
            unlocked_achievements=dict(self.unlocked_achievements),
            active_quest=self.active_quest.copy() if self.active_quest else None,
            completed_quests=[q.copy() for q in self.completed_quests],
            tool_histories={k: list(v) for k, v in self.tool_histories.items()},
            is_loading_quest=self.is_loading_quest,
        )

    def to_persisted(self) -> "PersistedState":
        return PersistedState(
            vector=self.vector.copy(),
            activity_log=list(self.activity_log),
            coherence_points=self.coherence_points,
            coherence_level=self.coherence_level,
            coherence_streak=self.coherence_streak,
            last_activity_timestamp=self.last_activity_timestamp,
            active_combo=self.active_combo,
            total_combos=self.total_combos,
            unlocked_achievements=dict(self.unlocked_achievements),
            active_quest=self.active_quest.copy() if self.active_quest else None,
            completed_quests=[q.copy() for q in self.completed_quests],
            tool_histories={k: list(v) for k, v in self.tool_histories.items()},
        )

    def to_dict(self) -> Dict[str, Any]:
        """Full read model (persisted fields plus derived ones)."""
        data = self.to_persisted().to_dict()
        data["ucs"] = self.score
        data["recommendation"] = self.recommendation.to_dict()
        data["isLoadingQuest"] = self.is_loading_quest
        return data


# =============================================================================
# PERSISTED SUBSET
# =============================================================================

@dataclass
class PersistedState:
    """
    What survives a restart.

    coherence_level is stored for older readers but is recomputed on load.
    """
    vector: CoherenceVector = field(default_factory=seed_vector)
    activity_log: List[ActivityLogEntry] = field(default_factory=list)
    coherence_points: int = 0
    coherence_level: int = 0
    coherence_streak: int = 0
    last_activity_timestamp: Optional[int] = None
    active_combo: Optional[ActiveCombo] = None
    total_combos: int = 0
    unlocked_achievements: Dict[str, int] = field(default_factory=dict)
    active_quest: Optional[CoherenceQuest] = None
    completed_quests: List[CoherenceQuest] = field(default_factory=list)
    tool_histories: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": PERSISTED_VERSION,
            "coherenceVector": self.vector.to_dict(),
            "activityLog": [e.to_dict() for e in self.activity_log],
            "coherencePoints": self.coherence_points,
            "coherenceLevel": self.coherence_level,
            "coherenceStreak": self.coherence_streak,
            "lastActivityTimestamp": self.last_activity_timestamp,
            "activeCombo": self.active_combo.to_dict() if self.active_combo else None,
            "totalCombos": self.total_combos,
            "unlockedAchievements": dict(self.unlocked_achievements),
            "activeQuest": self.active_quest.to_dict() if self.active_quest else None,
            "completedQuests": [q.to_dict() for q in self.completed_quests],
            "toolHistories": {k: list(v) for k, v in self.tool_histories.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PersistedState":
        """
        Parse the stored blob field by field.

        An unreadable field falls back to its default on its own; unreadable
        log entries and quests are skipped. The rest of the blob survives.
        """
        log = []
        for raw in _as_list(data.get("activityLog")):
            try:
                log.append(ActivityLogEntry.from_dict(raw))
            except (ValueError, TypeError, AttributeError, OverflowError) as e:
                logger.warning("Skipping unreadable log entry: %s", e)

        vector_raw = data.get("coherenceVector")
        combo_raw = data.get("activeCombo")

        return cls(
            vector=CoherenceVector.from_dict(vector_raw if isinstance(vector_raw, dict) else {}),
            activity_log=log,
            coherence_points=max(0, _as_int(data.get("coherencePoints"), 0, "coherencePoints")),
            coherence_level=_as_int(data.get("coherenceLevel"), 0, "coherenceLevel"),
            coherence_streak=max(0, _as_int(data.get("coherenceStreak"), 0, "coherenceStreak")),
            last_activity_timestamp=_as_int(
                data.get("lastActivityTimestamp"), None, "lastActivityTimestamp"
            ),
            active_combo=_parse_combo(combo_raw),
            total_combos=max(0, _as_int(data.get("totalCombos"), 0, "totalCombos")),
            unlocked_achievements=_parse_achievements(data.get("unlockedAchievements")),
            active_quest=_parse_quest(data.get("activeQuest")),
            completed_quests=[
                quest for quest in map(_parse_quest, _as_list(data.get("completedQuests")))
                if quest is not None
            ],
            tool_histories=_parse_tool_histories(data.get("toolHistories")),
        )


# =============================================================================
# FIELD PARSERS
# =============================================================================

def _as_int(value: Any, default: Optional[int], name: str) -> Optional[int]:
    if value is None:
        return default
    if isinstance(value, bool):
        logger.warning("Ignoring unreadable %s: %r", name, value)
        return default
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        logger.warning("Ignoring unreadable %s: %r", name, value)
        return default


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _parse_combo(raw: Any) -> Optional[ActiveCombo]:
    if not isinstance(raw, dict):
        return None
    try:
        return ActiveCombo.from_dict(raw)
    except (TypeError, ValueError, OverflowError) as e:
        logger.warning("Dropping unreadable active combo: %s", e)
        return None


def _parse_quest(raw: Any) -> Optional[CoherenceQuest]:
    if not isinstance(raw, dict):
        return None
    try:
        return CoherenceQuest.from_dict(raw)
    except (TypeError, ValueError, AttributeError) as e:
        logger.warning("Dropping unreadable quest: %s", e)
        return None


def _parse_achievements(raw: Any) -> Dict[str, int]:
    achievements = {}
    if not isinstance(raw, dict):
        return achievements
    for key, value in raw.items():
        unlocked_at = _as_int(value, None, f"unlockedAchievements.{key}")
        if unlocked_at is not None:
            achievements[str(key)] = unlocked_at
    return achievements


def _parse_tool_histories(raw: Any) -> Dict[str, List[Dict[str, Any]]]:
    if not isinstance(raw, dict):
        return {}
    return {
        str(name): [entry for entry in entries if isinstance(entry, dict)]
        for name, entries in raw.items()
        if isinstance(entries, list)
    }


def rehydrate(
    persisted: PersistedState,
    now: int,
    rules: GamificationRules = DEFAULT_RULES,
) -> CoherenceState:
    """
    Build runtime state from the persisted subset.

    - coherence_level is recomputed from points (level table may have changed)
    - an active combo whose window already closed is dropped
    - transient fields start fresh
    - score and recommendation are derived from the vector on read
    """
    combo = persisted.active_combo
    if combo and now - combo.start_time > rules.combo_window_ms:
        combo = None

    return CoherenceState(
        vector=persisted.vector.clamped(),
        activity_log=list(persisted.activity_log)[:rules.max_log_entries],
        coherence_points=persisted.coherence_points,
        coherence_level=rules.level_for(persisted.coherence_points),
        coherence_streak=persisted.coherence_streak,
        last_activity_timestamp=persisted.last_activity_timestamp,
        active_combo=combo,
        total_combos=persisted.total_combos,
        unlocked_achievements=dict(persisted.unlocked_achievements),
        active_quest=persisted.active_quest,
        completed_quests=list(persisted.completed_quests),
        tool_histories={k: list(v) for k, v in persisted.tool_histories.items()},
        is_loading_quest=False,
    )


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    "ActiveCombo",
    "CoherenceState",
    "PersistedState",
    "rehydrate",
    "PERSISTED_VERSION",
]
