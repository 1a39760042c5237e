# coherence/activity_log.py
"""
Portais Activity Log — v1.0.0

Append-only, newest-first history of everything the ledger processed,
plus read-only projections for charts and summaries.

- ActivityLogEntry: immutable record (activity + id, timestamp, points,
  vector snapshot AFTER the entry)
- prepend_entries(): newest-first insert with a hard cap
- entries_in_window(): (timestamp, score) pairs since a cutoff, oldest first
- progress_summary(): period statistics (7d / 30d)
- prune_oldest(): drop the oldest ~20% of any newest-first collection
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from coherence.activities import Activity, ActivityType
from coherence.gamification import DAY_MS, MAX_LOG_ENTRIES
from coherence.scoring import compute_score
from coherence.vector import CoherenceVector


# =============================================================================
# CONSTANTS
# =============================================================================

PRUNE_FRACTION = 0.2
PRUNE_MIN_LENGTH = 10           # collections this short are never pruned

SUMMARY_PERIODS = {
    "7d": 7,
    "30d": 30,
}


# =============================================================================
# LOG ENTRY
# =============================================================================

@dataclass(frozen=True)
class ActivityLogEntry:
    """A processed activity. Never mutated after creation."""
    id: str
    timestamp: int
    type: ActivityType
    agent_id: str
    data: Dict[str, Any]
    points_gained: int
    vector_snapshot: CoherenceVector

    @classmethod
    def create(
        cls,
        activity: Activity,
        *,
        entry_id: str,
        timestamp: int,
        points_gained: int,
        vector_snapshot: CoherenceVector,
    ) -> "ActivityLogEntry":
        return cls(
            id=entry_id,
            timestamp=timestamp,
            type=activity.type,
            agent_id=activity.agent_id,
            data=dict(activity.data),
            points_gained=points_gained,
            vector_snapshot=vector_snapshot.copy(),
        )

    @property
    def tool_id(self) -> Optional[str]:
        if self.type != ActivityType.TOOL_USAGE:
            return None
        return self.data.get("toolId")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "type": self.type.value,
            "agentId": self.agent_id,
            "data": self.data,
            "pointsGained": self.points_gained,
            "vectorSnapshot": self.vector_snapshot.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActivityLogEntry":
        return cls(
            id=str(data.get("id", "")),
            timestamp=int(data.get("timestamp", 0)),
            type=ActivityType(data.get("type")),
            agent_id=data.get("agentId", "guide"),
            data=dict(data.get("data") or {}),
            points_gained=int(data.get("pointsGained", 0)),
            vector_snapshot=CoherenceVector.from_dict(data.get("vectorSnapshot") or {}),
        )


def prepend_entries(
    log: Sequence[ActivityLogEntry],
    new_entries: Iterable[ActivityLogEntry],
    max_entries: int = MAX_LOG_ENTRIES,
) -> List[ActivityLogEntry]:
    """
    Return a new log with `new_entries` placed at the head, in the order
    given (each one goes in front of the previous), truncated to `max_entries`.
    """
    result = list(log)
    for entry in new_entries:
        result.insert(0, entry)
    return result[:max_entries]


# =============================================================================
# PROJECTIONS
# =============================================================================

@dataclass(frozen=True)
class ScorePoint:
    timestamp: int
    score: int

    def to_dict(self) -> Dict[str, int]:
        return {"timestamp": self.timestamp, "score": self.score}


def entries_in_window(log: Sequence[ActivityLogEntry], since_timestamp: int) -> List[ScorePoint]:
    """
    Score evolution since `since_timestamp`, oldest first.

    The log itself is newest-first; this re-sorts for charting.
    """
    relevant = [entry for entry in log if entry.timestamp >= since_timestamp]
    relevant.sort(key=lambda e: e.timestamp)
    return [ScorePoint(e.timestamp, compute_score(e.vector_snapshot)) for e in relevant]


@dataclass
class ProgressSummary:
    """Statistics for one summary period."""
    period: str
    start_timestamp: int
    activity_count: int
    first_score: int
    last_score: int
    most_used_tools: List[Tuple[str, int]] = field(default_factory=list)
    total_points: int = 0

    @property
    def score_change(self) -> int:
        return self.last_score - self.first_score

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "startTimestamp": self.start_timestamp,
            "activityCount": self.activity_count,
            "firstScore": self.first_score,
            "lastScore": self.last_score,
            "scoreChange": self.score_change,
            "mostUsedTools": [{"toolId": t, "count": c} for t, c in self.most_used_tools],
            "totalPoints": self.total_points,
        }


def period_start(period: str, now: int) -> int:
    """
    Cutoff timestamp for a named period.

    Raises:
        ValueError: unknown period
    """
    if period not in SUMMARY_PERIODS:
        raise ValueError(f"Unknown period: {period}. Supported: {', '.join(SUMMARY_PERIODS)}")
    return now - SUMMARY_PERIODS[period] * DAY_MS


def progress_summary(
    log: Sequence[ActivityLogEntry],
    period: str,
    now: int,
    top_n: int = 3,
) -> Optional[ProgressSummary]:
    """
    Summarize the user's evolution over `period`.

    Returns None when the period holds fewer than two entries.
    """
    start = period_start(period, now)
    relevant = sorted(
        (entry for entry in log if entry.timestamp >= start),
        key=lambda e: e.timestamp,
    )
    if len(relevant) < 2:
        return None

    tool_counts = Counter(
        entry.tool_id for entry in relevant
        if entry.type == ActivityType.TOOL_USAGE and entry.tool_id
    )

    return ProgressSummary(
        period=period,
        start_timestamp=start,
        activity_count=len(relevant),
        first_score=compute_score(relevant[0].vector_snapshot),
        last_score=compute_score(relevant[-1].vector_snapshot),
        most_used_tools=tool_counts.most_common(top_n),
        total_points=sum(entry.points_gained for entry in relevant),
    )


# =============================================================================
# STORAGE PRESSURE
# =============================================================================

def prune_oldest(
    items: Sequence[Any],
    fraction: float = PRUNE_FRACTION,
    min_length: int = PRUNE_MIN_LENGTH,
) -> List[Any]:
    """
    Drop the oldest `fraction` (rounded up) of a newest-first collection.

    Collections with `min_length` items or fewer are returned unchanged.
    """
    items = list(items)
    if len(items) <= min_length:
        return items
    remove = math.ceil(len(items) * fraction)
    return items[:len(items) - remove]


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    "ActivityLogEntry",
    "ScorePoint",
    "ProgressSummary",
    "prepend_entries",
    "entries_in_window",
    "period_start",
    "progress_summary",
    "prune_oldest",
    "SUMMARY_PERIODS",
]
