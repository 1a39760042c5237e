# coherence/ledger.py
"""
Portais Gamification Ledger — v1.0.0

Turns one submitted Activity into the next CoherenceState.

apply_activity() runs, in order:
1. Orchestrate (new vector + base points)
2. Combo detection against the active coherence path
3. Log the activity (+ combo entry at now+1)
4. Cap the log
5. Credit points
6. Level-up check (+ level_up entry at now+2)
7. Quest completion
8. Streak update (+ streak_maintained entry at now+3, bonus points)
9. Achievements (write-once)

The input state is never mutated; the caller swaps in the returned
snapshot. Side channels go through the `notify` callable only.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from coherence.activities import Activity, ActivityType, ToolId, parse_tool_id
from coherence.activity_log import ActivityLogEntry, prepend_entries
from coherence.gamification import (
    ACHIEVEMENTS,
    DEFAULT_RULES,
    AchievementId,
    GamificationRules,
)
from coherence.notifications import NotificationKind, Notifier, null_notifier
from coherence.orchestrator import orchestrate
from coherence.scoring import MentorCategory
from coherence.state import ActiveCombo, CoherenceState
from coherence.vector import CoherenceVector

logger = logging.getLogger("portais.ledger")

SYSTEM_AGENT = MentorCategory.GUIDE.value

COMBO_OFFSET_MS = 1
LEVEL_UP_OFFSET_MS = 2
STREAK_OFFSET_MS = 3


def _local_date(timestamp_ms: int):
    return datetime.fromtimestamp(timestamp_ms / 1000).date()


def _system_entry(
    kind: ActivityType,
    prefix: str,
    now: int,
    offset: int,
    data: dict,
    points: int,
    vector: CoherenceVector,
) -> ActivityLogEntry:
    return ActivityLogEntry.create(
        Activity(type=kind, agent_id=SYSTEM_AGENT, data=data),
        entry_id=f"{prefix}-{now}",
        timestamp=now + offset,
        points_gained=points,
        vector_snapshot=vector,
    )


# =============================================================================
# STEPS
# =============================================================================

def _check_combo(
    state: CoherenceState,
    tool: Optional[ToolId],
    now: int,
    rules: GamificationRules,
) -> Optional[str]:
    """
    Update state.active_combo for a tool usage.

    Returns the path name when the tool continues the active path inside the
    window, None otherwise.
    """
    if tool is None:
        return None

    combo_name = None
    combo = state.active_combo
    if combo is not None:
        path = rules.paths.get(combo.last_tool_id)
        elapsed = now - combo.start_time
        if path and elapsed < rules.combo_window_ms and tool in path.next_tools:
            combo_name = path.name

    state.active_combo = ActiveCombo(tool, now) if tool in rules.paths else None
    return combo_name


def _update_streak(state: CoherenceState, now: int, rules: GamificationRules) -> bool:
    """
    Advance the daily streak. Returns True when the day changed.

    Same local calendar day -> unchanged; next activity inside the streak
    window -> +1; anything else (including the first ever) -> 1.
    """
    last = state.last_activity_timestamp
    state.last_activity_timestamp = now

    if last is not None and _local_date(last) == _local_date(now):
        return False

    if last is not None and now - last < rules.streak_window_ms:
        state.coherence_streak += 1
    else:
        state.coherence_streak = 1
    return True


def _raise_level(
    state: CoherenceState,
    now: int,
    vector: CoherenceVector,
    rules: GamificationRules,
) -> Optional[ActivityLogEntry]:
    """Move the level up to match points. Returns the level_up entry, if any."""
    new_level = rules.level_for(state.coherence_points)
    if new_level <= state.coherence_level:
        return None

    state.coherence_level = new_level
    info = rules.level_info(new_level)
    level_name = info.name if info else str(new_level)
    return _system_entry(
        ActivityType.LEVEL_UP, "levelup", now, LEVEL_UP_OFFSET_MS,
        {"newLevel": new_level, "levelName": level_name},
        0, vector,
    )


def _award_achievements(
    state: CoherenceState,
    now: int,
    rules: GamificationRules,
    notify: Notifier,
) -> List[AchievementId]:
    thresholds = rules.thresholds
    earned = {
        AchievementId.FIRST_QUEST: len(state.completed_quests) >= thresholds.completed_quests,
        AchievementId.STREAK_7: state.coherence_streak >= thresholds.streak,
        AchievementId.COMBO_MASTER_10: state.total_combos >= thresholds.total_combos,
        AchievementId.HIGH_PHI_90: state.score >= thresholds.score,
    }

    unlocked = []
    for achievement_id, reached in earned.items():
        if not reached or achievement_id.value in state.unlocked_achievements:
            continue
        state.unlocked_achievements[achievement_id.value] = now
        unlocked.append(achievement_id)
        notify(
            NotificationKind.ACHIEVEMENT,
            f"Conquista Desbloqueada: {ACHIEVEMENTS[achievement_id].name}!",
        )
    return unlocked


# =============================================================================
# APPLY
# =============================================================================

def apply_activity(
    state: CoherenceState,
    activity: Activity,
    now: int,
    rules: GamificationRules = DEFAULT_RULES,
    notify: Notifier = null_notifier,
) -> Tuple[CoherenceState, List[ActivityLogEntry]]:
    """
    Process one activity.

    Args:
        state: Current snapshot (not mutated)
        activity: The submitted activity
        now: Epoch milliseconds
        rules: Tuning tables
        notify: Receives (kind, message) for noteworthy events

    Returns:
        (next state, log entries created, in insertion order)

    Raises:
        ValueError: activity is a system-generated type
    """
    if activity.is_system:
        raise ValueError(f"{activity.type.value} activities are generated by the system")

    new_state = state.copy()

    # 1. Orchestrate
    outcome = orchestrate(activity, state.vector)
    new_vector = outcome.new_vector
    points = outcome.points_gained

    # 2. Combo
    tool = parse_tool_id(activity.tool_id)
    combo_name = _check_combo(new_state, tool, now, rules)
    if combo_name:
        points += rules.combo_bonus_points
        new_state.total_combos += 1
        notify(
            NotificationKind.COMBO,
            f"Fluxo de Coerência: {combo_name}! (+{rules.combo_bonus_points} PC)",
        )

    # 3. Log
    entries = [
        ActivityLogEntry.create(
            activity,
            entry_id=f"activity-{now}",
            timestamp=now,
            points_gained=points,
            vector_snapshot=new_vector,
        )
    ]
    if combo_name:
        entries.append(_system_entry(
            ActivityType.COMBO_ACHIEVED, "combo", now, COMBO_OFFSET_MS,
            {"comboName": combo_name, "toolId": tool.value},
            rules.combo_bonus_points, new_vector,
        ))

    # 4-5. Credit (the cap is applied when entries are prepended)
    new_state.vector = new_vector
    new_state.coherence_points += points

    # 6. Level-up
    level_entry = _raise_level(new_state, now, new_vector, rules)
    if level_entry:
        entries.append(level_entry)

    # 7. Quest
    quest = new_state.active_quest
    if quest and not quest.is_completed and tool is not None and quest.target_tool == tool:
        quest.is_completed = True
        quest.completion_timestamp = now
        new_state.completed_quests.insert(0, quest)
        new_state.active_quest = None
        notify(NotificationKind.SUCCESS, f"Missão Concluída: {quest.title}!")

    # 8. Streak
    if _update_streak(new_state, now, rules) and new_state.coherence_streak > 1:
        streak = new_state.coherence_streak
        bonus = streak * rules.streak_points_per_day
        entries.append(_system_entry(
            ActivityType.STREAK_MAINTAINED, "streak", now, STREAK_OFFSET_MS,
            {"streakCount": streak},
            bonus, new_vector,
        ))
        new_state.coherence_points += bonus
        notify(NotificationKind.INFO, f"{streak} dias em sequência! (+{bonus} PC)")

        # The bonus can cross a threshold on its own
        late_level = _raise_level(new_state, now, new_vector, rules)
        if late_level:
            if level_entry:
                entries.remove(level_entry)
            entries.insert(len(entries) - 1, late_level)
            level_entry = late_level

    if level_entry:
        notify(NotificationKind.ACHIEVEMENT, f"Nível Avançado: {level_entry.data['levelName']}!")

    new_state.activity_log = prepend_entries(
        new_state.activity_log, entries, rules.max_log_entries
    )

    # 9. Achievements
    _award_achievements(new_state, now, rules, notify)

    logger.debug(
        "Applied %s at %d: +%d points (total %d, level %d, streak %d)",
        activity.type.value, now, new_state.coherence_points - state.coherence_points,
        new_state.coherence_points, new_state.coherence_level, new_state.coherence_streak,
    )
    return new_state, entries


__all__ = [
    "apply_activity",
    "COMBO_OFFSET_MS",
    "LEVEL_UP_OFFSET_MS",
    "STREAK_OFFSET_MS",
]
