#!/usr/bin/env python3
"""
Portais Gamification Ledger Tests — v1.0.0

Tests for:
- Combo window and coherence paths
- Level-ups (including bonus-driven ones)
- Quest completion
- Streak transitions (same day / next day / gap)
- Write-once achievements
- Log cap and ordering
- Snapshot semantics (input state untouched)
- System-only activity types
"""

import unittest
from datetime import datetime
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from coherence.activities import Activity, ActivityType, ToolId
from coherence.gamification import compute_level, get_points_to_next_level
from coherence.ledger import apply_activity
from coherence.notifications import NotificationKind
from coherence.quests import CoherenceQuest
from coherence.scoring import MentorCategory
from coherence.state import ActiveCombo, CoherenceState
from coherence.vector import CoherenceVector, Dimension, DimensionState, DIMENSIONS


MINUTE = 60 * 1000


def local_ms(year, month, day, hour=10, minute=0):
    return int(datetime(year, month, day, hour, minute).timestamp() * 1000)


def tool(tool_id, result=None):
    return Activity.tool_usage(tool_id, result)


class RecordingNotifier:
    def __init__(self):
        self.calls = []

    def __call__(self, kind, message):
        self.calls.append((kind, message))

    def kinds(self):
        return [kind for kind, _ in self.calls]

    def messages(self, prefix):
        return [message for _, message in self.calls if message.startswith(prefix)]


class LedgerTestCase(unittest.TestCase):

    def setUp(self):
        self.now = local_ms(2025, 3, 10, 10, 0)
        self.notify = RecordingNotifier()

    def apply(self, state, activity, now=None):
        return apply_activity(state, activity, now or self.now, notify=self.notify)


class TestBasics(LedgerTestCase):
    """Test the basic apply pipeline."""

    def test_first_activity(self):
        """Test the first activity logs, credits and starts the streak."""
        state, entries = self.apply(CoherenceState(), tool(ToolId.MEDITATION))
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].id, f"activity-{self.now}")
        self.assertEqual(entries[0].points_gained, 15)
        self.assertEqual(state.coherence_points, 15)
        self.assertEqual(state.coherence_streak, 1)
        self.assertEqual(state.last_activity_timestamp, self.now)
        self.assertEqual(state.activity_log[0].vector_snapshot.to_dict(), state.vector.to_dict())

    def test_input_state_untouched(self):
        """Test the input snapshot is never mutated."""
        original = CoherenceState()
        self.apply(original, tool(ToolId.MEDITATION))
        self.assertEqual(original.coherence_points, 0)
        self.assertEqual(original.activity_log, [])
        self.assertIsNone(original.last_activity_timestamp)
        self.assertEqual(original.vector[Dimension.EMOCIONAL].coerencia, 50)

    def test_points_never_decrease(self):
        """Test points are monotonic across mixed activities."""
        state = CoherenceState()
        activities = [
            tool(ToolId.MEDITATION),
            Activity.chat_session(MentorCategory.HEALTH, 2),
            tool(ToolId.VERBAL_FREQUENCY_ANALYSIS, {"coerencia_score": 1}),
            tool(ToolId.WELLNESS_VISUALIZER, {"vector": {"alinhamentoPAC": 0}}),
            Activity(type=ActivityType.TOOL_USAGE, data={"toolId": "unknown"}),
        ]
        previous = 0
        for i, activity in enumerate(activities):
            state, _ = self.apply(state, activity, self.now + i * MINUTE)
            self.assertGreaterEqual(state.coherence_points, previous)
            previous = state.coherence_points


class TestSystemActivities(LedgerTestCase):
    """Test that system-generated types cannot be submitted."""

    def test_system_types_rejected(self):
        """Test level_up, streak_maintained and combo_achieved raise ValueError."""
        start = CoherenceState(coherence_points=40)
        payloads = [
            {"type": "level_up", "data": {"newLevel": 4}},
            {"type": "streak_maintained", "data": {"streakCount": 30}},
            {"type": "combo_achieved", "data": {"comboName": "Falso"}},
        ]
        for payload in payloads:
            with self.assertRaises(ValueError):
                self.apply(start, Activity.from_dict(payload))
        self.assertEqual(start.coherence_points, 40)
        self.assertEqual(start.activity_log, [])
        self.assertEqual(self.notify.calls, [])


class TestCombos(LedgerTestCase):
    """Test coherence path combos."""

    def test_combo_inside_window(self):
        """Test a path tool inside the window earns the combo bonus."""
        state, _ = self.apply(CoherenceState(), tool(ToolId.MEDITATION))
        later = self.now + 5 * MINUTE
        state, entries = self.apply(state, tool(ToolId.THERAPEUTIC_JOURNAL), later)

        self.assertEqual(state.total_combos, 1)
        self.assertEqual([e.type for e in entries],
                         [ActivityType.TOOL_USAGE, ActivityType.COMBO_ACHIEVED])
        combo_entry = entries[1]
        self.assertEqual(combo_entry.id, f"combo-{later}")
        self.assertEqual(combo_entry.timestamp, later + 1)
        self.assertEqual(combo_entry.points_gained, 25)
        self.assertEqual(combo_entry.data["comboName"], "Prática → Integração")
        # 15 + 18 + 25
        self.assertEqual(state.coherence_points, 58)
        self.assertEqual(entries[0].points_gained, 43)
        self.assertEqual(state.activity_log[0].id, combo_entry.id)
        self.assertIn(NotificationKind.COMBO, self.notify.kinds())

    def test_combo_window_is_exclusive(self):
        """Test exactly fifteen minutes is outside the window."""
        state, _ = self.apply(CoherenceState(), tool(ToolId.MEDITATION))
        state, entries = self.apply(state, tool(ToolId.THERAPEUTIC_JOURNAL), self.now + 15 * MINUTE)
        self.assertEqual(state.total_combos, 0)
        self.assertEqual(len(entries), 1)

    def test_tool_outside_path(self):
        """Test a tool off the path starts a new combo pointer."""
        state, _ = self.apply(CoherenceState(), tool(ToolId.MEDITATION))
        state, _ = self.apply(state, tool(ToolId.DOSH_DIAGNOSIS), self.now + MINUTE)
        self.assertEqual(state.total_combos, 0)
        self.assertEqual(state.active_combo.last_tool_id, ToolId.DOSH_DIAGNOSIS)

    def test_tool_without_paths_clears_combo(self):
        """Test a tool with no outgoing paths clears the combo."""
        state, _ = self.apply(CoherenceState(), tool(ToolId.MEDITATION))
        state, _ = self.apply(state, tool(ToolId.RISK_CALCULATOR), self.now + MINUTE)
        self.assertIsNone(state.active_combo)

    def test_chat_keeps_combo(self):
        """Test chat sessions leave the combo pointer alone."""
        state, _ = self.apply(CoherenceState(), tool(ToolId.MEDITATION))
        state, _ = self.apply(state, Activity.chat_session(MentorCategory.COHERENCE, 10), self.now + MINUTE)
        self.assertEqual(state.active_combo, ActiveCombo(ToolId.MEDITATION, self.now))


class TestLevels(LedgerTestCase):
    """Test level thresholds and level-up entries."""

    def test_level_table(self):
        """Test points map to the highest reached level."""
        self.assertEqual(compute_level(0), 0)
        self.assertEqual(compute_level(99), 0)
        self.assertEqual(compute_level(100), 1)
        self.assertEqual(compute_level(250), 2)
        self.assertEqual(compute_level(999), 3)
        self.assertEqual(compute_level(1000), 4)
        self.assertEqual(get_points_to_next_level(999), 1)
        self.assertEqual(get_points_to_next_level(5000), 0)

    def test_level_up(self):
        """Test crossing a threshold logs a level_up entry."""
        state, entries = self.apply(CoherenceState(coherence_points=95), tool(ToolId.MEDITATION))
        self.assertEqual(state.coherence_level, 1)
        level_entry = entries[-1]
        self.assertEqual(level_entry.type, ActivityType.LEVEL_UP)
        self.assertEqual(level_entry.id, f"levelup-{self.now}")
        self.assertEqual(level_entry.timestamp, self.now + 2)
        self.assertEqual(level_entry.points_gained, 0)
        self.assertEqual(level_entry.data["levelName"], "Praticante Focado")
        self.assertEqual(self.notify.messages("Nível Avançado"), ["Nível Avançado: Praticante Focado!"])

    def test_level_can_jump(self):
        """Test skipping a level yields one entry for the final level."""
        state, entries = self.apply(CoherenceState(coherence_points=240), tool(ToolId.MEDITATION))
        self.assertEqual(state.coherence_level, 2)
        levelups = [e for e in entries if e.type == ActivityType.LEVEL_UP]
        self.assertEqual(len(levelups), 1)
        self.assertEqual(levelups[0].data["newLevel"], 2)

    def test_no_level_up_below_threshold(self):
        """Test no entry below the next threshold."""
        state, entries = self.apply(CoherenceState(coherence_points=10), tool(ToolId.MEDITATION))
        self.assertEqual(state.coherence_level, 0)
        self.assertEqual(len(entries), 1)
        self.assertEqual(self.notify.messages("Nível Avançado"), [])

    def test_streak_bonus_can_level_up(self):
        """Test the streak bonus alone can cross a threshold."""
        yesterday = self.now - 24 * 60 * MINUTE
        start = CoherenceState(
            coherence_points=80, coherence_streak=9, last_activity_timestamp=yesterday,
        )
        state, entries = self.apply(start, tool(ToolId.MEDITATION))
        # 80 + 15 = 95, streak 10 -> +20 = 115
        self.assertEqual(state.coherence_points, 115)
        self.assertEqual(state.coherence_level, 1)
        self.assertEqual([e.type for e in entries], [
            ActivityType.TOOL_USAGE, ActivityType.LEVEL_UP, ActivityType.STREAK_MAINTAINED,
        ])
        self.assertEqual(state.activity_log[0].type, ActivityType.STREAK_MAINTAINED)

    def test_base_and_streak_each_cross_a_level(self):
        """Test one entry and one notification when both point sources level up."""
        yesterday = self.now - 24 * 60 * MINUTE
        start = CoherenceState(
            coherence_points=90, coherence_streak=72, last_activity_timestamp=yesterday,
        )
        state, entries = self.apply(start, tool(ToolId.MEDITATION))
        # 90 + 15 = 105 (level 1), streak 73 -> +146 = 251 (level 2)
        self.assertEqual(state.coherence_points, 251)
        self.assertEqual(state.coherence_level, 2)
        levelups = [e for e in entries if e.type == ActivityType.LEVEL_UP]
        self.assertEqual(len(levelups), 1)
        self.assertEqual(levelups[0].data["newLevel"], 2)
        self.assertEqual([e.type for e in entries], [
            ActivityType.TOOL_USAGE, ActivityType.LEVEL_UP, ActivityType.STREAK_MAINTAINED,
        ])
        self.assertEqual(self.notify.messages("Nível Avançado"), ["Nível Avançado: Cultivador da Paz!"])


class TestQuests(LedgerTestCase):
    """Test quest completion."""

    def make_quest(self, target):
        return CoherenceQuest(
            id="quest-1",
            title="Respire",
            description="Medite por cinco minutos.",
            target_tool=target,
            target_dimension=Dimension.EMOCIONAL,
        )

    def test_matching_tool_completes_quest(self):
        """Test using the target tool completes the quest."""
        start = CoherenceState(active_quest=self.make_quest(ToolId.MEDITATION))
        state, _ = self.apply(start, tool(ToolId.MEDITATION))
        self.assertIsNone(state.active_quest)
        self.assertEqual(len(state.completed_quests), 1)
        done = state.completed_quests[0]
        self.assertTrue(done.is_completed)
        self.assertEqual(done.completion_timestamp, self.now)
        self.assertIn("first_quest", state.unlocked_achievements)
        self.assertIn(NotificationKind.SUCCESS, self.notify.kinds())
        # the original snapshot's quest is untouched
        self.assertFalse(start.active_quest.is_completed)

    def test_other_tool_leaves_quest(self):
        """Test other tools leave the quest active."""
        start = CoherenceState(active_quest=self.make_quest(ToolId.ROUTINE_ALIGNER))
        state, _ = self.apply(start, tool(ToolId.MEDITATION))
        self.assertIsNotNone(state.active_quest)
        self.assertEqual(state.completed_quests, [])

    def test_chat_never_completes_quest(self):
        """Test chat sessions never complete quests."""
        start = CoherenceState(active_quest=self.make_quest(ToolId.MEDITATION))
        state, _ = self.apply(start, Activity.chat_session(MentorCategory.COHERENCE, 10))
        self.assertIsNotNone(state.active_quest)


class TestStreaks(LedgerTestCase):
    """Test daily streak transitions."""

    def state_with_last(self, last, streak=3):
        return CoherenceState(coherence_streak=streak, last_activity_timestamp=last)

    def test_same_day_keeps_streak(self):
        """Test a second activity on the same day changes nothing."""
        earlier = local_ms(2025, 3, 10, 8, 0)
        state, entries = self.apply(self.state_with_last(earlier), tool(ToolId.MEDITATION))
        self.assertEqual(state.coherence_streak, 3)
        self.assertEqual(len(entries), 1)
        self.assertEqual(state.last_activity_timestamp, self.now)

    def test_next_day_extends_streak(self):
        """Test the next day extends the streak and pays the bonus."""
        yesterday = local_ms(2025, 3, 9, 10, 0)
        state, entries = self.apply(self.state_with_last(yesterday), tool(ToolId.MEDITATION))
        self.assertEqual(state.coherence_streak, 4)
        streak_entry = entries[-1]
        self.assertEqual(streak_entry.type, ActivityType.STREAK_MAINTAINED)
        self.assertEqual(streak_entry.id, f"streak-{self.now}")
        self.assertEqual(streak_entry.timestamp, self.now + 3)
        self.assertEqual(streak_entry.points_gained, 8)
        self.assertEqual(streak_entry.data["streakCount"], 4)
        self.assertEqual(state.coherence_points, 15 + 8)
        self.assertIn(NotificationKind.INFO, self.notify.kinds())

    def test_two_calendar_days_inside_window(self):
        """Test a gap under 48 hours across two dates still counts."""
        last = local_ms(2025, 3, 8, 23, 0)
        now = local_ms(2025, 3, 10, 1, 0)
        state, _ = self.apply(self.state_with_last(last), tool(ToolId.MEDITATION), now)
        self.assertEqual(state.coherence_streak, 4)

    def test_gap_resets_streak(self):
        """Test a long gap resets the streak to one without a bonus."""
        last = local_ms(2025, 3, 7, 10, 0)
        state, entries = self.apply(self.state_with_last(last, streak=5), tool(ToolId.MEDITATION))
        self.assertEqual(state.coherence_streak, 1)
        self.assertEqual(len(entries), 1)
        self.assertEqual(state.coherence_points, 15)


class TestAchievements(LedgerTestCase):
    """Test write-once achievements."""

    def test_high_score_unlocks(self):
        """Test a score of 90+ unlocks high_phi_90."""
        vector = CoherenceVector(
            alinhamento_pac=100,
            dimensions={dim: DimensionState(100, 0) for dim in DIMENSIONS},
        )
        state, _ = self.apply(CoherenceState(vector=vector), tool(ToolId.MEDITATION))
        self.assertEqual(state.unlocked_achievements["high_phi_90"], self.now)

    def test_achievements_are_write_once(self):
        """Test an unlocked achievement keeps its first timestamp."""
        vector = CoherenceVector(
            alinhamento_pac=100,
            dimensions={dim: DimensionState(100, 0) for dim in DIMENSIONS},
        )
        start = CoherenceState(vector=vector, unlocked_achievements={"high_phi_90": 1})
        state, _ = self.apply(start, tool(ToolId.MEDITATION))
        self.assertEqual(state.unlocked_achievements["high_phi_90"], 1)
        self.assertNotIn(NotificationKind.ACHIEVEMENT, self.notify.kinds())

    def test_combo_master(self):
        """Test the tenth combo unlocks combo_master_10."""
        start = CoherenceState(
            total_combos=9,
            active_combo=ActiveCombo(ToolId.MEDITATION, self.now - MINUTE),
        )
        state, _ = self.apply(start, tool(ToolId.THERAPEUTIC_JOURNAL))
        self.assertEqual(state.total_combos, 10)
        self.assertIn("combo_master_10", state.unlocked_achievements)

    def test_seven_day_streak(self):
        """Test a seven day streak unlocks streak_7."""
        yesterday = local_ms(2025, 3, 9, 10, 0)
        start = CoherenceState(coherence_streak=6, last_activity_timestamp=yesterday)
        state, _ = self.apply(start, tool(ToolId.MEDITATION))
        self.assertIn("streak_7", state.unlocked_achievements)


class TestLogCap(LedgerTestCase):
    """Test the activity log cap."""

    def test_log_capped_at_100_newest_first(self):
        """Test the log keeps the newest 100 entries in order."""
        state = CoherenceState()
        start = local_ms(2025, 3, 10, 8, 0)
        last = None
        for i in range(150):
            last = start + i * MINUTE
            state, _ = self.apply(state, Activity.chat_session(MentorCategory.COHERENCE, 6), last)

        self.assertEqual(len(state.activity_log), 100)
        self.assertEqual(state.activity_log[0].id, f"activity-{last}")
        timestamps = [e.timestamp for e in state.activity_log]
        self.assertEqual(timestamps, sorted(timestamps, reverse=True))


if __name__ == "__main__":
    unittest.main()
