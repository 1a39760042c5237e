#!/usr/bin/env python3
"""
Portais Activity Log & Persisted State Tests — v1.0.0

Tests for:
- Windowed score history (ordering, cutoff)
- Progress summaries
- Pruning under storage pressure
- Persisted subset and rehydration rules
- Field-by-field recovery from damaged blobs
"""

import unittest
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from coherence.activities import Activity, ToolId
from coherence.activity_log import (
    ActivityLogEntry,
    entries_in_window,
    prepend_entries,
    progress_summary,
    prune_oldest,
)
from coherence.gamification import DAY_MS, MINUTE_MS
from coherence.quests import CoherenceQuest, FALLBACK_DIMENSION, build_fallback_quest
from coherence.scoring import compute_score
from coherence.state import ActiveCombo, CoherenceState, PersistedState, rehydrate
from coherence.vector import Dimension, seed_vector


NOW = 1_750_000_000_000


def make_entry(timestamp, tool_id=ToolId.MEDITATION, points=15, emotional=50):
    vector = seed_vector()
    vector[Dimension.EMOCIONAL].set("coerencia", emotional)
    return ActivityLogEntry.create(
        Activity.tool_usage(tool_id),
        entry_id=f"activity-{timestamp}",
        timestamp=timestamp,
        points_gained=points,
        vector_snapshot=vector,
    )


def newest_first(entries):
    return sorted(entries, key=lambda e: e.timestamp, reverse=True)


def saved_blob():
    state = CoherenceState(
        coherence_points=260,
        coherence_level=2,
        coherence_streak=4,
        last_activity_timestamp=NOW,
        total_combos=3,
        unlocked_achievements={"first_quest": NOW - DAY_MS},
        active_quest=build_fallback_quest(NOW),
        completed_quests=[build_fallback_quest(NOW - DAY_MS)],
        activity_log=[make_entry(NOW), make_entry(NOW - MINUTE_MS)],
        tool_histories={"therapeutic_journal": [{"text": "hoje"}]},
    )
    return state.to_persisted().to_dict()


class TestWindowedHistory(unittest.TestCase):
    """Test the windowed score history projection."""

    def test_ascending_and_filtered(self):
        """Test points come out oldest first and inside the window."""
        log = newest_first([
            make_entry(NOW - 10 * DAY_MS),
            make_entry(NOW - 2 * DAY_MS, emotional=60),
            make_entry(NOW - DAY_MS, emotional=70),
        ])
        points = entries_in_window(log, NOW - 3 * DAY_MS)
        self.assertEqual([p.timestamp for p in points], [NOW - 2 * DAY_MS, NOW - DAY_MS])
        self.assertEqual(points[1].score, compute_score(log[0].vector_snapshot))

    def test_cutoff_is_inclusive(self):
        """Test an entry exactly at the cutoff is included."""
        log = [make_entry(NOW)]
        self.assertEqual(len(entries_in_window(log, NOW)), 1)

    def test_log_not_mutated(self):
        """Test the projection leaves the log order alone."""
        log = newest_first([make_entry(NOW - MINUTE_MS), make_entry(NOW)])
        ids = [e.id for e in log]
        entries_in_window(log, 0)
        self.assertEqual([e.id for e in log], ids)

    def test_prepend_respects_cap(self):
        """Test prepending keeps newest first and honors the cap."""
        log = [make_entry(NOW - i * MINUTE_MS) for i in range(5)]
        result = prepend_entries(log, [make_entry(NOW + 1), make_entry(NOW + 2)], max_entries=6)
        self.assertEqual(len(result), 6)
        self.assertEqual(result[0].timestamp, NOW + 2)
        self.assertEqual(result[1].timestamp, NOW + 1)


class TestProgressSummary(unittest.TestCase):
    """Test progress summaries."""

    def test_needs_two_entries(self):
        """Test fewer than two entries in the window gives no summary."""
        self.assertIsNone(progress_summary([make_entry(NOW - DAY_MS)], "7d", NOW))
        old = [make_entry(NOW - 20 * DAY_MS), make_entry(NOW - 19 * DAY_MS)]
        self.assertIsNone(progress_summary(old, "7d", NOW))

    def test_summary_fields(self):
        """Test counts, top tools, points and score change."""
        log = newest_first([
            make_entry(NOW - 6 * DAY_MS, ToolId.MEDITATION, emotional=40),
            make_entry(NOW - 5 * DAY_MS, ToolId.MEDITATION),
            make_entry(NOW - 4 * DAY_MS, ToolId.DOSH_DIAGNOSIS),
            make_entry(NOW - 3 * DAY_MS, ToolId.MEDITATION, emotional=90),
        ])
        summary = progress_summary(log, "7d", NOW)
        self.assertEqual(summary.activity_count, 4)
        self.assertEqual(summary.most_used_tools[0], ("meditation", 3))
        self.assertEqual(summary.total_points, 60)
        self.assertGreater(summary.score_change, 0)
        self.assertEqual(summary.to_dict()["scoreChange"], summary.last_score - summary.first_score)

    def test_unknown_period(self):
        """Test unknown periods raise ValueError."""
        with self.assertRaises(ValueError):
            progress_summary([], "1y", NOW)


class TestPruning(unittest.TestCase):
    """Test pruning under storage pressure."""

    def test_small_collections_untouched(self):
        """Test collections of ten or fewer are left alone."""
        items = list(range(10))
        self.assertEqual(prune_oldest(items), items)

    def test_drops_oldest_fifth_rounded_up(self):
        """Test the oldest 20% (rounded up) is dropped."""
        items = list(range(11))  # newest first
        self.assertEqual(prune_oldest(items), list(range(8)))
        self.assertEqual(len(prune_oldest(list(range(100)))), 80)


class TestPersistence(unittest.TestCase):
    """Test the persisted subset and rehydration."""

    def test_persisted_subset_excludes_transient_fields(self):
        """Test derived and transient fields are not stored."""
        state = CoherenceState(coherence_points=120, is_loading_quest=True)
        data = state.to_persisted().to_dict()
        self.assertNotIn("isLoadingQuest", data)
        self.assertNotIn("ucs", data)
        self.assertEqual(data["coherencePoints"], 120)

    def test_round_trip_through_blob(self):
        """Test a saved blob restores the same state."""
        state = CoherenceState(
            coherence_points=260,
            coherence_level=2,
            coherence_streak=4,
            last_activity_timestamp=NOW,
            active_quest=build_fallback_quest(NOW),
            activity_log=[make_entry(NOW)],
            tool_histories={"therapeutic_journal": [{"text": "hoje"}]},
        )
        restored = rehydrate(PersistedState.from_dict(state.to_persisted().to_dict()), NOW)
        self.assertEqual(restored.coherence_points, 260)
        self.assertEqual(restored.coherence_streak, 4)
        self.assertEqual(restored.active_quest.target_tool, ToolId.MEDITATION)
        self.assertEqual(restored.activity_log[0].id, f"activity-{NOW}")
        self.assertEqual(restored.tool_histories["therapeutic_journal"][0]["text"], "hoje")
        self.assertEqual(restored.score, state.score)

    def test_level_recomputed_on_load(self):
        """Test the stored level is replaced by the level for the points."""
        persisted = PersistedState(coherence_points=120, coherence_level=4)
        self.assertEqual(rehydrate(persisted, NOW).coherence_level, 1)

    def test_expired_combo_dropped(self):
        """Test a combo older than the window is dropped on load."""
        combo = ActiveCombo(ToolId.MEDITATION, NOW - 20 * MINUTE_MS)
        self.assertIsNone(rehydrate(PersistedState(active_combo=combo), NOW).active_combo)

    def test_live_combo_kept(self):
        """Test a combo inside the window survives a restart."""
        combo = ActiveCombo(ToolId.MEDITATION, NOW - 5 * MINUTE_MS)
        self.assertEqual(rehydrate(PersistedState(active_combo=combo), NOW).active_combo, combo)

    def test_loading_flag_never_restored(self):
        """Test is_loading_quest always starts False."""
        self.assertFalse(rehydrate(PersistedState(), NOW).is_loading_quest)

    def test_unreadable_log_entries_skipped(self):
        """Test unreadable log entries are skipped, not fatal."""
        data = CoherenceState(activity_log=[make_entry(NOW)]).to_persisted().to_dict()
        data["activityLog"].append({"type": "dance"})
        data["activityLog"].append("not an entry")
        persisted = PersistedState.from_dict(data)
        self.assertEqual(len(persisted.activity_log), 1)


class TestDamagedBlob(unittest.TestCase):
    """Test that one damaged field never discards the rest of the blob."""

    def assertRestOfBlobSurvives(self, persisted):
        self.assertEqual(len(persisted.activity_log), 2)
        self.assertEqual(persisted.coherence_streak, 4)
        self.assertEqual(persisted.total_combos, 3)
        self.assertIn("first_quest", persisted.unlocked_achievements)
        self.assertEqual(persisted.tool_histories["therapeutic_journal"], [{"text": "hoje"}])

    def test_unknown_quest_dimension(self):
        """Test an unknown quest dimension falls back for that quest only."""
        data = saved_blob()
        data["activeQuest"]["targetDimension"] = "espiritual"
        persisted = PersistedState.from_dict(data)
        self.assertEqual(persisted.coherence_points, 260)
        self.assertEqual(persisted.active_quest.target_dimension, FALLBACK_DIMENSION)
        self.assertEqual(persisted.active_quest.target_tool, ToolId.MEDITATION)
        self.assertRestOfBlobSurvives(persisted)

    def test_null_points(self):
        """Test null points fall back to zero without touching other fields."""
        data = saved_blob()
        data["coherencePoints"] = None
        persisted = PersistedState.from_dict(data)
        self.assertEqual(persisted.coherence_points, 0)
        self.assertIsNotNone(persisted.active_quest)
        self.assertRestOfBlobSurvives(persisted)

    def test_garbage_numbers(self):
        """Test non-numeric counters and timestamps fall back per field."""
        data = saved_blob()
        data["totalCombos"] = "tres"
        data["lastActivityTimestamp"] = {"when": "ontem"}
        data["unlockedAchievements"]["streak_7"] = "soon"
        data["activeCombo"] = {"lastToolId": "meditation", "startTime": None}
        persisted = PersistedState.from_dict(data)
        self.assertEqual(persisted.coherence_points, 260)
        self.assertEqual(persisted.total_combos, 0)
        self.assertIsNone(persisted.last_activity_timestamp)
        self.assertNotIn("streak_7", persisted.unlocked_achievements)
        self.assertIn("first_quest", persisted.unlocked_achievements)
        self.assertIsNone(persisted.active_combo)

    def test_wrong_container_types(self):
        """Test lists and maps of the wrong shape are ignored."""
        data = saved_blob()
        data["completedQuests"] = "none"
        data["coherenceVector"] = ["not", "a", "vector"]
        data["toolHistories"] = {"therapeutic_journal": ["text", {"text": "hoje"}]}
        persisted = PersistedState.from_dict(data)
        self.assertEqual(persisted.completed_quests, [])
        self.assertEqual(persisted.vector.to_dict(), seed_vector().to_dict())
        self.assertEqual(persisted.tool_histories["therapeutic_journal"], [{"text": "hoje"}])
        self.assertEqual(persisted.coherence_points, 260)

    def test_quest_round_trip_with_bad_timestamp(self):
        """Test an unreadable completion timestamp is dropped."""
        quest = CoherenceQuest.from_dict({
            "id": "q", "title": "t", "description": "d",
            "targetTool": "meditation", "targetDimension": "mental",
            "completionTimestamp": "amanha",
        })
        self.assertIsNone(quest.completion_timestamp)
        self.assertEqual(quest.target_dimension, Dimension.MENTAL)


if __name__ == "__main__":
    unittest.main()
