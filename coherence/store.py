# coherence/store.py
"""
Portais Coherence Store — v1.0.0

Single owner of the live CoherenceState.

Manages:
- Loading + rehydrating the persisted blob (KV key "state")
- Applying activities through the ledger (one writer at a time)
- Saving after every change, pruning history under storage pressure
- Quest fetching and per-tool histories
- Read-only projections for the UI (vector, score, log, charts, summaries)

All mutations happen under one lock. Readers get copies.
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from coherence.activities import Activity
from coherence.activity_log import (
    ActivityLogEntry,
    ProgressSummary,
    ScorePoint,
    entries_in_window,
    progress_summary,
    prune_oldest,
)
from coherence.gamification import DEFAULT_RULES, GamificationRules
from coherence.ledger import apply_activity
from coherence.notifications import NotificationCenter, NotificationKind, Notifier
from coherence.quests import CoherenceQuest, QuestIdeator, generate_quest
from coherence.scoring import Recommendation
from coherence.state import CoherenceState, PersistedState, rehydrate
from coherence.utils.kv_store import KVCapacityError, KVStore, KVStoreError
from coherence.vector import CoherenceVector

logger = logging.getLogger("portais.store")


def _now_ms() -> int:
    return int(time.time() * 1000)


class CoherenceStore:
    """
    Coherence Store v1.0.0

    Args:
        kv: Blob storage backend
        rules: Gamification tuning tables
        notifier: Where notifications go (defaults to an internal
            NotificationCenter exposed as `.notifications`)
        clock: Returns epoch milliseconds (injectable for tests)
        autosave: Persist after each mutation
    """

    STATE_KEY = "state"
    BACKUP_KEY = "state.unreadable"

    def __init__(
        self,
        kv: KVStore,
        rules: GamificationRules = DEFAULT_RULES,
        notifier: Optional[Notifier] = None,
        clock: Optional[Callable[[], int]] = None,
        autosave: bool = True,
    ):
        self.kv = kv
        self.rules = rules
        self.notifications = NotificationCenter()
        self._notify: Notifier = notifier or self.notifications
        self._clock = clock or _now_ms
        self.autosave = autosave

        self._state = CoherenceState()
        self._loaded = False
        self._save_blocked = False
        self._lock = threading.Lock()

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def _load(self) -> None:
        """Load and rehydrate persisted state (once)."""
        if self._loaded:
            return

        with self._lock:
            if self._loaded:
                return

            data = self.kv.get_json(self.STATE_KEY)
            if isinstance(data, dict):
                try:
                    persisted = PersistedState.from_dict(data)
                    self._state = rehydrate(persisted, self._clock(), self.rules)
                    logger.info(
                        "Loaded state: %d points, level %d, %d log entries",
                        self._state.coherence_points,
                        self._state.coherence_level,
                        len(self._state.activity_log),
                    )
                except (ValueError, TypeError, KeyError, AttributeError) as e:
                    logger.error("Error loading state, starting fresh: %s", e)
                    self._state = CoherenceState()
                    self._preserve_unreadable(data)

            self._loaded = True

    def _preserve_unreadable(self, data: Dict[str, Any]) -> None:
        """
        Copy an unreadable blob aside before anything can overwrite it.

        If the copy fails, saving stays disabled for this store so the
        original blob is left in place.
        """
        try:
            backed_up = self.kv.set_json(self.BACKUP_KEY, data)
        except KVStoreError as e:
            logger.error("Could not back up unreadable state: %s", e)
            backed_up = False

        if backed_up:
            logger.warning("Unreadable state copied to %r", self.BACKUP_KEY)
        else:
            logger.error("Saving disabled to keep the unreadable state intact")
            self._save_blocked = True

    def _prune_locked(self) -> None:
        """Drop the oldest ~20% of every bounded history (must hold lock)."""
        state = self._state
        before = len(state.activity_log)
        state.activity_log = prune_oldest(state.activity_log)
        for name, entries in list(state.tool_histories.items()):
            state.tool_histories[name] = prune_oldest(entries)
        logger.warning(
            "Pruned history under storage pressure: log %d -> %d",
            before, len(state.activity_log),
        )

    def _save_locked(self) -> bool:
        """
        Persist the current state (must hold lock).

        On a capacity error: prune, retry once, then give up with an error
        notification. The in-memory state stays authoritative either way.
        """
        if self._save_blocked:
            logger.warning("Save skipped: stored state is unreadable and was not backed up")
            return False

        try:
            ok = self.kv.set_json(self.STATE_KEY, self._state.to_persisted().to_dict())
        except KVCapacityError as e:
            logger.warning("Storage full (%s), pruning and retrying", e)
            self._prune_locked()
            try:
                ok = self.kv.set_json(self.STATE_KEY, self._state.to_persisted().to_dict())
            except KVCapacityError as retry_error:
                logger.error("Save failed after pruning: %s", retry_error)
                self._notify(
                    NotificationKind.ERROR,
                    "Armazenamento cheio. Seu progresso não pôde ser salvo.",
                )
                return False

        if not ok:
            logger.warning("State save was not acknowledged by the backend")
        return ok

    def save(self) -> bool:
        """Persist now."""
        self._load()
        with self._lock:
            return self._save_locked()

    def prune_history(self) -> bool:
        """Manually prune bounded histories and persist."""
        self._load()
        with self._lock:
            self._prune_locked()
            return self._save_locked()

    # =========================================================================
    # COMMANDS
    # =========================================================================

    def submit_activity(self, activity: Activity) -> List[ActivityLogEntry]:
        """
        Run an activity through the ledger and commit the result.

        Returns:
            The log entries created, in insertion order
        """
        self._load()
        with self._lock:
            new_state, entries = apply_activity(
                self._state, activity, self._clock(), self.rules, self._notify
            )
            self._state = new_state
            if self.autosave:
                self._save_locked()
        return entries

    def fetch_quest(self, ideate: Optional[QuestIdeator] = None) -> Optional[CoherenceQuest]:
        """
        Generate a new quest if none is active or being generated.

        Returns:
            The new quest, or None when skipped
        """
        self._load()
        with self._lock:
            if self._state.active_quest is not None or self._state.is_loading_quest:
                return None
            self._state.is_loading_quest = True
            vector = self._state.vector.copy()

        quest = None
        try:
            quest = generate_quest(vector, self._clock(), ideate)
        finally:
            with self._lock:
                self._state.is_loading_quest = False
                if quest is not None:
                    self._state.active_quest = quest
                    if self.autosave:
                        self._save_locked()

        logger.info("New quest: %s (%s)", quest.title, quest.target_tool.value)
        return quest.copy()

    def record_tool_history(self, tool_name: str, entry: Dict[str, Any]) -> None:
        """Prepend an entry to a tool's history (capped)."""
        self._load()
        with self._lock:
            history = self._state.tool_histories.get(tool_name, [])
            self._state.tool_histories[tool_name] = ([dict(entry)] + history)[
                :self.rules.max_tool_history
            ]
            if self.autosave:
                self._save_locked()

    # =========================================================================
    # QUERIES
    # =========================================================================

    def snapshot(self) -> CoherenceState:
        self._load()
        with self._lock:
            return self._state.copy()

    def current_vector(self) -> CoherenceVector:
        self._load()
        with self._lock:
            return self._state.vector.copy()

    def current_score(self) -> int:
        self._load()
        with self._lock:
            return self._state.score

    def current_recommendation(self) -> Recommendation:
        self._load()
        with self._lock:
            return self._state.recommendation

    def activity_log(self) -> List[ActivityLogEntry]:
        """Newest first."""
        self._load()
        with self._lock:
            return list(self._state.activity_log)

    def windowed_history(self, since_timestamp: int) -> List[ScorePoint]:
        return entries_in_window(self.activity_log(), since_timestamp)

    def progress_summary(self, period: str) -> Optional[ProgressSummary]:
        """
        Raises:
            ValueError: unknown period
        """
        return progress_summary(self.activity_log(), period, self._clock())

    def tool_history(self, tool_name: str) -> List[Dict[str, Any]]:
        self._load()
        with self._lock:
            return [dict(e) for e in self._state.tool_histories.get(tool_name, [])]

    def now(self) -> int:
        return self._clock()


# =============================================================================
# MODULE-LEVEL HELPER FOR EASY IMPORT
# =============================================================================

_store_instance: Optional[CoherenceStore] = None


def get_coherence_store(
    kv: Optional[KVStore] = None,
    data_dir: Optional[Path] = None,
) -> CoherenceStore:
    """Get or create the global CoherenceStore instance."""
    global _store_instance

    if _store_instance is None:
        if kv is None:
            from coherence.utils.kv_factory import get_kv_store
            kv = get_kv_store(data_dir=data_dir or Path("data"))
        _store_instance = CoherenceStore(kv)

    return _store_instance


def reset_coherence_store() -> None:
    """Reset the global store instance (for testing)."""
    global _store_instance
    _store_instance = None


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    "CoherenceStore",
    "get_coherence_store",
    "reset_coherence_store",
]
