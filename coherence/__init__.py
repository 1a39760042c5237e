# coherence/__init__.py
"""
Portais Coherence Engine

Tracks a user's 7-dimension coherence vector and rewards practice:
- vector / scoring: the state model, score and mentor recommendation
- activities / orchestrator: what happened and how it moves the vector
- gamification / ledger: points, levels, combos, streaks, quests, achievements
- activity_log: newest-first history and its projections
- store: the single owner of live state, persisted through a KVStore
"""

from coherence.vector import (
    Dimension,
    DimensionState,
    CoherenceVector,
    seed_vector,
)
from coherence.scoring import (
    MentorCategory,
    Recommendation,
    compute_score,
    recommend,
)
from coherence.activities import Activity, ActivityType, ToolId
from coherence.orchestrator import OrchestrationResult, orchestrate
from coherence.gamification import (
    COHERENCE_LEVELS,
    ACHIEVEMENTS,
    COHERENCE_PATHS,
    GamificationRules,
    DEFAULT_RULES,
)
from coherence.activity_log import (
    ActivityLogEntry,
    ScorePoint,
    ProgressSummary,
    entries_in_window,
    progress_summary,
    prune_oldest,
)
from coherence.quests import CoherenceQuest, generate_quest
from coherence.notifications import Notification, NotificationCenter, NotificationKind
from coherence.state import CoherenceState, PersistedState, rehydrate
from coherence.ledger import apply_activity
from coherence.store import CoherenceStore, get_coherence_store, reset_coherence_store

__version__ = "1.0.0"
