"""
Portais Flask API — v1.0.0

HTTP surface over the coherence store:
- Activities in, state/log/history/summary out
- Quest fetching through the Gemini provider (fallback quest without it)
- Pending notifications drained into every response
- Error envelope format: {"ok": false, "error": "...", "message": "..."}
"""

import logging
import sys
from pathlib import Path

# -----------------------------------------------------------------------------
# Path Setup — Must happen BEFORE any other imports
# -----------------------------------------------------------------------------

BASE_DIR = Path(__file__).resolve().parent

if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))


# -----------------------------------------------------------------------------
# Environment Loading — Must happen BEFORE importing modules that use API keys
# -----------------------------------------------------------------------------

def _ensure_env_loaded():
    """Load .env before the Gemini provider reads its key."""
    from dotenv import load_dotenv

    env_path = BASE_DIR / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=True)
        print(f"[PortaisAPI] Loaded .env from {env_path}", flush=True)
    else:
        cwd_env = Path.cwd() / ".env"
        if cwd_env.exists():
            load_dotenv(cwd_env, override=True)
            print(f"[PortaisAPI] Loaded .env from {cwd_env}", flush=True)
        else:
            print("[PortaisAPI] WARNING: No .env file found", file=sys.stderr, flush=True)


# Load environment FIRST
_ensure_env_loaded()


# -----------------------------------------------------------------------------
# Now safe to import modules that use API keys
# -----------------------------------------------------------------------------

from flask import Flask, request, jsonify

from system.config import Config
from coherence.activities import Activity
from coherence.activity_log import period_start
from coherence.gamification import get_points_to_next_level
from coherence.store import CoherenceStore, get_coherence_store
from coherence.utils import KVConfig, get_kv_store
from providers.gemini_client import (
    gemini_generate_quest,
    gemini_progress_narrative,
    get_gemini_status,
    is_gemini_available,
)


config = Config.load()

logging.basicConfig(
    level=getattr(logging, str(config.log_level).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = Flask(__name__)

# Tests (or embedding apps) may preset these
app.config.setdefault("COHERENCE_STORE", None)
app.config.setdefault("QUEST_IDEATOR", None)

DEFAULT_LOG_LIMIT = 100


def _store() -> CoherenceStore:
    store = app.config.get("COHERENCE_STORE")
    if store is None:
        kv_config = KVConfig.from_env()
        kv_config.provider = config.kv_provider
        store = get_coherence_store(kv=get_kv_store(kv_config, data_dir=config.data_dir))
        app.config["COHERENCE_STORE"] = store
    return store


def _ideator():
    ideator = app.config.get("QUEST_IDEATOR")
    if ideator is not None:
        return ideator
    return gemini_generate_quest if is_gemini_available() else None


def _error(error: str, message: str, status: int):
    return jsonify({"ok": False, "error": error, "message": message}), status


def _ok(**payload):
    """Success envelope with pending notifications attached."""
    notifications = [n.to_dict() for n in _store().notifications.drain()]
    return jsonify({"ok": True, **payload, "notifications": notifications})


def _int_arg(name: str, default=None):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    return int(raw)


# ─────────────────────────────────────────────────────────────────────────────
# ERROR HANDLERS
# ─────────────────────────────────────────────────────────────────────────────

@app.errorhandler(Exception)
def handle_exception(e):
    """Global exception handler to ensure all errors return JSON, not HTML."""
    print(f"[PortaisAPI] Unhandled exception: {type(e).__name__}: {e}", file=sys.stderr, flush=True)
    import traceback
    traceback.print_exc()

    return _error("server_error", f"An unexpected server error occurred: {str(e)}", 500)


@app.errorhandler(404)
def handle_404(e):
    return _error("not_found", f"Endpoint not found: {request.path}", 404)


@app.errorhandler(405)
def handle_405(e):
    return _error("method_not_allowed", f"Method {request.method} not allowed on {request.path}", 405)


# ─────────────────────────────────────────────────────────────────────────────
# ROUTES
# ─────────────────────────────────────────────────────────────────────────────

@app.get("/api/health")
def health():
    store = _store()
    return jsonify({
        "ok": True,
        "kv_provider": store.kv.config.provider,
        "kv_reachable": store.kv.ping(),
        "gemini": get_gemini_status(),
    })


@app.get("/api/state")
def get_state():
    store = _store()
    state = store.snapshot()
    level = store.rules.level_info(state.coherence_level)
    return _ok(
        state=state.to_dict(),
        level=level.to_dict() if level else None,
        pointsToNextLevel=get_points_to_next_level(state.coherence_points, store.rules.levels),
    )


@app.post("/api/activity")
def post_activity():
    """
    Submit an activity.

    Body: {"type": "...", "agentId": "...", "data": {...}}
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _error("invalid_json", "Request body must be a JSON object", 400)

    try:
        activity = Activity.from_dict(data)
    except (ValueError, TypeError) as e:
        return _error("invalid_activity", str(e), 400)

    if activity.is_system:
        return _error(
            "invalid_activity",
            f"{activity.type.value} activities are generated by the system",
            400,
        )

    store = _store()
    entries = store.submit_activity(activity)
    state = store.snapshot()

    return _ok(
        entries=[e.to_dict() for e in entries],
        coherencePoints=state.coherence_points,
        coherenceLevel=state.coherence_level,
        coherenceStreak=state.coherence_streak,
        ucs=state.score,
        recommendation=state.recommendation.to_dict(),
        coherenceVector=state.vector.to_dict(),
    )


@app.get("/api/log")
def get_log():
    try:
        limit = _int_arg("limit", DEFAULT_LOG_LIMIT)
    except ValueError:
        return _error("invalid_limit", "limit must be an integer", 400)

    entries = _store().activity_log()[:max(0, limit)]
    return _ok(entries=[e.to_dict() for e in entries])


@app.get("/api/history")
def get_history():
    """Score evolution, oldest first. Query: ?since=<ms> or ?period=7d|30d"""
    store = _store()
    period = request.args.get("period")

    try:
        if period:
            since = period_start(period, store.now())
        else:
            since = _int_arg("since", 0)
    except ValueError as e:
        return _error("invalid_window", str(e), 400)

    return _ok(points=[p.to_dict() for p in store.windowed_history(since)])


@app.get("/api/summary")
def get_summary():
    """Progress summary for ?period=7d|30d. Add &narrative=1 for Gemini text."""
    period = request.args.get("period", "7d")
    store = _store()

    try:
        summary = store.progress_summary(period)
    except ValueError as e:
        return _error("invalid_period", str(e), 400)

    if summary is None:
        return _ok(summary=None, narrative=None)

    data = summary.to_dict()
    narrative = None
    if request.args.get("narrative", "").lower() in ("1", "true", "yes"):
        narrative = gemini_progress_narrative(data)
    return _ok(summary=data, narrative=narrative)


@app.post("/api/quest")
def post_quest():
    store = _store()
    quest = store.fetch_quest(_ideator())
    if quest is None:
        active = store.snapshot().active_quest
        return _ok(created=False, quest=active.to_dict() if active else None)
    return _ok(created=True, quest=quest.to_dict())


@app.get("/api/tools/<tool_name>/history")
def get_tool_history(tool_name):
    return _ok(entries=_store().tool_history(tool_name))


@app.post("/api/tools/<tool_name>/history")
def post_tool_history(tool_name):
    entry = request.get_json(silent=True)
    if not isinstance(entry, dict):
        return _error("invalid_json", "Request body must be a JSON object", 400)
    _store().record_tool_history(tool_name, entry)
    return _ok(entries=_store().tool_history(tool_name))


# ─────────────────────────────────────────────────────────────────────────────
# MAIN
# ─────────────────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    print("[PortaisAPI] Starting server...", flush=True)
    print(f"[PortaisAPI] Data directory: {config.data_dir}", flush=True)
    print(f"[PortaisAPI] KV provider: {config.kv_provider}", flush=True)
    if is_gemini_available():
        print("[PortaisAPI] Gemini API available", flush=True)
    else:
        print("[PortaisAPI] Gemini API not available (check GEMINI_API_KEY), using fallback quests", flush=True)

    app.run(host="0.0.0.0", port=5000, debug=config.debug)
