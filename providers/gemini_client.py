# providers/gemini_client.py
"""
Portais — Gemini Provider

Provides Gemini API integration for:
1. gemini_generate_quest() - Coherence quest ideation (title/description/tool)
2. gemini_progress_narrative() - Short written summary of a progress period

v1.0.0: Initial implementation
- Reads GEMINI_API_KEY from environment
- Silent fallback on failure (returns None)
- JSON-only output for quests, plain text for narratives
"""

import json
import os
import sys
from typing import Any, Dict, List, Optional

# Gemini SDK import (optional)
try:
    import google.generativeai as genai
    _HAS_GEMINI = True
except ImportError:
    _HAS_GEMINI = False
    genai = None


# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_ENABLED = os.getenv("GEMINI_ENABLED", "true").lower() in ("true", "1", "yes")

# Model identifiers
GEMINI_QUEST_MODEL = os.getenv("GEMINI_QUEST_MODEL", "gemini-1.5-flash")
GEMINI_SUMMARY_MODEL = os.getenv("GEMINI_SUMMARY_MODEL", "gemini-1.5-flash")


# -----------------------------------------------------------------------------
# Prompts
# -----------------------------------------------------------------------------

QUEST_SYSTEM_PROMPT = """Você é um "Mestre de Jogo Cósmico" no aplicativo Portais da Consciência.
Sua tarefa é criar uma "Missão de Coerência" para um usuário.
Seja criativo e use uma linguagem que misture sabedoria e um toque de gamificação.

Responda SOMENTE com JSON válido, sem markdown, no schema:
{
  "title": "string",
  "description": "string",
  "targetTool": "string (um dos ids de ferramenta fornecidos)"
}"""


NARRATIVE_SYSTEM_PROMPT = """Você é o "Arquiteto da Consciência", um mentor de IA sábio e perspicaz.
Sua tarefa é analisar os dados de progresso de um usuário e fornecer um resumo inspirador e acionável.
Responda em português, em no máximo dois parágrafos curtos, sem markdown."""


# -----------------------------------------------------------------------------
# Initialization
# -----------------------------------------------------------------------------

def _init_gemini() -> bool:
    """Initialize Gemini client if available and enabled."""
    if not _HAS_GEMINI:
        print("[GeminiClient] google-generativeai not installed", file=sys.stderr, flush=True)
        return False

    if not GEMINI_ENABLED:
        print("[GeminiClient] Gemini disabled via GEMINI_ENABLED=false", flush=True)
        return False

    if not GEMINI_API_KEY:
        print("[GeminiClient] GEMINI_API_KEY not set", file=sys.stderr, flush=True)
        return False

    try:
        genai.configure(api_key=GEMINI_API_KEY)
        # Mask key for logging
        key_preview = f"{GEMINI_API_KEY[:8]}...{GEMINI_API_KEY[-4:]}" if len(GEMINI_API_KEY) > 12 else "***"
        print(f"[GeminiClient] Initialized with key: {key_preview}", flush=True)
        return True
    except Exception as e:
        print(f"[GeminiClient] Init failed: {e}", file=sys.stderr, flush=True)
        return False


_gemini_ready = _init_gemini() if _HAS_GEMINI else False


# -----------------------------------------------------------------------------
# JSON Extraction Helper
# -----------------------------------------------------------------------------

def _extract_json(text: str) -> Optional[Dict[str, Any]]:
    """
    Extract JSON from text, handling common issues.
    Returns None if extraction fails.
    """
    if not text:
        return None

    # Remove markdown code fences if present
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    text = text.strip()

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        print(f"[GeminiClient] JSON decode error: {e}", file=sys.stderr, flush=True)
        return None
    return parsed if isinstance(parsed, dict) else None


def _generate_text(model_name: str, prompt: str, temperature: float, max_tokens: int) -> Optional[str]:
    model = genai.GenerativeModel(model_name)
    response = model.generate_content(
        prompt,
        generation_config=genai.GenerationConfig(
            temperature=temperature,
            max_output_tokens=max_tokens,
        ),
    )
    if not response or not response.text:
        return None
    return response.text


# -----------------------------------------------------------------------------
# Quest Ideation
# -----------------------------------------------------------------------------

def gemini_generate_quest(dimension: Any, tools: List[str]) -> Optional[Dict[str, Any]]:
    """
    Ask Gemini for a coherence quest targeting `dimension`.

    Args:
        dimension: Dimension with the highest dissonance
        tools: Tool ids suited to that dimension

    Returns:
        {"title", "description", "targetTool"} or None on failure.
        The caller validates the fields.
    """
    if not _gemini_ready:
        print("[GeminiClient] gemini_generate_quest: Not ready (disabled or no key)", flush=True)
        return None

    dimension_key = getattr(dimension, "value", dimension)
    print(f"[GeminiClient] gemini_generate_quest: model={GEMINI_QUEST_MODEL} dim={dimension_key}", flush=True)

    prompt = (
        f"{QUEST_SYSTEM_PROMPT}\n\n"
        f"A área de maior dissonância (caos/conflito) do usuário é: {dimension_key}.\n"
        f"A missão deve sugerir o uso de uma destas ferramentas: {', '.join(tools)}."
    )

    try:
        text = _generate_text(GEMINI_QUEST_MODEL, prompt, temperature=0.7, max_tokens=512)
        if text is None:
            print("[GeminiClient] gemini_generate_quest: Empty response", file=sys.stderr, flush=True)
            return None

        result = _extract_json(text)
        if result:
            print("[GeminiClient] gemini_generate_quest: SUCCESS", flush=True)
        else:
            print("[GeminiClient] gemini_generate_quest: Invalid JSON response", file=sys.stderr, flush=True)
        return result

    except Exception as e:
        print(f"[GeminiClient] gemini_generate_quest ERROR: {e}", file=sys.stderr, flush=True)
        return None


# -----------------------------------------------------------------------------
# Progress Narrative
# -----------------------------------------------------------------------------

def gemini_progress_narrative(summary: Dict[str, Any]) -> Optional[str]:
    """
    Turn a progress summary (ProgressSummary.to_dict()) into a short text.

    Returns None on failure; callers show the raw numbers instead.
    """
    if not _gemini_ready:
        return None

    change = summary.get("scoreChange", 0)
    tools = ", ".join(
        f"{t['toolId']} ({t['count']} vezes)" for t in summary.get("mostUsedTools", [])
    ) or "nenhuma"

    prompt = (
        f"{NARRATIVE_SYSTEM_PROMPT}\n\n"
        f"Dados do Período ({summary.get('period')}):\n"
        f"- Pontuação de Coerência (Φ) Inicial: {summary.get('firstScore')}\n"
        f"- Pontuação de Coerência (Φ) Final: {summary.get('lastScore')}\n"
        f"- Variação Total: {'+' if change > 0 else ''}{change} pontos\n"
        f"- Atividades registradas: {summary.get('activityCount')}\n"
        f"- Ferramentas mais usadas: {tools}"
    )

    print(f"[GeminiClient] gemini_progress_narrative: model={GEMINI_SUMMARY_MODEL}", flush=True)
    try:
        text = _generate_text(GEMINI_SUMMARY_MODEL, prompt, temperature=0.6, max_tokens=512)
        return text.strip() if text else None
    except Exception as e:
        print(f"[GeminiClient] gemini_progress_narrative ERROR: {e}", file=sys.stderr, flush=True)
        return None


# -----------------------------------------------------------------------------
# Status Check
# -----------------------------------------------------------------------------

def is_gemini_available() -> bool:
    """Check if Gemini is available and ready."""
    return _gemini_ready


def get_gemini_status() -> Dict[str, Any]:
    """Get detailed Gemini status for debugging."""
    return {
        "available": _gemini_ready,
        "sdk_installed": _HAS_GEMINI,
        "enabled": GEMINI_ENABLED,
        "api_key_set": bool(GEMINI_API_KEY),
        "quest_model": GEMINI_QUEST_MODEL,
        "summary_model": GEMINI_SUMMARY_MODEL,
    }


# -----------------------------------------------------------------------------
# Module Exports
# -----------------------------------------------------------------------------

__all__ = [
    "gemini_generate_quest",
    "gemini_progress_narrative",
    "is_gemini_available",
    "get_gemini_status",
    "GEMINI_QUEST_MODEL",
    "GEMINI_SUMMARY_MODEL",
]
