# providers/__init__.py
"""
Portais — Provider Package

External AI provider integrations.
"""

from providers.gemini_client import (
    gemini_generate_quest,
    gemini_progress_narrative,
    is_gemini_available,
    get_gemini_status,
    GEMINI_QUEST_MODEL,
    GEMINI_SUMMARY_MODEL,
)

__all__ = [
    "gemini_generate_quest",
    "gemini_progress_narrative",
    "is_gemini_available",
    "get_gemini_status",
    "GEMINI_QUEST_MODEL",
    "GEMINI_SUMMARY_MODEL",
]
