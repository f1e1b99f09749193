"""Metis Clew: AI code explanations with skill progression tracking."""
from metis_clew.local_session import LevelUpResult, LocalSessionStore
from metis_clew.progress_tracker import DisplayStats, ProgressTracker
from metis_clew.session_record import SessionRecord, SnippetRef
from metis_clew.skill_progression import (
    NextTierInfo,
    SkillLevel,
    progress_to_next,
    remaining_to_next,
    tier_for,
)

__all__ = [
    "DisplayStats",
    "LevelUpResult",
    "LocalSessionStore",
    "NextTierInfo",
    "ProgressTracker",
    "SessionRecord",
    "SkillLevel",
    "SnippetRef",
    "progress_to_next",
    "remaining_to_next",
    "tier_for",
]
