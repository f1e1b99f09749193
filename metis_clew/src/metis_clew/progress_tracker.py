"""
Progress Tracker

Reconciles local and remote progress so guests and signed-in users go
through the same code path.

Local tracking always runs and is the memory of this device. Remote stats,
when a source is configured and answers, are preferred for display because
they aggregate every device. Remote writes happen elsewhere (the backend
records sessions and explanations for authenticated requests), so the two
sets of counters may drift apart; that is accepted.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from metis_clew.local_session import LevelUpResult, LocalSessionStore
from metis_clew.remote_progress import RemoteStats
from metis_clew.session_record import SessionRecord
from metis_clew.skill_progression import NextTierInfo, SkillLevel

logger = logging.getLogger(__name__)


@dataclass
class DisplayStats:
    """What a status bar shows."""
    session_count: int
    total_patterns: int
    total_explanations: int
    skill_level: SkillLevel
    dominant_pattern: str
    progress: Optional[int]  # Percent towards next tier, None when advanced
    next_tier: Optional[NextTierInfo]
    source: str  # "remote" or "local"


class ProgressTracker:
    """Local-first progress tracking with optional remote display data."""

    def __init__(self, local_store: LocalSessionStore, remote=None):
        """
        Args:
            local_store: The device's LocalSessionStore
            remote: Object with fetch_stats() -> Optional[RemoteStats], or
                None in guest mode
        """
        self.local = local_store
        self.remote = remote

    @property
    def is_guest(self) -> bool:
        return self.remote is None

    def track_code_submit(self, code: str, language: str) -> SessionRecord:
        return self.local.track_code_submit(code, language)

    def track_explanation(self) -> LevelUpResult:
        return self.local.track_explanation()

    def _fetch_remote(self) -> Optional[RemoteStats]:
        if self.remote is None:
            return None
        try:
            return self.remote.fetch_stats()
        except Exception as e:
            logger.warning(f"Remote stats unavailable, showing local progress: {e}")
            return None

    def display_stats(self) -> DisplayStats:
        """
        Stats for display: remote values when available, local otherwise.

        Progress towards the next tier always comes from the local record.
        """
        record = self.local.record
        progress = self.local.progress_to_next_tier()
        next_tier = self.local.next_tier_info()

        remote = self._fetch_remote()
        if remote is not None:
            return DisplayStats(
                session_count=remote.session_count,
                total_patterns=remote.total_patterns,
                total_explanations=remote.total_explanations,
                skill_level=remote.skill_level,
                dominant_pattern=remote.dominant_pattern,
                progress=progress,
                next_tier=next_tier,
                source="remote",
            )

        return DisplayStats(
            session_count=record.session_count,
            total_patterns=record.total_patterns,
            total_explanations=record.total_explanations,
            skill_level=record.skill_level,
            dominant_pattern=record.dominant_pattern,
            progress=progress,
            next_tier=next_tier,
            source="local",
        )
