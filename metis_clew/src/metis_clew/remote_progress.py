"""
Remote Progress Tracker

Cross-device progress for signed-in users, stored in Supabase:

- user_sessions: one row per user per calendar day, with the number of
  explanations (patterns) completed that day
- user_preferences: running explanation total and derived skill level

Writes are best-effort. A failure is logged and reported to the caller as
False; it never interrupts the request that triggered it.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from metis_clew.session_record import DEFAULT_DOMINANT_PATTERN
from metis_clew.skill_progression import SkillLevel, parse_tier, tier_for

logger = logging.getLogger(__name__)


@dataclass
class RemoteStats:
    """Aggregated progress across all of a user's devices."""
    session_count: int = 0
    total_patterns: int = 0
    total_explanations: int = 0
    skill_level: SkillLevel = SkillLevel.BEGINNER
    dominant_pattern: str = DEFAULT_DOMINANT_PATTERN

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["skill_level"] = self.skill_level.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RemoteStats":
        return cls(
            session_count=int(data.get("session_count") or 0),
            total_patterns=int(data.get("total_patterns") or 0),
            total_explanations=int(data.get("total_explanations") or 0),
            skill_level=parse_tier(data.get("skill_level")),
            dominant_pattern=data.get("dominant_pattern") or DEFAULT_DOMINANT_PATTERN,
        )


def _today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


class RemoteProgressTracker:
    """Best-effort progress persistence in Supabase."""

    def __init__(self, supabase_client=None):
        self.supabase = supabase_client
        self.use_supabase = supabase_client is not None

        if not self.use_supabase:
            logger.warning("⚠️ [RemoteProgress] Supabase not available, remote tracking disabled")

    def _get_session_row(self, user_id: str, session_date: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table('user_sessions') \
            .select('*') \
            .eq('user_id', user_id) \
            .eq('session_date', session_date) \
            .limit(1) \
            .execute()
        return result.data[0] if result.data else None

    def record_session(self, user_id: str, session_date: Optional[date] = None) -> bool:
        """
        Make sure a session row exists for the given day (default: today).

        Returns:
            True if the row exists afterwards
        """
        if not self.use_supabase:
            return False

        day = session_date.isoformat() if session_date else _today()
        try:
            if self._get_session_row(user_id, day):
                return True

            self.supabase.table('user_sessions').insert({
                "user_id": user_id,
                "session_date": day,
                "patterns_learned": 0,
            }).execute()
            logger.info(f"✅ [RemoteProgress] New session for user {user_id[:20]}... on {day}")
            return True
        except Exception as e:
            logger.error(f"❌ [RemoteProgress] Error recording session: {e}")
            return False

    def record_explanation(self, user_id: str, session_date: Optional[date] = None) -> bool:
        """
        Count one completed explanation.

        Increments user_preferences.total_explanations (re-deriving the skill
        level from it) and the day's patterns_learned.

        Returns:
            True if both writes succeeded
        """
        if not self.use_supabase:
            return False

        day = session_date.isoformat() if session_date else _today()
        now = datetime.now(timezone.utc).isoformat()

        try:
            prefs = self.supabase.table('user_preferences') \
                .select('*') \
                .eq('user_id', user_id) \
                .limit(1) \
                .execute()

            if prefs.data:
                total = int(prefs.data[0].get("total_explanations") or 0) + 1
                self.supabase.table('user_preferences') \
                    .update({
                        "total_explanations": total,
                        "skill_level": tier_for(total).value,
                        "updated_at": now,
                    }) \
                    .eq('user_id', user_id) \
                    .execute()
            else:
                total = 1
                self.supabase.table('user_preferences').insert({
                    "user_id": user_id,
                    "total_explanations": total,
                    "skill_level": tier_for(total).value,
                    "dominant_pattern": DEFAULT_DOMINANT_PATTERN,
                }).execute()

            session_row = self._get_session_row(user_id, day)
            if session_row:
                self.supabase.table('user_sessions') \
                    .update({"patterns_learned": int(session_row.get("patterns_learned") or 0) + 1}) \
                    .eq('id', session_row["id"]) \
                    .execute()
            else:
                self.supabase.table('user_sessions').insert({
                    "user_id": user_id,
                    "session_date": day,
                    "patterns_learned": 1,
                }).execute()

            logger.info(f"✅ [RemoteProgress] Explanation recorded for user {user_id[:20]}... (total: {total})")
            return True
        except Exception as e:
            logger.error(f"❌ [RemoteProgress] Error recording explanation: {e}", exc_info=True)
            return False

    def get_stats(self, user_id: str) -> Optional[RemoteStats]:
        """
        Aggregate a user's progress.

        Returns:
            RemoteStats, or None if Supabase is unavailable or the read failed
        """
        if not self.use_supabase:
            return None

        try:
            sessions = self.supabase.table('user_sessions') \
                .select('*') \
                .eq('user_id', user_id) \
                .execute()

            prefs = self.supabase.table('user_preferences') \
                .select('*') \
                .eq('user_id', user_id) \
                .limit(1) \
                .execute()
        except Exception as e:
            logger.error(f"❌ [RemoteProgress] Error loading stats: {e}")
            return None

        rows = sessions.data or []
        preferences = prefs.data[0] if prefs.data else {}

        return RemoteStats(
            session_count=len(rows),
            total_patterns=sum(int(row.get("patterns_learned") or 0) for row in rows),
            total_explanations=int(preferences.get("total_explanations") or 0),
            skill_level=parse_tier(preferences.get("skill_level")),
            dominant_pattern=preferences.get("dominant_pattern") or DEFAULT_DOMINANT_PATTERN,
        )
