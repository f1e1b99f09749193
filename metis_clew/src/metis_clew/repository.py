"""
Explanation Repository

Supabase persistence for snippets, explanations, ratings, learning patterns
and the recent-snippets list of signed-in users. Guests never reach this
module.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

VALID_RATINGS = (-1, 0, 1)
RECENT_SNIPPETS_LIMIT = 5


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ExplanationRepository:
    """Table access for the explanation workflow."""

    def __init__(self, supabase_client):
        self.supabase = supabase_client

    def create_snippet(self, user_id: str, code: str, language: str, title: Optional[str] = None) -> Dict[str, Any]:
        """
        Insert a code snippet.

        Returns:
            The inserted row

        Raises:
            RuntimeError: If the insert returned no row
        """
        row = {"user_id": user_id, "code": code, "language": language}
        if title:
            row["title"] = title

        result = self.supabase.table('code_snippets').insert(row).execute()
        if not result.data:
            raise RuntimeError("Failed to create code snippet")
        return result.data[0]

    def touch_recent_snippet(self, user_id: str, code: str, language: str) -> bool:
        """Add a snippet to the user's recent list. Failures are logged only."""
        try:
            self.supabase.table('recent_snippets').insert({
                "user_id": user_id,
                "title": f"{language} code",
                "code": code[:100],
                "language": language,
                "last_accessed": _now_iso(),
            }).execute()
            return True
        except Exception as e:
            logger.warning(f"Failed to update recent snippets for user {user_id[:20]}: {e}")
            return False

    def list_recent_snippets(self, user_id: str, limit: int = RECENT_SNIPPETS_LIMIT) -> List[Dict[str, Any]]:
        result = self.supabase.table('recent_snippets') \
            .select('*') \
            .eq('user_id', user_id) \
            .order('last_accessed', desc=True) \
            .limit(limit) \
            .execute()
        return result.data or []

    def save_explanation(
        self,
        user_id: str,
        snippet_id: str,
        selected_code: str,
        explanation: Dict[str, Any]
    ) -> Optional[str]:
        """
        Store an explanation for a signed-in user.

        Returns:
            The new explanation id, or None if the insert failed
        """
        try:
            result = self.supabase.table('explanations').insert({
                "snippet_id": snippet_id,
                "user_id": user_id,
                "selected_code": selected_code,
                "explanation": explanation,
            }).execute()
        except Exception as e:
            logger.error(f"Failed to insert explanation: {e}")
            return None

        if not result.data:
            logger.error("Explanation insert returned no data")
            return None
        return result.data[0].get("id")

    def save_rating(self, explanation_id: str, user_id: str, rating: int) -> Dict[str, Any]:
        """
        Upsert the user's rating (-1, 0 or 1) of an explanation.

        One rating per (explanation, user); rating again replaces it.

        Raises:
            ValueError: If rating is not -1, 0 or 1
            RuntimeError: If the upsert returned no row
        """
        if rating not in VALID_RATINGS:
            raise ValueError(f"Rating must be one of {VALID_RATINGS}, got {rating}")

        result = self.supabase.table('explanation_ratings').upsert(
            {
                "explanation_id": explanation_id,
                "user_id": user_id,
                "rating": rating,
            },
            on_conflict="explanation_id,user_id"
        ).execute()

        if not result.data:
            raise RuntimeError("Failed to save rating")
        return result.data[0]

    def list_learning_patterns(self, user_id: str) -> List[Dict[str, Any]]:
        result = self.supabase.table('learning_patterns') \
            .select('*') \
            .eq('user_id', user_id) \
            .order('frequency', desc=True) \
            .execute()

        return [
            {
                "id": row.get("id"),
                "pattern_type": row.get("pattern_type"),
                "frequency": row.get("frequency", 0),
                "last_seen": row.get("last_seen"),
                "insights": row.get("insights"),
            }
            for row in result.data or []
        ]
