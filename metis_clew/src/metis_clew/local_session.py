"""
Local Session Store

Owns the SessionRecord for this device: loads it from client-local storage,
applies the two tracking mutations, re-derives the skill level and writes
the whole record back after every change.
"""

import json
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from metis_clew.session_record import (
    MAX_RECENT_SNIPPETS,
    SNIPPET_PREVIEW_CHARS,
    SessionRecord,
    SnippetRef,
)
from metis_clew.skill_progression import (
    NextTierInfo,
    SkillLevel,
    parse_tier,
    progress_to_next,
    remaining_to_next,
    tier_for,
)

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "metis_clew_session"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LevelUpResult:
    """Outcome of tracking one explanation."""
    leveled_up: bool
    new_tier: SkillLevel


class LocalSessionStore:
    """
    Durable, client-side record of a learner's activity.

    The in-memory record is authoritative. Every mutation builds a new record
    and persists it in full; persistence failures are logged and swallowed.
    """

    def __init__(
        self,
        storage,
        storage_key: str = DEFAULT_STORAGE_KEY,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the store and load any persisted record.

        Args:
            storage: Object with get_item/set_item (see metis_clew.storage)
            storage_key: Key the record is stored under
            clock: Returns the current time (UTC); injectable for tests
        """
        self.storage = storage
        self.storage_key = storage_key
        self._clock = clock or _utc_now
        self._record = self.load()

    @property
    def record(self) -> SessionRecord:
        return self._record

    def load(self) -> SessionRecord:
        """
        Read the persisted record.

        Returns the zero-valued default when nothing is stored or the stored
        blob cannot be parsed.
        """
        try:
            stored = self.storage.get_item(self.storage_key)
            if stored:
                return SessionRecord.from_dict(json.loads(stored))
        except Exception as e:
            logger.error(f"Failed to load session data: {e}")
        return SessionRecord()

    def _persist(self) -> None:
        try:
            self.storage.set_item(self.storage_key, json.dumps(self._record.to_dict()))
        except Exception as e:
            logger.error(f"Failed to save session data: {e}")

    def _commit(self, record: SessionRecord) -> None:
        self._record = record
        self._persist()

    def track_code_submit(self, code: str, language: str) -> SessionRecord:
        """
        Record a code submission.

        A new calendar day (UTC) counts as a new session. The snippet preview
        is prepended to the recent list, which is capped at five entries.
        """
        now = self._clock()
        today = now.date().isoformat()
        timestamp = int(now.timestamp() * 1000)
        prev = self._record

        snippet = SnippetRef(
            id=f"snippet_{timestamp}",
            title=f"{language} code",
            language=language,
            code=code[:SNIPPET_PREVIEW_CHARS],
            timestamp=timestamp,
        )

        is_new_session = prev.last_session_date != today
        self._commit(replace(
            prev,
            session_count=prev.session_count + 1 if is_new_session else prev.session_count,
            recent_snippets=[snippet] + prev.recent_snippets[:MAX_RECENT_SNIPPETS - 1],
            last_session_date=today,
        ))

        if is_new_session:
            logger.info(f"New session started ({today}), total sessions: {self._record.session_count}")
        return self._record

    def track_explanation(self) -> LevelUpResult:
        """
        Record one completed explanation.

        Returns:
            LevelUpResult; leveled_up is True only on the call that crosses a
            tier boundary
        """
        prev = self._record
        total = prev.total_explanations + 1
        new_tier = tier_for(total)

        self._commit(replace(
            prev,
            total_explanations=total,
            total_patterns=prev.total_patterns + 1,
            skill_level=new_tier,
        ))

        leveled_up = prev.skill_level != new_tier
        if leveled_up:
            logger.info(f"Skill level changed: {prev.skill_level.value} -> {new_tier.value} ({total} explanations)")
        return LevelUpResult(leveled_up=leveled_up, new_tier=new_tier)

    def update_skill_level(self, tier: Union[str, SkillLevel]) -> None:
        """Override the stored skill level (e.g. with a server-computed tier)."""
        self._commit(replace(self._record, skill_level=parse_tier(tier)))

    def progress_to_next_tier(self) -> Optional[int]:
        return progress_to_next(self._record.total_explanations, self._record.skill_level)

    def next_tier_info(self) -> Optional[NextTierInfo]:
        return remaining_to_next(self._record.total_explanations, self._record.skill_level)
