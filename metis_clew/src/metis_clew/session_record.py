"""
Session Record Data Model

Defines the SessionRecord dataclass: a learner's cumulative activity on this
device, persisted as a single JSON blob.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from metis_clew.skill_progression import SkillLevel, parse_tier

MAX_RECENT_SNIPPETS = 5
SNIPPET_PREVIEW_CHARS = 100
DEFAULT_DOMINANT_PATTERN = "visual"


@dataclass
class SnippetRef:
    """A recently submitted snippet (preview only)."""
    id: str
    title: str
    language: str
    code: str  # Truncated to SNIPPET_PREVIEW_CHARS
    timestamp: int  # Epoch milliseconds

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "language": self.language,
            "code": self.code,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SnippetRef":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            language=str(data.get("language", "")),
            code=str(data.get("code", ""))[:SNIPPET_PREVIEW_CHARS],
            timestamp=int(data.get("timestamp", 0)),
        )


@dataclass
class SessionRecord:
    """Cumulative interaction history for one device."""
    session_count: int = 0
    total_explanations: int = 0
    total_patterns: int = 0
    skill_level: SkillLevel = SkillLevel.BEGINNER
    dominant_pattern: str = DEFAULT_DOMINANT_PATTERN
    recent_snippets: List[SnippetRef] = field(default_factory=list)  # Most recent first
    last_session_date: str = ""  # ISO date, "" before the first submission

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to the persisted blob shape.

        Keys are camelCase to stay compatible with records written by the
        browser client.
        """
        return {
            "sessionCount": self.session_count,
            "totalPatterns": self.total_patterns,
            "totalExplanations": self.total_explanations,
            "skillLevel": self.skill_level.value,
            "dominantPattern": self.dominant_pattern,
            "recentSnippets": [snippet.to_dict() for snippet in self.recent_snippets],
            "lastSessionDate": self.last_session_date,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionRecord":
        """
        Build a record from a persisted blob.

        Raises:
            TypeError, ValueError, KeyError: If the blob is malformed
        """
        if not isinstance(data, dict):
            raise TypeError(f"Session record must be an object, got {type(data).__name__}")

        snippets = [SnippetRef.from_dict(item) for item in data.get("recentSnippets") or []]

        return cls(
            session_count=max(0, int(data.get("sessionCount", 0))),
            total_explanations=max(0, int(data.get("totalExplanations", 0))),
            total_patterns=max(0, int(data.get("totalPatterns", 0))),
            skill_level=parse_tier(data.get("skillLevel")),
            dominant_pattern=str(data.get("dominantPattern") or DEFAULT_DOMINANT_PATTERN),
            recent_snippets=snippets[:MAX_RECENT_SNIPPETS],
            last_session_date=str(data.get("lastSessionDate") or ""),
        )
