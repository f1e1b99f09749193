"""
Workspace State

Remembers what the learner was looking at (current snippet, explanation and
explanation id) so a client can pick up where it left off. Stored under its
own key; clearing it never touches the session record.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

WORKSPACE_STORAGE_KEY = "metis-session"


@dataclass
class CurrentSnippet:
    code: str
    language: str
    id: Optional[str] = None  # Remote id, None in guest mode


class WorkspaceState:
    """Current snippet and explanation, persisted after every change."""

    def __init__(self, storage, storage_key: str = WORKSPACE_STORAGE_KEY):
        self.storage = storage
        self.storage_key = storage_key
        self.snippet: Optional[CurrentSnippet] = None
        self.explanation: Optional[Dict[str, Any]] = None
        self.explanation_id: Optional[str] = None
        self._load()

    def _load(self):
        try:
            stored = self.storage.get_item(self.storage_key)
            if not stored:
                return
            data = json.loads(stored)
            snippet = data.get("snippet")
            if snippet:
                self.snippet = CurrentSnippet(
                    code=snippet["code"],
                    language=snippet["language"],
                    id=snippet.get("id"),
                )
            self.explanation = data.get("explanation")
            self.explanation_id = data.get("explanationId")
        except Exception as e:
            # Corrupted workspace is not worth surfacing; start empty
            logger.warning(f"Ignoring unreadable workspace state: {e}")
            self.snippet = None
            self.explanation = None
            self.explanation_id = None

    def to_dict(self) -> Dict[str, Any]:
        snippet = None
        if self.snippet:
            snippet = {"id": self.snippet.id, "code": self.snippet.code, "language": self.snippet.language}
        return {
            "snippet": snippet,
            "explanation": self.explanation,
            "explanationId": self.explanation_id,
        }

    def _persist(self):
        try:
            self.storage.set_item(self.storage_key, json.dumps(self.to_dict()))
        except Exception as e:
            logger.error(f"Failed to save workspace state: {e}")

    def set_snippet(self, code: str, language: str, snippet_id: Optional[str] = None):
        """Load a new snippet; any previous explanation no longer applies."""
        self.snippet = CurrentSnippet(code=code, language=language, id=snippet_id)
        self.explanation = None
        self.explanation_id = None
        self._persist()

    def set_snippet_id(self, snippet_id: str):
        if self.snippet:
            self.snippet.id = snippet_id
            self._persist()

    def set_explanation(self, explanation: Dict[str, Any], explanation_id: Optional[str] = None):
        self.explanation = explanation
        self.explanation_id = explanation_id
        self._persist()

    def clear(self):
        """Reset to an empty workspace (history and skill data are kept)."""
        self.snippet = None
        self.explanation = None
        self.explanation_id = None
        self._persist()
