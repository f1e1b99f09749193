"""
HTTP client for the Metis Clew backend.

Works with or without an access token; without one every call runs in
guest mode and nothing is stored remotely.
"""

import logging
import os
from typing import Any, Dict, List, Optional

import requests
from dotenv import load_dotenv

from metis_clew.exceptions import ApiError
from metis_clew.remote_progress import RemoteStats

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:8000"
RATING_VALUES = {"up": 1, "meh": 0, "down": -1}


class MetisClewClient:
    """Thin wrapper over the backend's REST endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None
    ):
        self.base_url = (base_url or os.getenv("METIS_CLEW_API_URL", DEFAULT_API_URL)).rstrip("/")
        self.access_token = access_token or os.getenv("METIS_CLEW_TOKEN") or None
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                json=payload,
                headers=self._headers(),
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise ApiError(f"Could not reach {url}: {e}") from e

        if response.status_code >= 400:
            try:
                body = response.json()
                message = body.get("detail") or body.get("error") or response.text
            except ValueError:
                message = response.text
            raise ApiError(str(message) or f"HTTP {response.status_code}", status_code=response.status_code)

        return response.json()

    def submit_snippet(self, code: str, language: str) -> Dict[str, Any]:
        """Returns {"id", "code", "language"}; id is None in guest mode."""
        return self._request("POST", "/api/snippets", {"code": code, "language": language})

    def explain(
        self,
        code_snippet: str,
        selected_code: str,
        language: str,
        snippet_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Returns {"explanation": {...}, "explanationId": str | None}."""
        return self._request("POST", "/api/explain", {
            "code_snippet": code_snippet,
            "selected_code": selected_code,
            "language": language,
            "snippet_id": snippet_id,
        })

    def rate_explanation(self, explanation_id: str, rating: int) -> Dict[str, Any]:
        return self._request("POST", f"/api/explanations/{explanation_id}/rating", {"rating": rating})

    def fetch_stats(self) -> Optional[RemoteStats]:
        """
        Cross-device stats for the signed-in user.

        Returns:
            RemoteStats, or None in guest mode or when the token is rejected
        """
        if not self.is_authenticated:
            return None
        try:
            data = self._request("GET", "/api/session-stats")
        except ApiError as e:
            if e.is_auth_error:
                logger.info("Access token rejected, falling back to guest stats")
                return None
            raise
        return RemoteStats.from_dict(data)

    def list_learning_patterns(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/learning-patterns")

    def list_recent_snippets(self) -> List[Dict[str, Any]]:
        if not self.is_authenticated:
            return []
        return self._request("GET", "/api/recent-snippets")
