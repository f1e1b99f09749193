"""
FastAPI Backend for Metis Clew - WITH SUPABASE INTEGRATION

Provides REST API endpoints with:
- Optional JWT authentication (guest mode when no identity is sent)
- AI code explanations
- Supabase persistence for snippets, explanations and ratings
- Cross-device progress tracking
"""

from fastapi import FastAPI, HTTPException, Depends
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import Optional, List, Dict, Any, Literal
import os
import sys
import signal

# Setup enhanced logging with pretty formatting
from lib.logger import setup_logging, get_logger

setup_logging()

logger = get_logger("backend.main")
explain_logger = get_logger("backend.explain")
snippet_logger = get_logger("backend.snippets")
rating_logger = get_logger("backend.ratings")
progress_logger = get_logger("backend.progress")

# Make the metis_clew package importable when running from a checkout
backend_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(backend_dir)
package_src = os.path.join(project_root, 'metis_clew', 'src')
if os.path.exists(package_src) and package_src not in sys.path:
    sys.path.insert(0, package_src)

from lib.supabase_client import get_supabase_client, supabase_configured
from lib.auth import get_current_user, get_optional_user

from metis_clew.exceptions import MetisClewError, MissingFieldsError
from metis_clew.explainer import CodeExplainer, validate_request
from metis_clew.remote_progress import RemoteProgressTracker
from metis_clew.repository import ExplanationRepository

API_VERSION = "1.0.0"

# Singletons to avoid re-creating clients on every request
_explainer: Optional[CodeExplainer] = None
_repository: Optional[ExplanationRepository] = None
_remote_progress: Optional[RemoteProgressTracker] = None


def get_explainer() -> CodeExplainer:
    """Get or create singleton CodeExplainer."""
    global _explainer
    if _explainer is None:
        try:
            _explainer = CodeExplainer()
        except ValueError as e:
            logger.error("Explanation service not configured", error=e)
            raise HTTPException(status_code=503, detail="Explanation service not configured")
    return _explainer


def get_repository() -> Optional[ExplanationRepository]:
    """Get or create the repository; None when Supabase is not configured."""
    global _repository
    if _repository is None and supabase_configured():
        _repository = ExplanationRepository(get_supabase_client())
    return _repository


def get_remote_progress() -> RemoteProgressTracker:
    """Get or create the remote progress tracker (disabled without Supabase)."""
    global _remote_progress
    if _remote_progress is None:
        _remote_progress = RemoteProgressTracker(get_supabase_client() if supabase_configured() else None)
    return _remote_progress


def _cors_origins() -> List[str]:
    configured = os.getenv("CORS_ORIGINS")
    if configured:
        return [origin.strip() for origin in configured.split(",") if origin.strip()]
    return [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
    ]


# Initialize FastAPI app
app = FastAPI(
    title="Metis Clew API",
    description="AI code explanations with skill progression tracking",
    version=API_VERSION
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

# ==================== Pydantic Models ====================


class SnippetRequest(BaseModel):
    code: str
    language: str = "python"


class SnippetResponse(BaseModel):
    id: Optional[str] = None  # None in guest mode
    code: str
    language: str


class ExplainRequest(BaseModel):
    # Optional here so missing fields produce the 400 below rather than a 422
    code_snippet: Optional[str] = None
    selected_code: Optional[str] = None
    language: Optional[str] = None
    snippet_id: Optional[str] = None


class ExplainResponse(BaseModel):
    explanation: Dict[str, Any]
    explanationId: Optional[str] = None


class RatingRequest(BaseModel):
    rating: Literal[-1, 0, 1]


class RatingResponse(BaseModel):
    explanation_id: str
    rating: int


class SessionStatsResponse(BaseModel):
    session_count: int
    total_patterns: int
    total_explanations: int
    skill_level: str
    dominant_pattern: str


# ==================== API Endpoints ====================

@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": "Metis Clew API",
        "version": API_VERSION,
        "supabase_configured": supabase_configured(),
        "explainer_configured": bool(os.getenv("OPENAI_API_KEY")),
    }


@app.post("/api/snippets", response_model=SnippetResponse)
async def submit_snippet(
    request: SnippetRequest,
    user: Optional[dict] = Depends(get_optional_user),
    repository: Optional[ExplanationRepository] = Depends(get_repository),
    remote_progress: RemoteProgressTracker = Depends(get_remote_progress)
):
    """
    Load a code snippet.

    Guests get the snippet echoed back without an id. Signed-in users get it
    stored, added to their recent list, and today's session recorded.
    """
    snippet_logger.request("POST", "/api/snippets", user_id=user["id"] if user else None, data={
        "language": request.language,
        "code_length": len(request.code),
    })

    if not request.code.strip():
        raise HTTPException(status_code=400, detail="Code must not be empty")

    if not user or repository is None:
        return SnippetResponse(id=None, code=request.code, language=request.language)

    try:
        row = repository.create_snippet(user["id"], request.code, request.language)
    except Exception as e:
        snippet_logger.error("Failed to store snippet", error=e)
        raise HTTPException(status_code=500, detail=f"Failed to store snippet: {e}")

    repository.touch_recent_snippet(user["id"], request.code, request.language)
    remote_progress.record_session(user["id"])

    snippet_logger.success("Snippet stored", data={"snippet_id": row.get("id")})
    return SnippetResponse(id=row.get("id"), code=row.get("code", request.code), language=row.get("language", request.language))


@app.post("/api/explain", response_model=ExplainResponse)
async def explain_code(
    request: ExplainRequest,
    user: Optional[dict] = Depends(get_optional_user),
    repository: Optional[ExplanationRepository] = Depends(get_repository),
    remote_progress: RemoteProgressTracker = Depends(get_remote_progress)
):
    """
    Explain the selected part of a snippet.

    Guests receive the explanation without anything being stored. For
    signed-in users the explanation is saved when a snippet_id is given, and
    the explanation counts towards their remote progress.
    """
    explain_logger.request("POST", "/api/explain", user_id=user["id"] if user else None, data={
        "language": request.language,
        "snippet_id": request.snippet_id,
        "selection_length": len(request.selected_code or ""),
    })

    try:
        validate_request(request.code_snippet, request.selected_code, request.language)
    except MissingFieldsError as e:
        raise e.to_http_exception()

    explainer = get_explainer()

    with explain_logger.timed("/api/explain") as log_context:
        try:
            explanation = await explainer.explain(request.code_snippet, request.selected_code, request.language)
        except MetisClewError as e:
            explain_logger.error("Explanation failed", error=e)
            raise e.to_http_exception()
        except Exception as e:
            explain_logger.error("Unexpected error in explain_code", error=e)
            raise HTTPException(status_code=500, detail=str(e) or "Unknown error")

        explanation_id = None
        usable = "error" not in explanation

        if user and usable:
            # Only persist when we have both a user and a snippet_id
            if request.snippet_id and repository is not None:
                explanation_id = repository.save_explanation(
                    user["id"], request.snippet_id, request.selected_code, explanation
                )
            remote_progress.record_explanation(user["id"])

        log_context.update(explanation_id=explanation_id, usable=usable)

    return ExplainResponse(explanation=explanation, explanationId=explanation_id)


@app.post("/api/explanations/{explanation_id}/rating", response_model=RatingResponse)
async def rate_explanation(
    explanation_id: str,
    request: RatingRequest,
    user: dict = Depends(get_current_user),
    repository: Optional[ExplanationRepository] = Depends(get_repository)
):
    """Save the user's rating (-1, 0, 1); rating again replaces the previous one."""
    rating_logger.request("POST", f"/api/explanations/{explanation_id}/rating", user_id=user["id"], data={
        "rating": request.rating,
    })

    if repository is None:
        raise HTTPException(status_code=503, detail="Rating storage not configured")

    try:
        row = repository.save_rating(explanation_id, user["id"], request.rating)
    except Exception as e:
        rating_logger.error("Error saving rating", error=e)
        raise HTTPException(status_code=500, detail=f"Error saving rating: {e}")

    return RatingResponse(explanation_id=explanation_id, rating=row.get("rating", request.rating))


@app.get("/api/session-stats", response_model=SessionStatsResponse)
async def get_session_stats(
    user: dict = Depends(get_current_user),
    remote_progress: RemoteProgressTracker = Depends(get_remote_progress)
):
    """Cross-device progress for the signed-in user."""
    stats = remote_progress.get_stats(user["id"])
    if stats is None:
        progress_logger.warning("Session stats unavailable", data={"user_id": user["id"][:20]})
        raise HTTPException(status_code=503, detail="Progress data unavailable")

    return SessionStatsResponse(**stats.to_dict())


@app.get("/api/learning-patterns")
async def get_learning_patterns(
    user: Optional[dict] = Depends(get_optional_user),
    repository: Optional[ExplanationRepository] = Depends(get_repository)
):
    """Learning patterns by frequency; empty for guests."""
    if not user or repository is None:
        return []

    try:
        return repository.list_learning_patterns(user["id"])
    except Exception as e:
        progress_logger.error("Error loading learning patterns", error=e)
        raise HTTPException(status_code=500, detail="Error loading learning patterns")


@app.get("/api/recent-snippets")
async def get_recent_snippets(
    user: dict = Depends(get_current_user),
    repository: Optional[ExplanationRepository] = Depends(get_repository)
):
    """The user's five most recently accessed snippets."""
    if repository is None:
        return []

    try:
        return repository.list_recent_snippets(user["id"])
    except Exception as e:
        snippet_logger.error("Error loading recent snippets", error=e)
        raise HTTPException(status_code=500, detail="Error loading recent snippets")


if __name__ == "__main__":
    import uvicorn

    def handle_exit(*args):
        """Handle graceful shutdown."""
        logger.info("🛑 Server stopped.")
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_exit)
    signal.signal(signal.SIGTERM, handle_exit)

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
