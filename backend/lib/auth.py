"""
Authentication utilities for JWT validation

Two dependencies:
- get_current_user: identity required, 401 otherwise
- get_optional_user: identity if a valid token is sent, None (guest) otherwise
"""
import logging
import os
from typing import Optional

from fastapi import HTTPException, Header
from jose import JWTError, jwt
from dotenv import load_dotenv

from .supabase_client import get_supabase_client, supabase_configured

load_dotenv()
load_dotenv('../.env')

logger = logging.getLogger("backend.auth")

# Supabase signs access tokens with the project's JWT secret
JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")
JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"


def _extract_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")

    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header format")

    return authorization[len("Bearer "):].strip()


def _verify_with_secret(token: str) -> dict:
    """Verify the token locally against SUPABASE_JWT_SECRET."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM], audience=JWT_AUDIENCE)
    except JWTError as e:
        raise HTTPException(status_code=401, detail="Invalid or expired token") from e

    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return {"id": payload["sub"], "email": payload.get("email")}


def _verify_with_supabase(token: str) -> dict:
    """Ask Supabase Auth who the token belongs to."""
    if not supabase_configured():
        raise HTTPException(status_code=503, detail="Authentication backend not configured")

    try:
        user_response = get_supabase_client().auth.get_user(token)
    except Exception as e:
        logger.warning(f"Auth error: {e}")
        raise HTTPException(status_code=401, detail="Could not validate credentials") from e

    if not user_response or not user_response.user:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user = user_response.user
    return {"id": user.id, "email": user.email}


def verify_token(token: str) -> dict:
    """
    Resolve an access token to a user.

    Returns:
        dict: {"id", "email"}

    Raises:
        HTTPException: If the token is invalid
    """
    if JWT_SECRET:
        return _verify_with_secret(token)
    return _verify_with_supabase(token)


async def get_current_user(authorization: Optional[str] = Header(None)):
    """
    Validate JWT token and return user info

    Raises:
        HTTPException: 401 if the header is missing or the token is invalid
    """
    return verify_token(_extract_token(authorization))


async def get_optional_user(authorization: Optional[str] = Header(None)):
    """
    Return user info when a valid token is present, None otherwise.

    A missing header is normal guest mode; a bad token is logged and also
    treated as a guest so explanations keep working.
    """
    if not authorization:
        return None

    try:
        return verify_token(_extract_token(authorization))
    except HTTPException as e:
        logger.warning(f"Auth check failed, treating as guest: {e.detail}")
        return None
