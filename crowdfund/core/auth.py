"""
Session identity for the crowdfund API.

Validates HS256 session JWTs and resolves the session user.
Falls back to the X-User-Id header outside production (tests, local dev).
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

from fastapi import HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session
import jwt

from crowdfund.core.config import settings
from crowdfund.core.database import users

logger = logging.getLogger(__name__)

SESSION_TTL = timedelta(days=30)


def issue_session_token(user_id: str, now: Optional[datetime] = None) -> str:
    """Sign a session token for user_id with SESSION_SECRET."""
    if not settings.SESSION_SECRET:
        raise RuntimeError("SESSION_SECRET is not configured")
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "iat": issued_at,
        "exp": issued_at + SESSION_TTL,
    }
    return jwt.encode(payload, settings.SESSION_SECRET, algorithm="HS256")


def verify_session_token(token: str) -> Optional[str]:
    """
    Verify a session JWT and extract the user id.

    Returns:
        user_id from the 'sub' claim, or None when no SESSION_SECRET is configured

    Raises:
        HTTPException 401: Invalid or expired token
    """
    if not settings.SESSION_SECRET:
        logger.debug("No SESSION_SECRET configured, skipping JWT validation")
        return None

    try:
        payload = jwt.decode(
            token,
            settings.SESSION_SECRET,
            algorithms=["HS256"],
            options={"verify_signature": True, "verify_exp": True},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid token: {e}")
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user_id


def get_session_user_id(request: Request) -> Optional[str]:
    """
    Extract the session user id from the request.

    Priority:
    1. Session JWT from Authorization header
    2. X-User-Id header (not honored in production)
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        user_id = verify_session_token(auth_header[7:])
        if user_id:
            return user_id

    header_user_id = request.headers.get("X-User-Id")
    if header_user_id and settings.ENV.lower() != "production":
        return header_user_id

    return None


def load_session_user(request: Request, db: Session):
    """Load the session user's row; unknown ids resolve to no user."""
    user_id = get_session_user_id(request)
    if not user_id:
        return None
    row = db.execute(select(users).where(users.c.id == user_id)).first()
    if row is None:
        logger.info(f"Session references unknown user {user_id}")
    return row
