"""Session-token authentication.

Sign-in itself happens elsewhere; this module issues opaque session tokens
and resolves them back to users. Only an HMAC of each token is stored.
"""
import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request
from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from config import Settings, get_settings
from db.database import get_db
from db.models import AuthSession, User
from errors import AuthError

SESSION_COOKIE = "session_token"


def hash_token(token: str, secret: str) -> str:
    return hmac.new(secret.encode(), token.encode(), hashlib.sha256).hexdigest()


def generate_secret() -> str:
    return secrets.token_urlsafe(32)


def issue_session(db: Session, user: User, settings: Settings) -> str:
    token = secrets.token_urlsafe(32)
    db.add(
        AuthSession(
            token_hash=hash_token(token, settings.session_secret),
            user_id=user.id,
            expires=datetime.now(timezone.utc) + timedelta(days=settings.session_ttl_days),
        )
    )
    db.commit()
    logger.info(f"Issued session for user {user.id}")
    return token


def _token_from_request(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.cookies.get(SESSION_COOKIE)


def _as_aware(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def resolve_user(db: Session, token: Optional[str], settings: Settings) -> Optional[User]:
    if not token:
        return None
    row = db.execute(
        select(AuthSession, User)
        .join(User, User.id == AuthSession.user_id)
        .where(AuthSession.token_hash == hash_token(token, settings.session_secret))
    ).first()
    if row is None:
        return None
    session, user = row
    if _as_aware(session.expires) <= datetime.now(timezone.utc) or not user.is_active:
        return None
    return user


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    user = resolve_user(db, _token_from_request(request), settings)
    if user is None:
        raise AuthError("Authentication required", "Sign in to continue")
    return user


def get_optional_user(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Optional[User]:
    return resolve_user(db, _token_from_request(request), settings)
