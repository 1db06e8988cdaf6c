"""Credential hashing, access tokens and the current-user dependencies."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from rsvp_app.config import settings
from rsvp_app.database import get_db
from rsvp_app.errors import AuthenticationError
from rsvp_app.models.user import User
from rsvp_app.schemas.user import TokenPayload

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def hash_password(plain_password: str) -> str:
    """Hash a plain password using bcrypt."""
    return bcrypt.hashpw(plain_password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the store
        return False


def create_access_token(user: User, expires_minutes: Optional[int] = None) -> str:
    minutes = expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    payload = TokenPayload(sub=str(user.id), role=user.role.value, exp=int(expire.timestamp()))
    return jwt.encode(payload.model_dump(), settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> TokenPayload:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        return TokenPayload(**payload)
    except (JWTError, ValueError) as exc:
        logger.debug("Rejected access token: %s", exc)
        raise AuthenticationError("Could not validate credentials")


def _load_user(db: Session, token: str) -> User:
    token_data = decode_access_token(token)
    try:
        user_id = int(token_data.sub)
    except ValueError:
        raise AuthenticationError("Could not validate credentials")
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise AuthenticationError("Could not validate credentials")
    return user


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer token to a user row.

    The row is re-read on every request, so the role seen by owner checks is
    never older than the request itself.
    """
    if not token:
        raise AuthenticationError("Access token required")
    return _load_user(db, token)
