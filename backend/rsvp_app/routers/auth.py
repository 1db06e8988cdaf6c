"""Registration, login and current-identity routes."""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rsvp_app.database import get_db
from rsvp_app.errors import AuthenticationError, Conflict
from rsvp_app.models.user import User, UserRole
from rsvp_app.schemas.user import TokenOut, UserCreate, UserLogin, UserOut
from rsvp_app.security import create_access_token, get_current_user, hash_password, verify_password

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/register", response_model=TokenOut, status_code=status.HTTP_201_CREATED)
def register(payload: UserCreate, db: Session = Depends(get_db)):
    """Create a regular user account and return an access token."""
    email = payload.email.lower()
    existing = (
        db.query(User)
        .filter(or_(User.username == payload.username, User.email == email))
        .first()
    )
    if existing:
        raise Conflict("Username or email already registered")

    user = User(
        username=payload.username,
        email=email,
        password_hash=hash_password(payload.password),
        role=UserRole.user,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Username or email already registered")
    db.refresh(user)
    logger.info("Registered user %s (%s)", user.id, user.username)
    return TokenOut(user=UserOut.model_validate(user), access_token=create_access_token(user))


@router.post("/login", response_model=TokenOut)
def login(payload: UserLogin, db: Session = Depends(get_db)):
    """Exchange username (or email) and password for an access token."""
    user = (
        db.query(User)
        .filter(or_(User.username == payload.username, User.email == payload.username.lower()))
        .first()
    )
    if not user or not verify_password(payload.password, user.password_hash):
        raise AuthenticationError("Invalid credentials")
    logger.info("User %s logged in", user.id)
    return TokenOut(user=UserOut.model_validate(user), access_token=create_access_token(user))


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    return current_user
