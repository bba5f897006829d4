"""Credential store: user persistence on top of a SQLAlchemy session."""
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import func, or_, update as sa_update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import ConflictError, NotFoundError
from .models import User, SUBSCRIPTION_TIERS

logger = logging.getLogger(__name__)

MUTABLE_FIELDS = {"subscription", "api_key", "usage"}


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def public_user(user: User, include_api_key: bool = False) -> Dict[str, Any]:
    """Outward view of a user; the password hash is never part of it.

    The API key is a credential, so only the owner's own view should pass
    ``include_api_key=True``.
    """
    out = {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "subscription": user.subscription,
        "usage": user.usage,
        "createdAt": user.created_at,
    }
    if include_api_key:
        out["apiKey"] = user.api_key
    return out


def create(db: Session, username: str, email: str, password_hash: str) -> User:
    username = (username or "").strip()
    email = normalize_email(email)
    clash = db.query(User).filter(or_(User.email == email, User.username == username)).first()
    if clash is not None:
        raise ConflictError("User already exists")
    user = User(username=username, email=email, password_hash=password_hash)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # a concurrent registration won the unique index
        db.rollback()
        raise ConflictError("User already exists")
    db.refresh(user)
    return user


def find_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def find_by_id(db: Session, user_id: str) -> Optional[User]:
    if not user_id:
        return None
    return db.get(User, user_id)


def find_by_api_key(db: Session, api_key: str) -> Optional[User]:
    if not api_key:
        return None
    return db.query(User).filter(User.api_key == api_key).first()


def list_users(db: Session) -> List[User]:
    return db.query(User).order_by(User.created_at).all()


def count_users(db: Session) -> int:
    return db.query(func.count(User.id)).scalar() or 0


def update(db: Session, user_id: str, **fields) -> User:
    unknown = set(fields) - MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"fields not updatable: {sorted(unknown)}")
    if "subscription" in fields and fields["subscription"] not in SUBSCRIPTION_TIERS:
        raise ValueError(f"unknown subscription tier: {fields['subscription']}")
    if "usage" in fields and int(fields["usage"]) < 0:
        raise ValueError("usage must be non-negative")

    user = find_by_id(db, user_id)
    if user is None:
        raise NotFoundError("User not found")
    for k, v in fields.items():
        setattr(user, k, v)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Value already in use")
    db.refresh(user)
    return user


def increment_usage(db: Session, user_id: str) -> int:
    result = db.execute(
        sa_update(User).where(User.id == user_id).values(usage=User.usage + 1)
    )
    if result.rowcount == 0:
        db.rollback()
        raise NotFoundError("User not found")
    db.commit()
    return db.query(User.usage).filter(User.id == user_id).scalar()
