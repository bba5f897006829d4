from sqlalchemy.orm import declarative_base
from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint
import datetime as dt
import uuid

Base = declarative_base()

SUBSCRIPTION_TIERS = ("free", "pro", "enterprise", "paid")


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class User(Base):
    __tablename__ = "users"
    __table_args__ = (CheckConstraint("usage >= 0", name="ck_users_usage_non_negative"),)

    id = Column(String(32), primary_key=True, default=_new_id)
    username = Column(String, unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    subscription = Column(String, nullable=False, default="free")
    api_key = Column(String(64), unique=True, nullable=True, index=True)
    usage = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class ProcessedCheckout(Base):
    """Stripe checkout sessions whose completion has already been applied."""

    __tablename__ = "processed_checkouts"

    session_id = Column(String, primary_key=True)
    user_id = Column(String(32), nullable=False, index=True)
    event_id = Column(String, nullable=True)
    plan = Column(String, nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
