from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.orm import Session
import logging

from .db import get_db
from .deps import get_token_issuer
from .errors import AuthError
from .security import TokenIssuer, hash_password, verify_password
from . import store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterIn(BaseModel):
    username: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)

    @field_validator("username", mode="before")
    @classmethod
    def _strip_username(cls, v):
        return v.strip() if isinstance(v, str) else v


class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


@router.post("/register", status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    user = store.create(db, payload.username, payload.email, hash_password(payload.password))
    logger.info("Registered user %s", user.id)
    return {"success": True, "user": {"id": user.id, "username": user.username, "email": user.email}}


@router.post("/login")
def login(payload: LoginIn, db: Session = Depends(get_db), issuer: TokenIssuer = Depends(get_token_issuer)):
    user = store.find_by_email(db, payload.email)
    # same answer whether the email is unknown or the password is wrong
    if not verify_password(payload.password, user.password_hash if user else ""):
        logger.warning("Failed login attempt")
        raise AuthError("Invalid credentials")
    token = issuer.issue(user.id)
    return {"success": True, "token": token, "token_type": "bearer"}
