from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from typing import Optional

from .config import Settings
from .db import get_db
from .errors import AuthError, NotFoundError
from .models import User
from .security import TokenIssuer
from . import store

bearer_scheme = HTTPBearer(auto_error=False, scheme_name="bearerAuth")


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


def get_current_user_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
    issuer: TokenIssuer = Depends(get_token_issuer),
    db: Session = Depends(get_db),
) -> str:
    """Resolve the caller to a user id, or stop the request with 401."""
    if credentials is not None and credentials.credentials:
        user_id = issuer.verify(credentials.credentials)
    elif api_key:
        user = store.find_by_api_key(db, api_key)
        if user is None:
            raise AuthError("Invalid API key")
        user_id = user.id
    else:
        raise AuthError("No token provided")
    request.state.user_id = user_id
    return user_id


def get_current_user(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)) -> User:
    user = store.find_by_id(db, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user
