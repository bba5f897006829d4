from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import datetime as dt
import logging
import random

from .db import get_db
from .deps import get_current_user, get_current_user_id
from .errors import ConflictError
from .models import User
from .security import generate_api_key
from . import store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["account"])

API_KEY_ATTEMPTS = 3


@router.get("/users")
def list_users(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    users = [store.public_user(u) for u in store.list_users(db)]
    return {"count": len(users), "users": users}


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return {"user": store.public_user(user, include_api_key=True)}


@router.post("/apikey/generate")
def generate_key(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    for attempt in range(API_KEY_ATTEMPTS):
        try:
            user = store.update(db, user.id, api_key=generate_api_key())
            break
        except ConflictError:
            if attempt == API_KEY_ATTEMPTS - 1:
                raise
    logger.info("Generated API key for user %s", user.id)
    return {"success": True, "apiKey": user.api_key}


@router.get("/data/{symbol}")
def data(symbol: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    usage = store.increment_usage(db, user.id)
    return {
        "symbol": symbol.upper(),
        "value": f"{random.random() * 100:.2f}",
        "category": "infrastructure analytics",
        "trend": "up" if random.random() > 0.5 else "down",
        "timestamp": dt.datetime.now(dt.timezone.utc),
        "usage": usage,
    }
