from passlib.context import CryptContext
from typing import Any, Dict, Optional
import datetime as dt
import secrets
import jwt

from .errors import AuthError

JWT_ALGORITHM = "HS256"
PASSWORD_ROUNDS = 29000
API_KEY_BYTES = 32

pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    default="pbkdf2_sha256",
    pbkdf2_sha256__default_rounds=PASSWORD_ROUNDS,
    deprecated="auto",
)


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("password_blank")
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        # keep the unknown-user path as slow as a real check
        pwd_context.dummy_verify()
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError):
        # unrecognised or malformed hash
        return False


def generate_api_key() -> str:
    return secrets.token_hex(API_KEY_BYTES)


class TokenIssuer:
    """Mints and checks the signed bearer tokens handed out at login."""

    def __init__(self, secret: str, expires_minutes: int = 60):
        if not secret:
            raise ValueError("jwt_secret_blank")
        self.secret = secret
        self.ttl = dt.timedelta(minutes=expires_minutes)

    def issue(self, user_id: str, now: Optional[dt.datetime] = None) -> str:
        now = now or dt.datetime.now(dt.timezone.utc)
        payload: Dict[str, Any] = {
            "sub": str(user_id),
            "iat": int(now.timestamp()),
            "exp": int((now + self.ttl).timestamp()),
        }
        return jwt.encode(payload, self.secret, algorithm=JWT_ALGORITHM)

    def verify(self, token: str) -> str:
        if not token:
            raise AuthError("No token provided")
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise AuthError("Token expired")
        except jwt.InvalidTokenError:
            raise AuthError("Invalid token")
        sub = payload.get("sub")
        if not sub:
            raise AuthError("Invalid token")
        return str(sub)
