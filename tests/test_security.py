import datetime as dt

import jwt
import pytest

from globizora_api.errors import AuthError
from globizora_api.security import TokenIssuer, generate_api_key, hash_password, verify_password


def test_password_hash_roundtrip():
    h = hash_password("secret1")
    assert h != "secret1"
    assert verify_password("secret1", h)
    assert not verify_password("secret2", h)


def test_password_hash_is_salted():
    assert hash_password("secret1") != hash_password("secret1")


def test_verify_password_rejects_garbage_hash():
    assert not verify_password("secret1", "not-a-hash")
    assert not verify_password("secret1", "")


def test_token_roundtrip():
    issuer = TokenIssuer("s3cret")
    token = issuer.issue("user-1")
    assert issuer.verify(token) == "user-1"


def test_token_expires_after_one_hour():
    issuer = TokenIssuer("s3cret", expires_minutes=60)
    issued_at = dt.datetime.now(dt.timezone.utc) - dt.timedelta(minutes=61)
    token = issuer.issue("user-1", now=issued_at)
    with pytest.raises(AuthError) as exc:
        issuer.verify(token)
    assert exc.value.message == "Token expired"


def test_token_still_valid_just_before_expiry():
    issuer = TokenIssuer("s3cret", expires_minutes=60)
    issued_at = dt.datetime.now(dt.timezone.utc) - dt.timedelta(minutes=59)
    assert issuer.verify(issuer.issue("user-1", now=issued_at)) == "user-1"


def test_token_signed_with_other_secret_rejected():
    token = TokenIssuer("other").issue("user-1")
    with pytest.raises(AuthError):
        TokenIssuer("s3cret").verify(token)


def test_malformed_token_rejected():
    with pytest.raises(AuthError):
        TokenIssuer("s3cret").verify("not.a.jwt")


def test_token_without_subject_rejected():
    exp = int((dt.datetime.now(dt.timezone.utc) + dt.timedelta(minutes=5)).timestamp())
    token = jwt.encode({"exp": exp}, "s3cret", algorithm="HS256")
    with pytest.raises(AuthError):
        TokenIssuer("s3cret").verify(token)


def test_blank_secret_refused():
    with pytest.raises(ValueError):
        TokenIssuer("")


def test_api_keys_are_long_and_unique():
    keys = {generate_api_key() for _ in range(1000)}
    assert len(keys) == 1000
    assert all(len(k) == 64 for k in keys)
    int(next(iter(keys)), 16)
