# socialnet/core/security.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
import hashlib
import hmac
import secrets

from jose import jwt, JWTError
from passlib.context import CryptContext

from socialnet.core.config import require_jwt_secret, settings

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

REFRESH_TOKEN_BYTES = 32  # 256 bits


# -------------------------
# Password hashing
# -------------------------
def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # Unrecognized or malformed stored hash.
        return False


# -------------------------
# JWT helpers
# -------------------------
def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def create_access_token(subject: str, *, expires_minutes: int) -> str:
    """
    Access token used for API auth (Authorization: Bearer <token> or the access cookie).
    subject = account id
    """
    require_jwt_secret()

    now = _now_utc()
    exp = now + timedelta(minutes=expires_minutes)

    payload = {
        "sub": subject,
        "purpose": "access",
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }

    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    require_jwt_secret()
    # Let callers decide how to handle JWTError
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])


def verify_token_purpose(token: str, expected_purpose: str) -> dict[str, Any]:
    try:
        payload = decode_token(token)
    except JWTError:
        raise ValueError("Invalid or expired token")

    if payload.get("purpose") != expected_purpose:
        raise ValueError("Invalid token purpose")

    return payload


# -------------------------
# Refresh token helpers
# -------------------------
def generate_refresh_token() -> str:
    """
    Opaque refresh value: 256 random bits, hex encoded.
    """
    return secrets.token_hex(REFRESH_TOKEN_BYTES)


def hash_refresh_token(raw_token: str) -> str:
    """
    HMAC keyed by JWT_SECRET so a leaked users table can't be replayed or brute-forced.
    """
    require_jwt_secret()
    secret = settings.JWT_SECRET.encode("utf-8")
    return hmac.new(secret, raw_token.encode("utf-8"), hashlib.sha256).hexdigest()


def tokens_match(a: str | None, b: str | None) -> bool:
    if a is None or b is None:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))
