from __future__ import annotations
import os
from datetime import datetime, timedelta, timezone
from typing import Any
import jwt
from passlib.context import CryptContext
from treasure_hunt.config import settings
from treasure_hunt.errors import Unauthenticated

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALG = "HS256"
ACCESS_TTL_MIN = int(os.getenv("ACCESS_TTL_MIN", "60"))
REFRESH_TTL_MIN = int(os.getenv("REFRESH_TTL_MIN", "10080"))  # 7d

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(password: str, password_hash: str | None) -> bool:
    # accounts provisioned without a password (e.g. by bulk import) cannot log in
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)

def _make_token(uid: str, ttl: timedelta, token_type: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": uid,
        "iss": settings.app_name,
        "type": token_type,
        "iat": now.timestamp(),
        "exp": int((now + ttl).timestamp()),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)

def make_access_token(uid: str) -> str:
    return _make_token(uid, timedelta(minutes=ACCESS_TTL_MIN), "access")

def make_refresh_token(uid: str) -> str:
    return _make_token(uid, timedelta(minutes=REFRESH_TTL_MIN), "refresh")

def decode_token(token: str, token_type: str) -> dict[str, Any]:
    """Verify signature, expiry, issuer and token type; any failure is Unauthenticated."""
    try:
        data = jwt.decode(
            token, JWT_SECRET, algorithms=[JWT_ALG], issuer=settings.app_name,
            options={"require": ["sub", "exp", "iss"]},
        )
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token has expired.")
    except jwt.PyJWTError:
        raise Unauthenticated("Invalid token.")
    if data.get("type") != token_type:
        raise Unauthenticated("Wrong token type.")
    return data
