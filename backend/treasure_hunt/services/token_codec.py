from __future__ import annotations
import hashlib
import hmac
import math
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone as dt_tz
from treasure_hunt.config import settings
from treasure_hunt.errors import BadSignature, ConfigError, Expired, MalformedToken
from treasure_hunt.schemas.common import epoch_millis

NONCE_BYTES = 16
SEPARATOR = "|"


@dataclass(frozen=True)
class TokenInfo:
    location_id: str
    nonce: str
    expires_at_ms: int

    @property
    def expires_at(self) -> datetime:
        return datetime.fromtimestamp(self.expires_at_ms / 1000, tz=dt_tz.utc)


@dataclass(frozen=True)
class IssuedToken:
    token: str
    nonce: str


def _secret(secret: str | None) -> bytes:
    key = settings.qr_secret if secret is None else secret
    if not key:
        raise ConfigError("QR secret is not configured on the server.")
    return key.encode()


def sign(payload: str, secret: str | None = None) -> str:
    return hmac.new(_secret(secret), payload.encode(), hashlib.sha256).hexdigest()


def _safe_equal(a: str, b: str) -> bool:
    a_b, b_b = a.encode(), b.encode()
    # differing lengths are a non-match without touching the bytes
    if len(a_b) != len(b_b):
        return False
    return hmac.compare_digest(a_b, b_b)


def issue_token(location_id: str, expires_at: datetime, secret: str | None = None) -> IssuedToken:
    """
    Build `locationId|nonce|expiresAtEpochMillis|hexHmacSha256`.

    Stateless: the caller must have checked that the location exists. There is no
    server-side nonce ledger; a second use is rejected by the team's solved map.
    """
    key = _secret(secret)
    nonce = secrets.token_hex(NONCE_BYTES)
    payload = SEPARATOR.join((location_id, nonce, str(epoch_millis(expires_at))))
    signature = hmac.new(key, payload.encode(), hashlib.sha256).hexdigest()
    return IssuedToken(token=f"{payload}{SEPARATOR}{signature}", nonce=nonce)


def verify_token(token: str, now: datetime | None = None, secret: str | None = None) -> TokenInfo:
    """
    Check field count, then signature, then expiry (in that order).

    Raises MalformedToken (invalid-argument), BadSignature / Expired (permission-denied)
    or ConfigError when no secret is configured.
    """
    parts = token.split(SEPARATOR)
    if len(parts) != 4:
        raise MalformedToken("Invalid token format.")
    location_id, nonce, exp, signature = parts
    expected = sign(SEPARATOR.join((location_id, nonce, exp)), secret)
    if not _safe_equal(signature, expected):
        raise BadSignature("Invalid token signature.")

    try:
        exp_ms = float(exp)
    except ValueError:
        raise MalformedToken("Invalid token expiration.")
    if not math.isfinite(exp_ms):
        raise MalformedToken("Invalid token expiration.")

    now_ms = epoch_millis(now or datetime.now(dt_tz.utc))
    if now_ms > exp_ms:
        raise Expired("Token has expired.")
    return TokenInfo(location_id=location_id, nonce=nonce, expires_at_ms=int(exp_ms))
