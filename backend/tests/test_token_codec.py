from __future__ import annotations
from datetime import datetime, timedelta, timezone
import pytest
from treasure_hunt.errors import BadSignature, ConfigError, Expired, MalformedToken
from treasure_hunt.services.token_codec import issue_token, sign, verify_token

SECRET = "codec-secret"
NOW = datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc)


def test_issue_then_verify_returns_location_and_nonce():
    issued = issue_token("loc-1", NOW + timedelta(hours=1), secret=SECRET)
    parts = issued.token.split("|")
    assert len(parts) == 4
    assert parts[0] == "loc-1" and parts[1] == issued.nonce
    assert len(issued.nonce) == 32

    info = verify_token(issued.token, now=NOW, secret=SECRET)
    assert info.location_id == "loc-1"
    assert info.nonce == issued.nonce
    assert info.expires_at == NOW + timedelta(hours=1)


def test_nonces_are_unique():
    exp = NOW + timedelta(days=1)
    assert issue_token("loc", exp, secret=SECRET).nonce != issue_token("loc", exp, secret=SECRET).nonce


@pytest.mark.parametrize("token", ["", "a|b|c", "a|b|c|d|e", "no-separators"])
def test_wrong_field_count_is_malformed(token):
    with pytest.raises(MalformedToken) as e:
        verify_token(token, now=NOW, secret=SECRET)
    assert e.value.code == "invalid-argument"


def test_tampered_location_fails_signature():
    issued = issue_token("loc-1", NOW + timedelta(hours=1), secret=SECRET)
    forged = "loc-2|" + issued.token.split("|", 1)[1]
    with pytest.raises(BadSignature) as e:
        verify_token(forged, now=NOW, secret=SECRET)
    assert e.value.code == "permission-denied"


def test_signature_of_other_secret_rejected():
    issued = issue_token("loc-1", NOW + timedelta(hours=1), secret="other")
    with pytest.raises(BadSignature):
        verify_token(issued.token, now=NOW, secret=SECRET)


def test_short_signature_rejected_without_error():
    issued = issue_token("loc-1", NOW + timedelta(hours=1), secret=SECRET)
    truncated = issued.token[:-4]
    with pytest.raises(BadSignature):
        verify_token(truncated, now=NOW, secret=SECRET)


def test_signature_checked_before_expiry():
    """An expired token with a bad signature reports the signature problem"""
    issued = issue_token("loc-1", NOW - timedelta(hours=1), secret=SECRET)
    loc, nonce, exp, _ = issued.token.split("|")
    with pytest.raises(BadSignature):
        verify_token(f"{loc}|{nonce}|{exp}|{'0' * 64}", now=NOW, secret=SECRET)


def test_expired_token():
    issued = issue_token("loc-1", NOW - timedelta(milliseconds=1), secret=SECRET)
    with pytest.raises(Expired) as e:
        verify_token(issued.token, now=NOW, secret=SECRET)
    assert e.value.code == "permission-denied"


def test_token_valid_at_exact_expiry():
    issued = issue_token("loc-1", NOW, secret=SECRET)
    assert verify_token(issued.token, now=NOW, secret=SECRET).location_id == "loc-1"


def test_non_numeric_expiry_with_valid_signature_is_malformed():
    payload = "loc-1|abcd|soon"
    token = f"{payload}|{sign(payload, SECRET)}"
    with pytest.raises(MalformedToken):
        verify_token(token, now=NOW, secret=SECRET)


def test_missing_secret_is_config_error():
    with pytest.raises(ConfigError) as e:
        issue_token("loc-1", NOW, secret="")
    assert e.value.code == "failed-precondition"
