from datetime import timedelta

import pytest

from cobrafacil.core import security
from cobrafacil.core.security import create_access_token, decode_token, hash_password, is_valid_password, verify_password


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch):
    monkeypatch.setattr(security.settings, "JWT_SECRET_KEY", "test-secret-key")


def test_password_hash_roundtrip():
    hashed = hash_password("segredo123")
    assert hashed != "segredo123"
    assert verify_password("segredo123", hashed)
    assert not verify_password("errado", hashed)


def test_short_password_rejected():
    assert not is_valid_password("12345")
    with pytest.raises(ValueError):
        hash_password("12345")


def test_verify_with_garbage_hash_is_false():
    assert verify_password("segredo123", "not-a-hash") is False


def test_token_contains_subject():
    token = create_access_token({"sub": "ana@example.com"})
    payload = decode_token(token)
    assert payload["sub"] == "ana@example.com"
    assert "exp" in payload


def test_expired_or_tampered_token_is_rejected():
    expired = create_access_token({"sub": "ana@example.com"}, expires_delta=timedelta(seconds=-1))
    assert decode_token(expired) is None
    assert decode_token("not.a.token") is None
