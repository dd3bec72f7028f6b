from __future__ import annotations

import pytest

from frontdesk.auth_security import create_access_token, get_claims, hash_password, verify_password
from frontdesk.auth_service import Principal, StaticCredentialVerifier
from frontdesk.config import settings


def test_password_hash_roundtrip():
    h = hash_password("clinic123")
    assert h != "clinic123"
    assert verify_password("clinic123", h)
    assert not verify_password("clinic124", h)


def test_static_verifier_accepts_only_its_credential():
    v = StaticCredentialVerifier("Admin", "clinic123")

    assert v.verify(" admin ", "clinic123") == Principal(username="admin", role="admin")
    assert v.verify("admin", "wrong") is None
    assert v.verify("other", "clinic123") is None
    assert v.verify("admin", "") is None


def test_static_verifier_from_existing_hash():
    v = StaticCredentialVerifier("desk", password_hash=hash_password("s3cret"), role="receptionist")
    assert v.verify("desk", "s3cret").role == "receptionist"


def test_static_verifier_needs_a_password():
    with pytest.raises(ValueError):
        StaticCredentialVerifier("admin")


def test_token_claims():
    token = create_access_token(subject="admin", extra={"role": "admin"})
    claims = get_claims(token)
    assert claims["sub"] == "admin"
    assert claims["role"] == "admin"
    assert claims["exp"] > claims["iat"]


def test_expired_token_is_rejected(monkeypatch):
    monkeypatch.setattr(settings, "jwt_expire_minutes", -5)
    assert get_claims(create_access_token(subject="admin")) is None


def test_token_signed_with_another_secret_is_rejected(monkeypatch):
    token = create_access_token(subject="admin")
    monkeypatch.setattr(settings, "jwt_secret", "another-secret")
    assert get_claims(token) is None
