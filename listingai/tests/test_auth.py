"""Tests for Clerk JWT verification and user resolution."""

import time

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient

from listingai.core.config import settings


@pytest.fixture(scope="module")
def rsa_keys():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


def make_token(private_pem, sub="user_jwt", expires_in=300, **claims):
    now = int(time.time())
    payload = {"sub": sub, "iat": now, "exp": now + expires_in, **claims}
    return jwt.encode(payload, private_pem, algorithm="RS256")


@pytest.fixture
def jwt_settings(monkeypatch, rsa_keys):
    monkeypatch.setattr(settings, "CLERK_JWT_KEY", rsa_keys[1])
    monkeypatch.setattr(settings, "CLERK_ISSUER", None)
    monkeypatch.setattr(settings, "CLERK_JWKS_URL", None)
    monkeypatch.setattr(settings, "CLERK_AUDIENCE", None)
    return rsa_keys


def test_valid_jwt_resolves_user(client, memory_store, jwt_settings):
    token = make_token(jwt_settings[0])
    resp = client.get("/api/entitlements/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.json()["subscriptionStatus"] == "none"


def test_expired_jwt_rejected(client, jwt_settings):
    token = make_token(jwt_settings[0], expires_in=-60)
    resp = client.get("/api/entitlements/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Token expired"


def test_jwt_signed_by_other_key_rejected(client, jwt_settings):
    other = rsa.generate_private_key(public_exponent=65537, key_size=2048).private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    resp = client.get("/api/entitlements/me", headers={"Authorization": f"Bearer {make_token(other)}"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid token"


def test_issuer_checked_when_configured(client, jwt_settings, monkeypatch):
    monkeypatch.setattr(settings, "CLERK_ISSUER", "https://clerk.example.com")
    token = make_token(jwt_settings[0], iss="https://evil.example.com")
    resp = client.get("/api/entitlements/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


def test_bearer_without_verification_key_rejected(client, monkeypatch, rsa_keys):
    for key in ("CLERK_JWT_KEY", "CLERK_ISSUER", "CLERK_JWKS_URL"):
        monkeypatch.setattr(settings, key, None)
    resp = client.get("/api/entitlements/me", headers={"Authorization": f"Bearer {make_token(rsa_keys[0])}"})
    assert resp.status_code == 401


def test_x_user_id_fallback_outside_production(client):
    resp = client.get("/api/entitlements/me", headers={"X-User-Id": "dev_user"})
    assert resp.status_code == 200


def test_x_user_id_ignored_in_production(client, monkeypatch):
    monkeypatch.setattr(settings, "ENV", "production")
    resp = client.get("/api/entitlements/me", headers={"X-User-Id": "dev_user"})
    assert resp.status_code == 401


def test_entitlements_me_reports_limits(app_state, mock_pipeline):
    from listingai.features.entitlements.service import EntitlementService
    from listingai.features.entitlements.store import InMemoryEntitlementStore

    store = InMemoryEntitlementStore({"u1": {"subscriptionStatus": "none", "listingCount": 2}})
    client = TestClient(app_state(entitlements=EntitlementService(store, free_quota=2), pipeline=mock_pipeline))

    body = client.get("/api/entitlements/me", headers={"X-User-Id": "u1"}).json()

    assert body["listingCount"] == 2
    assert body["freeQuota"] == 2
    assert body["canCreateListing"] is False
    assert body["reasonCode"] == "quota_exhausted"
    assert store.writes == 0
