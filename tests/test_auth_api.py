"""Tests for login, registration and token handling."""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from incidentdesk.config import settings
from incidentdesk.services.auth import ALGORITHM

PASSWORD = "password123"


@pytest.mark.asyncio
class TestLogin:

    async def test_login_returns_token_and_user(self, client, acme_client, acme):
        resp = await client.post("/api/auth/login", json={
            "email": "client@acme.example.com", "password": PASSWORD,
        })
        assert resp.status_code == 200
        body = resp.json()
        assert body["token"]
        assert body["user"]["role"] == "client"
        assert body["user"]["tenantId"] == acme.id
        assert body["user"]["tenant"]["slug"] == "acme"
        assert "hashedPassword" not in body["user"]

        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
        assert me.status_code == 200
        assert me.json()["email"] == "client@acme.example.com"

    async def test_wrong_password(self, client, acme_client):
        resp = await client.post("/api/auth/login", json={
            "email": "client@acme.example.com", "password": "not-the-password",
        })
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "Invalid credentials"

    async def test_unknown_email(self, client):
        resp = await client.post("/api/auth/login", json={
            "email": "nobody@example.com", "password": PASSWORD,
        })
        assert resp.status_code == 401

    async def test_malformed_email(self, client):
        resp = await client.post("/api/auth/login", json={"email": "not-an-email", "password": PASSWORD})
        assert resp.status_code == 400


@pytest.mark.asyncio
class TestTokens:

    async def test_garbage_token(self, client):
        resp = await client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 401

    async def test_expired_token(self, client, operator):
        token = jwt.encode(
            {
                "sub": operator.id,
                "role": "operator",
                "type": "access",
                "exp": datetime.now(timezone.utc) - timedelta(minutes=1),
            },
            settings.JWT_SECRET,
            algorithm=ALGORITHM,
        )
        resp = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    async def test_token_for_deleted_user(self, client, auth, operator, db_session):
        headers = auth(operator)
        await db_session.delete(operator)
        await db_session.commit()
        resp = await client.get("/api/auth/me", headers=headers)
        assert resp.status_code == 401


@pytest.mark.asyncio
class TestRegister:

    async def test_disabled_by_default(self, client):
        resp = await client.post("/api/auth/register", json={
            "email": "new@example.com", "password": PASSWORD, "name": "New User", "role": "operator",
        })
        assert resp.status_code == 403

    async def test_register_client(self, client, acme, monkeypatch):
        monkeypatch.setattr(settings, "ALLOW_SELF_REGISTRATION", True)
        resp = await client.post("/api/auth/register", json={
            "email": "dana@example.com",
            "password": PASSWORD,
            "name": "Dana Client",
            "role": "client",
            "tenantId": acme.id,
        })
        assert resp.status_code == 201
        assert resp.json()["user"]["tenantId"] == acme.id

        again = await client.post("/api/auth/register", json={
            "email": "dana@example.com", "password": PASSWORD, "name": "Dana Again",
            "role": "client", "tenantId": acme.id,
        })
        assert again.status_code == 400

    async def test_client_needs_tenant(self, client, monkeypatch):
        monkeypatch.setattr(settings, "ALLOW_SELF_REGISTRATION", True)
        resp = await client.post("/api/auth/register", json={
            "email": "eve@example.com", "password": PASSWORD, "name": "Eve", "role": "client",
        })
        assert resp.status_code == 400
