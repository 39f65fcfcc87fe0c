"""
Tests for authentication: password hashing, the principal resolver and
POST /auth/login.
"""

import uuid

import jwt
import pytest
from sqlalchemy import select

from farmagenius.models import AuditLog
from farmagenius.services.auth import PrincipalResolver, hash_password, verify_password

from conftest import DEFAULT_PASSWORD


class TestPasswordHashing:

    @pytest.mark.asyncio
    async def test_hash_is_not_plaintext_and_verifies(self):
        hashed = await hash_password("Senha@123", rounds=4)
        assert hashed != "Senha@123"
        assert hashed.startswith("$2")
        assert await verify_password("Senha@123", hashed) is True
        assert await verify_password("Errada@123", hashed) is False

    @pytest.mark.asyncio
    async def test_malformed_hash_does_not_verify(self):
        assert await verify_password("Senha@123", "not-a-bcrypt-hash") is False


class TestPrincipalResolver:

    def setup_method(self):
        self.now = 1_700_000_000.0
        self.resolver = PrincipalResolver(
            secret_key="unit-test-secret",
            ttl_seconds=3600,
            clock=lambda: self.now,
        )
        self.user_id = uuid.uuid4()

    def test_round_trip(self):
        token = self.resolver.issue_token(self.user_id, "ana@farma.test", "Ana")
        principal = self.resolver.decode(token)
        assert principal.id == self.user_id
        assert principal.email == "ana@farma.test"
        assert principal.name == "Ana"

    def test_expired_token_is_rejected(self):
        token = self.resolver.issue_token(self.user_id, "ana@farma.test", "Ana")
        self.now += 3600
        assert self.resolver.decode(token) is None

    def test_foreign_signature_is_rejected(self):
        other = PrincipalResolver(secret_key="another-secret", clock=lambda: self.now)
        token = other.issue_token(self.user_id, "ana@farma.test", "Ana")
        assert self.resolver.decode(token) is None

    def test_non_uuid_subject_is_rejected(self):
        token = jwt.encode(
            {"sub": "not-a-uuid", "exp": int(self.now) + 60},
            "unit-test-secret",
            algorithm="HS256",
        )
        assert self.resolver.decode(token) is None

    def test_garbage_is_rejected(self):
        assert self.resolver.decode("garbage") is None


class TestLoginRoute:

    @pytest.mark.asyncio
    async def test_login_success_returns_token_and_cookie(self, client, create_user, session_factory):
        user = await create_user()

        response = await client.post(
            "/auth/login",
            json={"email": "ANA@farma.test", "password": DEFAULT_PASSWORD},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["user"] == {"id": str(user.id), "name": user.name, "email": user.email}
        assert "passwordHash" not in body["user"]
        assert response.cookies.get("session") == body["token"]

        async with session_factory() as session:
            actions = (await session.execute(select(AuditLog.action))).scalars().all()
        assert actions == ["LOGIN_SUCCESS"]

    @pytest.mark.asyncio
    async def test_token_authenticates_later_requests(self, client, create_user):
        await create_user()
        login = await client.post(
            "/auth/login",
            json={"email": "ana@farma.test", "password": DEFAULT_PASSWORD},
        )
        token = login.json()["token"]

        response = await client.get("/user/settings", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_wrong_password_is_401_and_audited(self, client, create_user, session_factory):
        user = await create_user()

        response = await client.post(
            "/auth/login",
            json={"email": "ana@farma.test", "password": "Errada@123"},
        )

        assert response.status_code == 401
        assert response.json()["error"] == "Email ou senha inválidos"

        async with session_factory() as session:
            entry = (await session.execute(select(AuditLog))).scalar_one()
        assert entry.action == "LOGIN_FAILED"
        assert entry.user_id == user.id
        assert entry.ip_address == "127.0.0.1"

    @pytest.mark.asyncio
    async def test_unknown_email_gets_same_message(self, client):
        response = await client.post(
            "/auth/login",
            json={"email": "ninguem@farma.test", "password": "Errada@123"},
        )
        assert response.status_code == 401
        assert response.json()["error"] == "Email ou senha inválidos"

    @pytest.mark.asyncio
    async def test_sixth_attempt_is_rate_limited(self, client, clock):
        body = {"email": "ninguem@farma.test", "password": "Errada@123"}
        for _ in range(5):
            assert (await client.post("/auth/login", json=body)).status_code == 401

        response = await client.post("/auth/login", json=body)
        assert response.status_code == 429
        assert response.json()["details"]["retryAfter"] == 300
        assert response.headers["Retry-After"] == "300"

        clock.advance(300_000)
        assert (await client.post("/auth/login", json=body)).status_code == 401

    @pytest.mark.asyncio
    async def test_non_json_body_is_rejected(self, client):
        response = await client.post("/auth/login", content="email=a", headers={"Content-Type": "text/plain"})
        assert response.status_code == 400
        assert response.json()["error"] == "Content-Type deve ser application/json"

    @pytest.mark.asyncio
    async def test_error_envelope_carries_request_id(self, client):
        response = await client.post(
            "/auth/login",
            json={"email": "ninguem@farma.test", "password": "Errada@123"},
            headers={"X-Request-ID": "req-abc"},
        )
        assert response.json()["request_id"] == "req-abc"
        assert response.headers["X-Request-ID"] == "req-abc"


class TestAuditedClientDetails:

    @pytest.mark.asyncio
    async def test_forwarded_for_cut_to_column_size(self, client, session_factory):
        response = await client.post(
            "/signup",
            json={"name": "Bruno Lima", "email": "bruno@farma.test", "password": "12345678"},
            headers={"X-Forwarded-For": "9" * 200 + ", 10.0.0.1", "User-Agent": "a" * 600},
        )

        assert response.status_code == 201
        async with session_factory() as session:
            entry = (await session.execute(select(AuditLog))).scalar_one()
        assert entry.ip_address == "9" * 64
        assert len(entry.user_agent) == 512
