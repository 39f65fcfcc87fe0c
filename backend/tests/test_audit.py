"""
Tests for the audit trail: AuditService and GET /audit.
"""

from datetime import datetime, timedelta, timezone

import pytest

from farmagenius.dependencies import RequestMeta
from farmagenius.models import AuditLog
from farmagenius.services.audit_service import audit_service


class TestAuditService:

    @pytest.mark.asyncio
    async def test_record_commits_with_transaction(self, db_session, create_user):
        user = await create_user()
        meta = RequestMeta(ip_address="10.0.0.1", user_agent="pytest")

        audit_service.record(db_session, "CREATE", user_id=user.id, table_name="mappings", record_id=42, meta=meta)
        await db_session.rollback()
        assert await audit_service.get_logs(db_session) == []

        audit_service.record(db_session, "CREATE", user_id=user.id, table_name="mappings", record_id=42, meta=meta)
        await db_session.commit()

        logs = await audit_service.get_logs(db_session)
        assert len(logs) == 1
        assert logs[0].record_id == "42"
        assert logs[0].ip_address == "10.0.0.1"
        assert logs[0].user_name == user.name
        assert logs[0].user_email == user.email

    @pytest.mark.asyncio
    async def test_stats(self, db_session, create_user):
        user = await create_user()
        now = datetime.now(timezone.utc)
        for action in ("LOGIN_SUCCESS", "LOGIN_SUCCESS", "LOGIN_SUCCESS", "LOGIN_FAILED", "CREATE"):
            audit_service.record(db_session, action, user_id=user.id, table_name="users")
        db_session.add(
            AuditLog(user_id=user.id, action="UPDATE", table_name="users", created_at=now - timedelta(days=2))
        )
        await db_session.commit()

        stats = await audit_service.get_stats(db_session, user.id, now=now)

        assert stats.total_logs == 6
        assert stats.login_attempts == 4
        assert stats.failed_logins == 1
        assert stats.recent_activity == 5
        assert stats.success_rate == 75.0

    @pytest.mark.asyncio
    async def test_stats_without_logins(self, db_session):
        stats = await audit_service.get_stats(db_session)
        assert stats.total_logs == 0
        assert stats.success_rate == 0

    @pytest.mark.asyncio
    async def test_suspicious_and_by_action(self, db_session):
        for action in ("LOGIN_FAILED", "DATA_EXPORT", "CREATE", "SENSITIVE_PASSWORD_CHANGE"):
            audit_service.record(db_session, action, table_name="users")
        await db_session.commit()

        suspicious = await audit_service.get_suspicious(db_session)
        exports = await audit_service.get_by_action(db_session, "DATA_EXPORT")

        assert sorted(log.action for log in suspicious) == [
            "DATA_EXPORT",
            "LOGIN_FAILED",
            "SENSITIVE_PASSWORD_CHANGE",
        ]
        assert [log.action for log in exports] == ["DATA_EXPORT"]


class TestAuditRoute:

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client):
        response = await client.get("/audit")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_all_includes_logs_stats_and_pagination(self, client, create_user, auth_headers):
        user = await create_user()
        headers = auth_headers(user)
        await client.post("/mappings", json={"name": "Padrão", "mappingData": {"A": "B"}}, headers=headers)

        response = await client.get("/audit", headers=headers)

        assert response.status_code == 200
        body = response.json()
        assert [log["action"] for log in body["logs"]] == ["CREATE"]
        assert body["logs"][0]["tableName"] == "mappings"
        assert body["stats"]["totalLogs"] == 1
        assert body["pagination"] == {"limit": 50, "offset": 0, "total": 1}

    @pytest.mark.asyncio
    async def test_stats_only(self, client, create_user, auth_headers):
        user = await create_user()

        response = await client.get("/audit?type=stats", headers=auth_headers(user))

        body = response.json()
        assert response.status_code == 200
        assert "logs" not in body
        assert body["stats"]["totalLogs"] == 0

    @pytest.mark.asyncio
    async def test_by_action_requires_action(self, client, create_user, auth_headers):
        user = await create_user()
        response = await client.get("/audit?type=by-action", headers=auth_headers(user))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_invalid_limit(self, client, create_user, auth_headers):
        user = await create_user()
        response = await client.get("/audit?limit=0", headers=auth_headers(user))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_type(self, client, create_user, auth_headers):
        user = await create_user()
        response = await client.get("/audit?type=everything", headers=auth_headers(user))
        assert response.status_code == 400
