"""
Tests for saved reports: /save-report, /history and ReportService.
"""

import uuid
from datetime import date

import pytest

from farmagenius.models import Report
from farmagenius.schemas.report import ReportItemIn
from farmagenius.services.report_service import build_item, report_service


def _today() -> str:
    today = date.today()
    return f"{today.day:02d}/{today.month:02d}"


def _report_body(title="Produção do dia", day=None, items=None):
    return {
        "title": title,
        "date": day or _today(),
        "items": items if items is not None else [
            {
                "formaNorm": "Cápsula",
                "linha": "Sólidos",
                "bucket": "08:00-10:00",
                "vendedor": "Maria",
                "quantidade": 3,
                "valor": 45.5,
                "categoria": "Manipulado",
                "source": "diario",
            },
            {"formNorm": "Creme", "quantidade": 1, "isMapped": False},
        ],
        "kpis": {"totalQuantity": 4, "totalValue": 45.5, "solidCount": 3, "topSeller": "Maria"},
        "sellersData": [{"name": "Maria", "total": 3}],
    }


class TestBuildItem:

    def test_defaults_for_missing_fields(self):
        item = build_item(ReportItemIn.model_validate({}), 7)
        assert item.form_norm == ""
        assert item.vendedor == "—"
        assert item.quantidade == 0
        assert item.valor == 0
        assert item.source_file == "controle"
        assert item.row_index == 7
        assert item.is_mapped is True

    def test_alias_spellings_are_normalized(self):
        item = build_item(
            ReportItemIn.model_validate(
                {"formaNorm": " Cápsula ", "bucket": "08:00", "source": "diario", "rowIndex": 2, "isMapped": False}
            ),
            0,
        )
        assert item.form_norm == "Cápsula"
        assert item.horario == "08:00"
        assert item.source_file == "diario"
        assert item.row_index == 2
        assert item.is_mapped is False


class TestReportRoutes:

    @pytest.mark.asyncio
    async def test_save_requires_authentication(self, client):
        response = await client.post("/save-report", json=_report_body())
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_save_and_fetch_detail(self, client, create_user, auth_headers):
        headers = auth_headers(await create_user())

        saved = await client.post("/save-report", json=_report_body(), headers=headers)

        assert saved.status_code == 201
        assert saved.json()["message"] == "Relatório salvo com sucesso"
        report_id = saved.json()["reportId"]

        detail = await client.get(f"/history/{report_id}", headers=headers)
        assert detail.status_code == 200
        report = detail.json()["report"]
        assert report["title"] == "Produção do dia"
        assert report["status"] == "completed"
        assert report["totalQuantity"] == 4
        assert report["topSeller"] == "Maria"
        assert report["solidCount"] == 3
        assert report["processedData"]["sellersData"] == [{"name": "Maria", "total": 3}]
        assert report["processedData"]["kanbanData"] == {}

        items = sorted(report["items"], key=lambda i: i["rowIndex"])
        assert items[0]["formNorm"] == "Cápsula"
        assert items[0]["horario"] == "08:00-10:00"
        assert items[0]["sourceFile"] == "diario"
        assert items[1]["vendedor"] == "—"
        assert items[1]["isMapped"] is False

    @pytest.mark.asyncio
    async def test_missing_title_rejected(self, client, create_user, auth_headers):
        headers = auth_headers(await create_user())
        body = _report_body(title="")

        response = await client.post("/save-report", json=body, headers=headers)

        assert response.status_code == 400
        assert "Título do relatório é obrigatório" in response.json()["details"]["messages"]

    @pytest.mark.asyncio
    async def test_history_is_owner_scoped(self, client, create_user, auth_headers):
        owner = auth_headers(await create_user())
        other = auth_headers(await create_user(name="Carla", email="carla@farma.test"))
        saved = await client.post("/save-report", json=_report_body(), headers=owner)
        report_id = saved.json()["reportId"]

        mine = (await client.get("/history", headers=owner)).json()
        theirs = (await client.get("/history", headers=other)).json()

        assert [r["id"] for r in mine["reports"]] == [report_id]
        assert mine["pagination"] == {"limit": 100, "offset": 0, "total": 1, "hasMore": False}
        assert theirs["reports"] == []
        assert (await client.get(f"/history/{report_id}", headers=other)).status_code == 404
        assert (await client.delete(f"/history/{report_id}", headers=other)).status_code == 404

    @pytest.mark.asyncio
    async def test_pagination(self, client, create_user, auth_headers):
        headers = auth_headers(await create_user())
        for n in range(3):
            await client.post("/save-report", json=_report_body(title=f"R{n}"), headers=headers)

        page = (await client.get("/history?limit=2&offset=0&period=all", headers=headers)).json()

        assert len(page["reports"]) == 2
        assert page["pagination"]["total"] == 3
        assert page["pagination"]["hasMore"] is True

    @pytest.mark.asyncio
    async def test_invalid_period_rejected(self, client, create_user, auth_headers):
        headers = auth_headers(await create_user())
        response = await client.get("/history?period=year", headers=headers)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_delete(self, client, create_user, auth_headers):
        headers = auth_headers(await create_user())
        saved = await client.post("/save-report", json=_report_body(), headers=headers)
        report_id = saved.json()["reportId"]

        response = await client.delete(f"/history/{report_id}", headers=headers)

        assert response.status_code == 200
        assert response.json()["message"] == "Relatório excluído com sucesso"
        assert (await client.get(f"/history/{report_id}", headers=headers)).status_code == 404


class TestHistoryPeriods:

    @pytest.mark.asyncio
    async def test_period_filters(self, db_session, create_user):
        user = await create_user()
        for day in ("10/03", "11/03", "10/04"):
            db_session.add(Report(user_id=user.id, title=day, date=day, processed_data={}))
        await db_session.commit()
        today = date(2025, 3, 10)

        today_only, _ = await report_service.list_history(db_session, user.id, period="today", today=today)
        month, _ = await report_service.list_history(db_session, user.id, period="month", today=today)
        everything, pagination = await report_service.list_history(db_session, user.id, period="all", today=today)

        assert [r.date for r in today_only] == ["10/03"]
        assert sorted(r.date for r in month) == ["10/03", "11/03"]
        assert len(everything) == 3
        assert pagination.total == 3

    @pytest.mark.asyncio
    async def test_unknown_report_is_not_found(self, db_session, create_user):
        from farmagenius.exceptions import NotFoundError

        user = await create_user()
        with pytest.raises(NotFoundError):
            await report_service.get_report(db_session, user.id, uuid.uuid4())


class TestSaveReportLimits:

    @pytest.mark.asyncio
    async def test_overlong_title_is_400(self, client, create_user, auth_headers):
        headers = auth_headers(await create_user())

        response = await client.post("/save-report", json=_report_body(title="T" * 300), headers=headers)

        assert response.status_code == 400
        assert response.json()["details"]["messages"] == ["Título do relatório muito longo"]

    @pytest.mark.asyncio
    async def test_date_with_year_is_400_and_nothing_saved(self, client, create_user, auth_headers):
        headers = auth_headers(await create_user())

        response = await client.post("/save-report", json=_report_body(day="19/10/2026"), headers=headers)

        assert response.status_code == 400
        assert response.json()["details"]["messages"] == ["Data do relatório deve estar no formato DD/MM"]
        history = (await client.get("/history?period=all", headers=headers)).json()
        assert history["pagination"]["total"] == 0

    @pytest.mark.asyncio
    async def test_saved_report_shows_in_default_history(self, client, create_user, auth_headers):
        headers = auth_headers(await create_user())
        await client.post("/save-report", json=_report_body(), headers=headers)

        history = (await client.get("/history", headers=headers)).json()

        assert history["pagination"]["total"] == 1
        summary = history["reports"][0]
        assert summary["formulasProcessed"] == summary["totalQuantity"] == 4


class TestHistoryFilters:

    @pytest.fixture
    def add_reports(self, db_session, create_user):
        async def _add(*dates):
            user = await create_user()
            for day in dates:
                db_session.add(Report(user_id=user.id, title=day, date=day, processed_data={}))
            await db_session.commit()
            return user

        return _add

    @pytest.mark.asyncio
    async def test_week_covers_last_seven_days(self, db_session, add_reports):
        user = await add_reports("10/03", "05/03", "03/03", "02/03", "11/03")

        week, pagination = await report_service.list_history(
            db_session, user.id, period="week", today=date(2025, 3, 10)
        )

        assert sorted(r.date for r in week) == ["03/03", "05/03", "10/03"]
        assert pagination.total == 3

    @pytest.mark.asyncio
    async def test_week_crosses_new_year(self, db_session, add_reports):
        user = await add_reports("28/12", "02/01", "20/12")

        week, _ = await report_service.list_history(
            db_session, user.id, period="week", today=date(2025, 1, 2)
        )

        assert sorted(r.date for r in week) == ["02/01", "28/12"]

    @pytest.mark.asyncio
    async def test_day_range_defaults_to_current_month(self, db_session, add_reports):
        user = await add_reports("01/03", "15/03", "16/03", "10/04")

        reports, _ = await report_service.list_history(
            db_session, user.id, start_day=1, end_day=15, today=date(2025, 3, 20)
        )

        assert sorted(r.date for r in reports) == ["01/03", "15/03"]

    @pytest.mark.asyncio
    async def test_day_range_in_another_month_ignores_period(self, db_session, add_reports):
        user = await add_reports("01/03", "10/04")

        reports, _ = await report_service.list_history(
            db_session, user.id, period="month", start_day=1, end_day=31, month=4, today=date(2025, 3, 20)
        )

        assert [r.date for r in reports] == ["10/04"]

    @pytest.mark.asyncio
    async def test_date_range(self, db_session, add_reports):
        user = await add_reports("14/03", "15/03", "31/03", "10/04", "11/04")

        reports, _ = await report_service.list_history(
            db_session,
            user.id,
            start_date=date(2025, 3, 15),
            end_date=date(2025, 4, 10),
            today=date(2025, 3, 20),
        )

        assert sorted(r.date for r in reports) == ["10/04", "15/03", "31/03"]

    @pytest.mark.asyncio
    async def test_filtered_pagination(self, db_session, add_reports):
        user = await add_reports("01/03", "02/03", "03/03")

        page, pagination = await report_service.list_history(
            db_session, user.id, limit=2, offset=2, start_day=1, end_day=3, month=3
        )

        assert len(page) == 1
        assert pagination.total == 3
        assert pagination.has_more is False

    @pytest.mark.asyncio
    async def test_route_accepts_range_params(self, client, create_user, auth_headers):
        headers = auth_headers(await create_user())
        today = date.today()
        await client.post("/save-report", json=_report_body(), headers=headers)

        response = await client.get(
            f"/history?startDay={today.day}&endDay={today.day}&month={today.month}", headers=headers
        )

        assert response.status_code == 200
        assert response.json()["pagination"]["total"] == 1

    @pytest.mark.asyncio
    async def test_route_rejects_half_range(self, client, create_user, auth_headers):
        headers = auth_headers(await create_user())

        response = await client.get("/history?startDay=1", headers=headers)

        assert response.status_code == 400
        assert response.json()["error"] == "startDay e endDay devem ser informados juntos"

    @pytest.mark.asyncio
    async def test_route_rejects_inverted_dates(self, client, create_user, auth_headers):
        headers = auth_headers(await create_user())

        response = await client.get("/history?startDate=2025-03-10&endDate=2025-03-01", headers=headers)

        assert response.status_code == 400
        assert response.json()["error"] == "startDate deve ser anterior a endDate"
