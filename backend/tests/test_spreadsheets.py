"""
Tests for spreadsheet preview and report export.

Workbooks are built in memory with openpyxl; nothing touches the disk.
"""

import io

import pytest
from openpyxl import Workbook, load_workbook
from sqlalchemy import select

from farmagenius.exceptions import ValidationError
from farmagenius.models import AuditLog
from farmagenius.schemas.spreadsheet import ExportItem
from farmagenius.services.spreadsheet_service import (
    EXPORT_HEADERS,
    SpreadsheetService,
    guess_file_type,
)

XLSX_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _workbook_bytes(rows: int = 30, sheet: str = "Vendas") -> bytes:
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = sheet
    worksheet.append(["Fórmula", "Quantidade", "Vendedor"])
    for n in range(1, rows):
        worksheet.append([f"F{n}", n, "Maria"])
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class TestSpreadsheetService:

    def setup_method(self):
        self.service = SpreadsheetService(max_file_size=1024 * 1024, preview_rows=20, sample_rows=5)

    def test_guess_file_type(self):
        assert guess_file_type("Diario_Receitas_10-03.xlsx") == "diario_receitas"
        assert guess_file_type("relatorio_CONTROLE.xls") == "relatorio_controle"
        assert guess_file_type("formulas.xlsx") == "relatorio_controle"
        assert guess_file_type("planilha.xlsx") == "unknown"

    def test_preview_limits_rows(self):
        preview = self.service.preview_excel("diario.xlsx", _workbook_bytes(rows=30))

        assert preview.sheet_name == "Vendas"
        assert preview.total_rows == 30
        assert len(preview.preview_data) == 20
        assert preview.headers == ["Fórmula", "Quantidade", "Vendedor"]
        assert len(preview.sample_rows) == 5
        assert preview.sample_rows[0] == ["F1", "1", "Maria"]

    def test_preview_of_short_sheet(self):
        preview = self.service.preview_excel("x.xlsx", _workbook_bytes(rows=3))
        assert preview.total_rows == 3
        assert len(preview.sample_rows) == 2

    def test_rejects_other_extensions(self):
        with pytest.raises(ValidationError) as exc_info:
            self.service.validate_upload("dados.csv", 10)
        assert exc_info.value.message == "Formato de arquivo inválido. Use apenas .xlsx ou .xls"

    def test_rejects_oversized_upload(self):
        with pytest.raises(ValidationError) as exc_info:
            self.service.validate_upload("dados.xlsx", 1024 * 1024 + 1)
        assert exc_info.value.message == "Arquivo muito grande. Tamanho máximo: 1MB"

    def test_corrupt_workbook(self):
        with pytest.raises(ValidationError) as exc_info:
            self.service.preview_excel("dados.xlsx", b"not a workbook")
        assert exc_info.value.message == "Erro ao processar o arquivo Excel"

    def test_csv_export(self):
        items = [
            ExportItem.model_validate({"formNorm": "F1", "quantidade": 5, "valor": 10}),
            ExportItem.model_validate(
                {"formNorm": "Cápsula", "vendedor": 'Ana "A"', "quantidade": 2.5, "isMapped": True}
            ),
        ]

        content, media_type, filename = self.service.export_report(items, "csv")

        assert media_type == "text/csv"
        assert filename == "relatorio.csv"
        lines = content.decode("utf-8").split("\n")
        assert lines[0] == ",".join(f'"{h}"' for h in EXPORT_HEADERS)
        assert lines[1] == '"F1","","","","5","10","","","","Não mapeado"'
        assert lines[2] == '"Cápsula","","","Ana ""A""","2.5","0","","","","Mapeado"'
        assert not content.endswith(b"\n")

    def test_xlsx_export(self):
        items = [ExportItem.model_validate({"formNorm": "F1", "quantidade": 5, "isMapped": True})]

        content, media_type, filename = self.service.export_report(items, "xlsx")

        assert media_type == XLSX_TYPE
        assert filename == "relatorio.xlsx"
        workbook = load_workbook(io.BytesIO(content))
        assert workbook.sheetnames == ["Relatório"]
        rows = list(workbook["Relatório"].iter_rows(values_only=True))
        assert list(rows[0]) == EXPORT_HEADERS
        assert rows[1][0] == "F1"
        assert rows[1][4] == 5
        assert rows[1][9] == "Mapeado"


class TestSpreadsheetRoutes:

    @pytest.mark.asyncio
    async def test_preview_anonymous(self, client, session_factory):
        response = await client.post(
            "/preview-excel",
            files={"file": ("controle.xlsx", _workbook_bytes(rows=8), XLSX_TYPE)},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["fileName"] == "controle.xlsx"
        assert body["fileType"] == "relatorio_controle"
        assert body["totalRows"] == 8
        assert len(body["previewData"]) == 8
        assert len(body["sampleRows"]) == 5

        async with session_factory() as session:
            assert (await session.execute(select(AuditLog))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_preview_audited_for_signed_in_user(self, client, create_user, auth_headers, session_factory):
        user = await create_user()

        response = await client.post(
            "/preview-excel",
            files={"file": ("diario.xlsx", _workbook_bytes(rows=4), XLSX_TYPE)},
            headers=auth_headers(user),
        )

        assert response.status_code == 200
        async with session_factory() as session:
            entry = (await session.execute(select(AuditLog))).scalar_one()
        assert entry.action == "FILE_UPLOAD"
        assert entry.user_id == user.id
        assert entry.new_values["fileName"] == "diario.xlsx"

    @pytest.mark.asyncio
    async def test_preview_without_file(self, client):
        response = await client.post("/preview-excel", data={"other": "x"})
        assert response.status_code == 400
        assert response.json()["error"] == "Nenhum arquivo encontrado"

    @pytest.mark.asyncio
    async def test_preview_bad_extension(self, client):
        response = await client.post(
            "/preview-excel", files={"file": ("dados.txt", b"hello", "text/plain")}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Formato de arquivo inválido. Use apenas .xlsx ou .xls"

    @pytest.mark.asyncio
    async def test_export_csv_download(self, client):
        response = await client.post(
            "/export-report?format=csv",
            json={"items": [{"formNorm": "F1", "quantidade": 5, "valor": 10}]},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.headers["content-disposition"] == "attachment; filename=relatorio.csv"
        assert response.text.split("\n")[1] == '"F1","","","","5","10","","","","Não mapeado"'

    @pytest.mark.asyncio
    async def test_export_defaults_to_xlsx_and_audits(self, client, create_user, auth_headers, session_factory):
        user = await create_user()

        response = await client.post(
            "/export-report",
            json={"items": [{"formNorm": "F1"}]},
            headers=auth_headers(user),
        )

        assert response.status_code == 200
        assert response.headers["content-type"] == XLSX_TYPE
        assert load_workbook(io.BytesIO(response.content)).sheetnames == ["Relatório"]

        async with session_factory() as session:
            entry = (await session.execute(select(AuditLog))).scalar_one()
        assert entry.action == "DATA_EXPORT"
        assert entry.new_values == {"format": "xlsx", "items": 1}

    @pytest.mark.asyncio
    async def test_export_invalid_format(self, client):
        response = await client.post("/export-report?format=pdf", json={"items": []})
        assert response.status_code == 400
