"""
FarmaGenius Backend — Spreadsheet Service
==========================================

What:  Excel preview for uploaded workbooks and CSV/XLSX export of report rows.
How:   pandas reads the first sheet with every cell as text (openpyxl for
       .xlsx, xlrd for legacy .xls). Exports build a fixed 10-column table;
       CSV goes through the csv module, XLSX through pandas + openpyxl.
Who:   POST /preview-excel and POST /export-report.

Upload checks (in order):
    1. Extension: .xlsx / .xls only (case-insensitive)
    2. Size: at most settings.max_file_size bytes
    3. Parse: anything pandas cannot read is a ValidationError (400)
"""

import csv
import io
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import pandas as pd

from farmagenius.config import settings
from farmagenius.exceptions import ValidationError
from farmagenius.schemas.spreadsheet import ExportItem, PreviewResponse

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".xlsx", ".xls"}

EXPORT_HEADERS = [
    "Forma Normalizada",
    "Linha",
    "Horário",
    "Vendedor",
    "Quantidade",
    "Valor",
    "Categoria",
    "Observações",
    "Arquivo Origem",
    "Status",
]
EXPORT_SHEET_NAME = "Relatório"

CSV_MEDIA_TYPE = "text/csv"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def guess_file_type(filename: str) -> str:
    """Classify an upload by name: daily prescriptions, control report, or unknown."""
    name = filename.lower()
    if "diario" in name or "receitas" in name:
        return "diario_receitas"
    if "controle" in name or "formulas" in name:
        return "relatorio_controle"
    return "unknown"


def _number(value) -> float:
    if value is None:
        return 0
    # Integral floats are written as integers (12.0 → 12)
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def export_row(item: ExportItem) -> List:
    return [
        item.form_norm or "",
        item.linha or "",
        item.horario or "",
        item.vendedor or "",
        _number(item.quantidade),
        _number(item.valor),
        item.categoria or "",
        item.observacoes or "",
        item.source_file or "",
        "Mapeado" if item.is_mapped else "Não mapeado",
    ]


class SpreadsheetService:
    """
    Args:
        max_file_size: Upload limit in bytes (defaults to settings.max_file_size)
        preview_rows:  Rows returned in previewData
        sample_rows:   Rows after the header returned in sampleRows
    """

    def __init__(
        self,
        max_file_size: Optional[int] = None,
        preview_rows: Optional[int] = None,
        sample_rows: Optional[int] = None,
    ):
        self.max_file_size = max_file_size or settings.max_file_size
        self.preview_rows = preview_rows or settings.preview_rows
        self.sample_rows = sample_rows or settings.sample_rows

    # ── Preview ───────────────────────────────────────────────────────────

    def validate_upload(self, filename: str, size: int) -> None:
        if Path(filename or "").suffix.lower() not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                "Formato de arquivo inválido. Use apenas .xlsx ou .xls",
                field="file",
                context={"filename": filename},
            )
        if size > self.max_file_size:
            raise ValidationError(
                f"Arquivo muito grande. Tamanho máximo: {self.max_file_size // (1024 * 1024)}MB",
                field="file",
                context={"size": size, "max": self.max_file_size},
            )

    def read_first_sheet(self, content: bytes) -> Tuple[str, List[List[str]]]:
        """Return (sheet name, rows) for the workbook's first sheet, cells as text."""
        try:
            with pd.ExcelFile(io.BytesIO(content)) as workbook:
                sheet_name = workbook.sheet_names[0]
                frame = workbook.parse(sheet_name, header=None, dtype=str).fillna("")
        except Exception as e:
            logger.warning("Unreadable workbook: %s: %s", type(e).__name__, str(e))
            raise ValidationError(
                "Erro ao processar o arquivo Excel",
                field="file",
                context={"error_type": type(e).__name__},
            )
        return str(sheet_name), frame.values.tolist()

    def preview_excel(self, filename: str, content: bytes) -> PreviewResponse:
        self.validate_upload(filename, len(content))
        sheet_name, rows = self.read_first_sheet(content)

        preview = rows[: self.preview_rows]
        logger.info("Previewed '%s' (%d rows, sheet '%s')", filename, len(rows), sheet_name)
        return PreviewResponse(
            file_name=filename,
            file_type=guess_file_type(filename),
            sheet_name=sheet_name,
            total_rows=len(rows),
            preview_data=preview,
            headers=preview[0] if preview else [],
            sample_rows=preview[1 : 1 + self.sample_rows],
        )

    # ── Export ────────────────────────────────────────────────────────────

    def to_csv(self, rows: Sequence[List]) -> bytes:
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(EXPORT_HEADERS)
        writer.writerows(rows)
        # No trailing newline after the last row
        return buffer.getvalue().rstrip("\n").encode("utf-8")

    def to_xlsx(self, rows: Sequence[List]) -> bytes:
        buffer = io.BytesIO()
        frame = pd.DataFrame(list(rows), columns=EXPORT_HEADERS)
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            frame.to_excel(writer, sheet_name=EXPORT_SHEET_NAME, index=False)
        return buffer.getvalue()

    def export_report(self, items: Sequence[ExportItem], fmt: str = "xlsx") -> Tuple[bytes, str, str]:
        """
        Returns:
            (file bytes, media type, download file name)
        """
        rows = [export_row(item) for item in items]
        if fmt == "csv":
            return self.to_csv(rows), CSV_MEDIA_TYPE, "relatorio.csv"
        return self.to_xlsx(rows), XLSX_MEDIA_TYPE, "relatorio.xlsx"


# ── Singleton Instance ────────────────────────────────────────────────────
spreadsheet_service = SpreadsheetService()
