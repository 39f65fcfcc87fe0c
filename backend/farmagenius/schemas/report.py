"""
FarmaGenius Backend — Report Schemas
=====================================

What:  Models for /save-report, /history and /history/{id}.

Limits:
    Text fields are bounded by their column sizes and the report date must
    be "DD/MM", which is what the history filters match against.

Item field aliases:
    The frontend has shipped several spellings over time (formaNorm / formNorm,
    horario / bucket, sourceFile / source). ReportItemIn accepts all of them
    and normalizes to one record before persistence.
"""

import re
import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import AliasChoices, ConfigDict, Field, ValidationInfo, computed_field, field_validator
from pydantic.alias_generators import to_camel

from farmagenius.schemas.common import CamelModel, Pagination, SuccessEnvelope
from farmagenius.validation import SanitizedStr

HistoryPeriod = Literal["today", "week", "month", "all"]

# Column sizes of reports / report_items
TEXT_MAX_LENGTH = 255
ITEM_TEXT_LIMITS = {
    "form_norm": 255,
    "linha": 100,
    "horario": 50,
    "vendedor": 255,
    "categoria": 100,
    "source_file": 100,
}

_REPORT_DATE = re.compile(r"^(\d{2})/(\d{2})$")


def parse_report_date(value: str) -> Optional[Tuple[int, int]]:
    """
    "DD/MM" → (day, month), or None when the text is not a plausible date.

    >>> parse_report_date("09/03")
    (9, 3)
    """
    match = _REPORT_DATE.match(value or "")
    if not match:
        return None
    day, month = int(match.group(1)), int(match.group(2))
    if not (1 <= day <= 31 and 1 <= month <= 12):
        return None
    return day, month


class ReportItemIn(CamelModel):
    """One processed spreadsheet row as sent by the client."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )

    form_norm: Optional[SanitizedStr] = Field(
        default=None, validation_alias=AliasChoices("formaNorm", "formNorm", "form_norm")
    )
    linha: Optional[SanitizedStr] = None
    horario: Optional[SanitizedStr] = Field(
        default=None, validation_alias=AliasChoices("horario", "bucket")
    )
    vendedor: Optional[SanitizedStr] = None
    quantidade: Optional[float] = None
    valor: Optional[float] = None
    categoria: Optional[SanitizedStr] = None
    observacoes: Optional[SanitizedStr] = None
    source_file: Optional[SanitizedStr] = Field(
        default=None, validation_alias=AliasChoices("sourceFile", "source", "source_file")
    )
    row_index: Optional[int] = None
    is_mapped: Optional[bool] = None

    @field_validator(*ITEM_TEXT_LIMITS)
    @classmethod
    def validate_length(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        limit = ITEM_TEXT_LIMITS[info.field_name]
        if v is not None and len(v) > limit:
            raise ValueError(f"Campo {to_camel(info.field_name)} muito longo (máximo {limit} caracteres)")
        return v


class ReportKpis(CamelModel):
    total_quantity: float = 0
    total_value: float = 0
    solid_count: int = 0
    top_seller: SanitizedStr = "—"

    @field_validator("top_seller")
    @classmethod
    def validate_top_seller(cls, v: str) -> str:
        if len(v) > TEXT_MAX_LENGTH:
            raise ValueError("Campo topSeller muito longo")
        return v


class SaveReportRequest(CamelModel):
    title: SanitizedStr
    date: SanitizedStr
    items: List[ReportItemIn]
    kpis: Optional[ReportKpis] = None
    sellers_data: Optional[List[Any]] = None
    kanban_data: Optional[Dict[str, Any]] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v:
            raise ValueError("Título do relatório é obrigatório")
        if len(v) > TEXT_MAX_LENGTH:
            raise ValueError("Título do relatório muito longo")
        return v

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        if not v:
            raise ValueError("Data do relatório é obrigatória")
        if parse_report_date(v) is None:
            raise ValueError("Data do relatório deve estar no formato DD/MM")
        return v


class SaveReportResponse(SuccessEnvelope):
    message: str = "Relatório salvo com sucesso"
    report_id: uuid.UUID


class ReportSummary(CamelModel):
    id: uuid.UUID
    title: str
    date: str
    status: str
    created_at: datetime
    total_quantity: float
    total_value: float
    top_seller: str

    @computed_field(alias="formulasProcessed")
    @property
    def formulas_processed(self) -> float:
        """Formulas processed in the report; every unit counted is one formula."""
        return self.total_quantity


class HistoryResponse(SuccessEnvelope):
    reports: List[ReportSummary]
    pagination: Pagination


class ReportItemOut(CamelModel):
    form_norm: str
    linha: str
    horario: str
    vendedor: str
    quantidade: float
    valor: float
    categoria: str
    observacoes: Optional[str] = None
    source_file: str
    row_index: int
    is_mapped: bool


class ReportDetail(ReportSummary):
    solid_count: int
    processed_data: Dict[str, Any]
    items: List[ReportItemOut]


class ReportDetailResponse(SuccessEnvelope):
    report: ReportDetail
