"""
FarmaGenius Backend — Spreadsheet Schemas
==========================================

What:  Models for /preview-excel (response) and /export-report (request).
"""

from typing import List, Literal, Optional, Union

from pydantic import AliasChoices, ConfigDict, Field
from pydantic.alias_generators import to_camel

from farmagenius.schemas.common import CamelModel, SuccessEnvelope

ExportFormat = Literal["csv", "xlsx"]


class PreviewResponse(SuccessEnvelope):
    file_name: str
    # diario_receitas | relatorio_controle | unknown (guessed from the name)
    file_type: str
    sheet_name: str
    total_rows: int
    preview_data: List[List[str]]
    headers: List[str]
    sample_rows: List[List[str]]


class ExportItem(CamelModel):
    """One row of the export; missing text becomes "" and missing numbers 0."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )

    form_norm: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("formNorm", "formaNorm", "form_norm")
    )
    linha: Optional[str] = None
    horario: Optional[str] = None
    vendedor: Optional[str] = None
    quantidade: Optional[Union[int, float]] = None
    valor: Optional[Union[int, float]] = None
    categoria: Optional[str] = None
    observacoes: Optional[str] = None
    source_file: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("sourceFile", "source", "source_file")
    )
    is_mapped: Optional[bool] = None


class ExportRequest(CamelModel):
    items: List[ExportItem]
