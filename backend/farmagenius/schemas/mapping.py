"""
FarmaGenius Backend — Mapping Schemas
======================================

What:  Request/response models for /mappings.
Rules: name 1–50 chars, description ≤ 200 chars (both sanitized),
       mappingData a non-empty {string: string} object of at most 1000
       entries, keys and targets sanitized and at most 255 chars, no empty keys.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import field_validator

from farmagenius.schemas.common import CamelModel, SuccessEnvelope
from farmagenius.validation import SanitizedStr

NAME_MAX_LENGTH = 50
DESCRIPTION_MAX_LENGTH = 200
MAPPING_ENTRY_MAX_LENGTH = 255
MAPPING_MAX_ENTRIES = 1000

# Keys and targets are sanitized like every other persisted string
MappingData = Dict[SanitizedStr, SanitizedStr]


def _check_name(value: str) -> str:
    if not value:
        raise ValueError("Nome é obrigatório")
    if len(value) > NAME_MAX_LENGTH:
        raise ValueError("Nome muito longo")
    return value


def _check_description(value: Optional[str]) -> Optional[str]:
    if value is not None and len(value) > DESCRIPTION_MAX_LENGTH:
        raise ValueError("Descrição muito longa")
    return value or None


def _check_mapping_data(value: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
    if value is None:
        return value
    if not value:
        raise ValueError("Mapeamento deve ter pelo menos uma entrada")
    if len(value) > MAPPING_MAX_ENTRIES:
        raise ValueError("Mapeamento com entradas demais")
    for key, target in value.items():
        if not key:
            raise ValueError("Chave do mapeamento não pode ser vazia")
        if len(key) > MAPPING_ENTRY_MAX_LENGTH or len(target) > MAPPING_ENTRY_MAX_LENGTH:
            raise ValueError("Entrada do mapeamento muito longa")
    return value


class MappingCreateRequest(CamelModel):
    name: SanitizedStr
    description: Optional[SanitizedStr] = None
    mapping_data: MappingData

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return _check_description(v)

    @field_validator("mapping_data")
    @classmethod
    def validate_mapping_data(cls, v: Dict[str, str]) -> Dict[str, str]:
        return _check_mapping_data(v)


class MappingUpdateRequest(CamelModel):
    """Partial update of an owned mapping; omitted fields are left untouched."""

    name: Optional[SanitizedStr] = None
    description: Optional[SanitizedStr] = None
    mapping_data: Optional[MappingData] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _check_name(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return _check_description(v)

    @field_validator("mapping_data")
    @classmethod
    def validate_mapping_data(cls, v: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
        return _check_mapping_data(v)


class MappingOut(CamelModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    mapping_data: Dict[str, str]
    is_default: bool
    created_at: datetime
    updated_at: datetime


class MappingResponse(SuccessEnvelope):
    mapping: MappingOut


class MappingListResponse(SuccessEnvelope):
    mappings: List[MappingOut]
