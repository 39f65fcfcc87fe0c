"""
FarmaGenius Backend — Payment Schemas
======================================

What:  Request/response models for /payment and /payment/public.
"""

from typing import Any, Dict, Optional

from pydantic import field_validator

from farmagenius.schemas.common import CamelModel, SuccessEnvelope
from farmagenius.validation import SanitizedStr, normalize_email


class PaymentCreateRequest(CamelModel):
    amount: float
    description: SanitizedStr
    plan_type: Optional[SanitizedStr] = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Valor deve ser maior que zero")
        return v

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        if not v:
            raise ValueError("Descrição é obrigatória")
        return v


class PaymentCustomer(CamelModel):
    name: SanitizedStr
    email: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v:
            raise ValueError("Nome é obrigatório")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class PublicPaymentRequest(PaymentCreateRequest):
    """Anonymous collaboration checkout; the payer identifies themselves."""

    customer: PaymentCustomer


class PaymentResponse(SuccessEnvelope):
    # Provider payload, passed through unchanged
    data: Dict[str, Any]
