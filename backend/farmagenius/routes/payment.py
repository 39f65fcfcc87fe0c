"""
FarmaGenius Backend — Payment Route Handlers
=============================================

What:  Checkout creation and status lookup through the payment gateway.
How:   The gateway is the instance on app.state.payment_gateway (Kiwify in
       production, a fake in tests). Provider failures surface as
       PaymentGatewayError → 500 with the generic message; the provider's
       response body is only logged.
Who:   The plans page (signed in) and the public collaboration page.

Routes:
    POST /payment          signed-in checkout; payer is the stored account
    GET  /payment?id=...   payment status
    POST /payment/public   anonymous collaboration checkout; payer in body
"""

import logging
from typing import Any, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from farmagenius.config import settings
from farmagenius.database import get_db_session
from farmagenius.dependencies import get_payment_gateway, require_principal
from farmagenius.exceptions import ValidationError
from farmagenius.schemas.common import error_responses
from farmagenius.schemas.payment import PaymentCreateRequest, PaymentResponse, PublicPaymentRequest
from farmagenius.services.auth import Principal
from farmagenius.services.payment_base import PaymentGateway, PaymentRequest
from farmagenius.services.user_service import user_service
from farmagenius.validation import json_body, parse_payload, require_json

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payment", tags=["Payment"])

COLLABORATION_SUFFIX = " - Colaboração FarmaGenius"


def success_url(plan_type: Optional[str], collaboration: bool = False) -> str:
    query = {"plan": plan_type or ""}
    if collaboration:
        query["type"] = "collaboration"
    return f"{settings.public_app_url.rstrip('/')}/payment/success?{urlencode(query)}"


@router.post(
    "",
    response_model=PaymentResponse,
    responses=error_responses(400, 401, 404, 429, 500),
    summary="Create a checkout",
    description=(
        "Creates a provider checkout billed to the signed-in user. Name and email "
        "are read from the account, so a profile change applies without signing in again."
    ),
    dependencies=[Depends(require_json)],
)
async def create_payment(
    principal: Principal = Depends(require_principal),
    raw: Any = Depends(json_body),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db_session),
) -> PaymentResponse:
    payload = parse_payload(PaymentCreateRequest, raw)
    payer = await user_service.get_user(db, principal.id)
    data = await gateway.create_payment(
        PaymentRequest(
            amount=payload.amount,
            description=payload.description,
            customer_email=payer.email,
            customer_name=payer.name,
            redirect_url=success_url(payload.plan_type),
        )
    )
    logger.info("Checkout created for %s (plan=%s)", principal.id, payload.plan_type)
    return PaymentResponse(data=data)


@router.get(
    "",
    response_model=PaymentResponse,
    responses=error_responses(400, 401, 429, 500),
    summary="Payment status",
)
async def get_payment_status(
    id: Optional[str] = Query(default=None, description="Provider payment id"),
    principal: Principal = Depends(require_principal),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> PaymentResponse:
    if not id or not id.strip():
        raise ValidationError("ID do pagamento obrigatório", field="id")
    return PaymentResponse(data=await gateway.get_payment_status(id.strip()))


@router.post(
    "/public",
    response_model=PaymentResponse,
    responses=error_responses(400, 429, 500),
    summary="Create a public collaboration checkout",
    description="No sign-in required; the body must include customer {name, email}.",
    dependencies=[Depends(require_json)],
)
async def create_public_payment(
    raw: Any = Depends(json_body),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> PaymentResponse:
    payload = parse_payload(PublicPaymentRequest, raw)
    data = await gateway.create_payment(
        PaymentRequest(
            amount=payload.amount,
            description=f"{payload.description}{COLLABORATION_SUFFIX}",
            customer_email=payload.customer.email,
            customer_name=payload.customer.name,
            redirect_url=success_url(payload.plan_type, collaboration=True),
        )
    )
    logger.info("Public collaboration checkout created (amount=%.2f)", payload.amount)
    return PaymentResponse(data=data)
