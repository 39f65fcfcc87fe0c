"""
FarmaGenius Backend — Kiwify Payment Gateway
=============================================

What:  PaymentGateway implementation for the Kiwify public API.
How:   httpx.AsyncClient (one per gateway, pooled). OAuth client-credentials
       token from POST /oauth/token, cached until 5 minutes before its
       `expires_in`. Checkouts via POST /v1/checkout, lookups via
       GET /v1/payments/{id}.
Who:   Created by the app factory and stored on app.state.payment_gateway.

Failure model:
    Every call is attempted exactly once. Non-2xx responses and transport
    errors (timeouts, connection failures) raise PaymentGatewayError with the
    provider's status/body in `context` for logs. Cancellation propagates
    from httpx unchanged.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

import httpx

from farmagenius.exceptions import PaymentGatewayError
from farmagenius.services.payment_base import PaymentGateway, PaymentRequest

logger = logging.getLogger(__name__)

# Refresh the token this many seconds before the provider says it expires
TOKEN_EXPIRY_MARGIN_SECONDS = 300


class KiwifyGateway(PaymentGateway):
    """
    Args:
        base_url:        Kiwify API root, e.g. https://public-api.kiwify.com
        client_id:       OAuth client id
        client_secret:   OAuth client secret
        account_id:      Seller account id sent with every checkout
        public_app_url:  Frontend root used for redirect/cancel URLs
        timeout_seconds: Per-request timeout
        transport:       Optional httpx transport (tests pass httpx.MockTransport)
        clock:           Returns seconds; drives token expiry (injectable for tests)
    """

    def __init__(
        self,
        base_url: str,
        client_id: str,
        client_secret: str,
        account_id: str,
        public_app_url: str,
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._client_id = client_id
        self._client_secret = client_secret
        self._account_id = account_id
        self._public_app_url = public_app_url.rstrip("/")
        self._clock = clock or time.monotonic
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
            transport=transport,
        )

        self._access_token: Optional[str] = None
        self._token_expiry: float = 0.0
        self._token_lock = asyncio.Lock()

    # ── OAuth Token ───────────────────────────────────────────────────────

    async def _get_access_token(self) -> str:
        async with self._token_lock:
            if self._access_token and self._clock() < self._token_expiry:
                return self._access_token

            response = await self._send(
                "POST",
                "/oauth/token",
                json={
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "grant_type": "client_credentials",
                },
                operation="authenticate",
            )
            data = self._json(response, "authenticate")
            token = data.get("access_token")
            if not token:
                raise PaymentGatewayError(
                    "Falha na autenticação com Kiwify",
                    context={"operation": "authenticate", "reason": "missing access_token"},
                )

            expires_in = float(data.get("expires_in", 0))
            self._access_token = token
            self._token_expiry = self._clock() + max(0.0, expires_in - TOKEN_EXPIRY_MARGIN_SECONDS)
            logger.info("Kiwify access token refreshed (valid for %.0fs)", expires_in)
            return token

    # ── HTTP ──────────────────────────────────────────────────────────────

    async def _send(self, method: str, path: str, *, operation: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("Kiwify %s failed: %s", operation, type(exc).__name__)
            raise PaymentGatewayError(
                context={"operation": operation, "error_type": type(exc).__name__},
            ) from exc

        if response.status_code >= 400:
            logger.error("Kiwify %s returned HTTP %d", operation, response.status_code)
            raise PaymentGatewayError(
                status_code=response.status_code,
                context={"operation": operation, "body": response.text[:500]},
            )
        return response

    @staticmethod
    def _json(response: httpx.Response, operation: str) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise PaymentGatewayError(context={"operation": operation, "reason": "invalid JSON"}) from exc
        if not isinstance(data, dict):
            raise PaymentGatewayError(context={"operation": operation, "reason": "unexpected payload"})
        return data

    # ── PaymentGateway ────────────────────────────────────────────────────

    async def create_payment(self, request: PaymentRequest) -> Dict[str, Any]:
        token = await self._get_access_token()
        payload = {
            "account_id": self._account_id,
            "amount": request.amount,
            "description": request.description,
            "customer": {
                "email": request.customer_email,
                "name": request.customer_name,
            },
            "redirect_url": request.redirect_url or f"{self._public_app_url}/payment/success",
            "cancel_url": f"{self._public_app_url}/payment/cancel",
        }
        response = await self._send(
            "POST",
            "/v1/checkout",
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
            operation="create_payment",
        )
        logger.info("Kiwify checkout created (amount=%.2f)", request.amount)
        return self._json(response, "create_payment")

    async def get_payment_status(self, payment_id: str) -> Dict[str, Any]:
        token = await self._get_access_token()
        response = await self._send(
            "GET",
            f"/v1/payments/{quote(payment_id, safe='')}",
            headers={"Authorization": f"Bearer {token}"},
            operation="get_payment_status",
        )
        return self._json(response, "get_payment_status")

    async def aclose(self) -> None:
        await self._client.aclose()
