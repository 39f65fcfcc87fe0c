"""
FarmaGenius Backend — Abstract Payment Gateway Interface
=========================================================

What:  Abstract base class defining the contract for payment providers.
How:   Concrete gateways inherit from PaymentGateway and implement
       create_payment() / get_payment_status(). The app factory stores one
       instance on `app.state.payment_gateway`; routes receive it through
       dependencies.get_payment_gateway, and tests substitute a fake.
Who:   POST/GET /payment and POST /payment/public.

Implementations:
    - KiwifyGateway: Kiwify public API (OAuth client credentials + checkout)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class PaymentRequest:
    """Provider-neutral checkout request."""

    amount: float
    description: str
    customer_email: str
    customer_name: str
    redirect_url: Optional[str] = None


class PaymentGateway(ABC):
    """
    Contract:
        - Each method performs exactly one provider round trip (plus a token
          fetch when the cached credential has expired). Nothing is retried.
        - Provider and transport failures are raised as PaymentGatewayError.
        - Return values are the provider's JSON payload, unchanged.
    """

    @abstractmethod
    async def create_payment(self, request: PaymentRequest) -> Dict[str, Any]:
        """
        Create a checkout for `request`.

        Returns:
            The provider's checkout object (typically includes a checkout URL).

        Raises:
            PaymentGatewayError: Authentication, validation or transport failure.
        """
        ...

    @abstractmethod
    async def get_payment_status(self, payment_id: str) -> Dict[str, Any]:
        """
        Look up a payment by provider id.

        Raises:
            PaymentGatewayError: Unknown id, authentication or transport failure.
        """
        ...

    async def aclose(self) -> None:
        """Release network resources. Called on application shutdown."""
        return None
