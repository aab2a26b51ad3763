"""Payment gateway clients: a sandbox implementation and a Stripe REST client."""

import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import httpx

from ..core.config import settings
from ..core.exceptions import PaymentGatewayError

logger = logging.getLogger(__name__)

GATEWAY_TIMEOUT_SECONDS = 30.0

# Gateway refund statuses after which the payment is treated as refunded
REFUND_ACCEPTED_STATUSES = ("succeeded", "pending")


@dataclass
class CheckoutSession:
    id: str
    url: str
    mode: str


@dataclass
class PaymentVerification:
    status: str
    amount: Decimal
    currency: str
    payment_intent_id: str | None = None
    customer_id: str | None = None

    @property
    def is_paid(self) -> bool:
        return self.status == "paid"


@dataclass
class RefundResult:
    status: str
    amount_refunded: Decimal = Decimal("0.00")


@dataclass
class ConnectedAccount:
    id: str
    onboarding_url: str
    extra: dict[str, Any] = field(default_factory=dict)


class PaymentGateway(ABC):
    """Operations the booking flow needs from a card payment provider."""

    mode: str = "sandbox"

    @abstractmethod
    async def create_checkout_session(
        self,
        amount: Decimal,
        tour_name: str,
        booking_id: str,
        success_url: str,
        cancel_url: str,
        customer_email: str | None = None,
        currency: str | None = None,
    ) -> CheckoutSession:
        """Create a hosted checkout session for a booking."""

    @abstractmethod
    async def verify_payment(self, session_id: str) -> PaymentVerification:
        """Return the payment state of a checkout session."""

    @abstractmethod
    async def process_refund(self, payment_intent_id: str, amount: Decimal | None = None) -> RefundResult:
        """Refund a captured payment, fully when amount is None."""

    @abstractmethod
    async def create_connected_account(
        self,
        email: str,
        refresh_url: str,
        return_url: str,
    ) -> ConnectedAccount:
        """Create a payout account for a seller and return its onboarding link."""


class SandboxPaymentGateway(PaymentGateway):
    """Gateway stand-in used when ``payment_mode`` is ``sandbox``."""

    mode = "sandbox"

    async def create_checkout_session(
        self,
        amount: Decimal,
        tour_name: str,
        booking_id: str,
        success_url: str,
        cancel_url: str,
        customer_email: str | None = None,
        currency: str | None = None,
    ) -> CheckoutSession:
        logger.info(
            "Creating sandbox checkout session",
            extra={"booking_id": booking_id, "amount": str(amount)}
        )
        session_id = f"mock_session_{booking_id}"
        return CheckoutSession(
            id=session_id,
            url=f"{success_url}?session_id={session_id}",
            mode=self.mode,
        )

    async def verify_payment(self, session_id: str) -> PaymentVerification:
        logger.info("Verifying sandbox session", extra={"session_id": session_id})
        return PaymentVerification(
            status="paid",
            amount=Decimal("0.00"),
            currency=settings.default_currency,
            payment_intent_id=f"pi_mock_{session_id}",
        )

    async def process_refund(self, payment_intent_id: str, amount: Decimal | None = None) -> RefundResult:
        logger.info("Processing sandbox refund", extra={"payment_intent_id": payment_intent_id})
        return RefundResult(status="succeeded", amount_refunded=amount or Decimal("0.00"))

    async def create_connected_account(
        self,
        email: str,
        refresh_url: str,
        return_url: str,
    ) -> ConnectedAccount:
        account_id = f"acct_mock_{secrets.token_hex(4)}"
        logger.info("Creating sandbox connected account", extra={"account_id": account_id})
        return ConnectedAccount(id=account_id, onboarding_url=f"{return_url}?mock_onboarding=true")


def _to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value())


def _from_minor_units(value: int | None) -> Decimal:
    return (Decimal(value or 0) / 100).quantize(Decimal("0.01"))


class StripePaymentGateway(PaymentGateway):
    """Stripe REST API client over httpx (form-encoded requests, bearer auth)."""

    mode = "production"

    def __init__(
        self,
        secret_key: str,
        api_base: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.secret_key = secret_key
        self.api_base = (api_base or settings.stripe_api_base).rstrip("/")
        self._transport = transport

    async def _request(self, operation: str, method: str, path: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self.api_base,
                timeout=GATEWAY_TIMEOUT_SECONDS,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method,
                    path,
                    data=data,
                    headers={"Authorization": f"Bearer {self.secret_key}"},
                )
        except httpx.HTTPError as e:
            logger.error(
                "Payment gateway request failed",
                extra={"operation": operation, "path": path, "error": str(e)}
            )
            raise PaymentGatewayError(operation) from e

        if response.status_code >= 400:
            logger.error(
                "Payment gateway returned an error",
                extra={
                    "operation": operation,
                    "path": path,
                    "status_code": response.status_code,
                    "body": response.text[:500],
                }
            )
            raise PaymentGatewayError(operation)

        return response.json()

    async def create_checkout_session(
        self,
        amount: Decimal,
        tour_name: str,
        booking_id: str,
        success_url: str,
        cancel_url: str,
        customer_email: str | None = None,
        currency: str | None = None,
    ) -> CheckoutSession:
        data = {
            "mode": "payment",
            "payment_method_types[0]": "card",
            "line_items[0][quantity]": 1,
            "line_items[0][price_data][currency]": currency or settings.default_currency,
            "line_items[0][price_data][unit_amount]": _to_minor_units(amount),
            "line_items[0][price_data][product_data][name]": tour_name,
            "success_url": success_url + "?session_id={CHECKOUT_SESSION_ID}",
            "cancel_url": cancel_url,
            "metadata[booking_id]": booking_id,
        }
        if customer_email:
            data["customer_email"] = customer_email

        body = await self._request("create_checkout_session", "POST", "/checkout/sessions", data)
        return CheckoutSession(id=body["id"], url=body["url"], mode=self.mode)

    async def verify_payment(self, session_id: str) -> PaymentVerification:
        body = await self._request("verify_payment", "GET", f"/checkout/sessions/{session_id}")
        return PaymentVerification(
            status="paid" if body.get("payment_status") == "paid" else "unpaid",
            amount=_from_minor_units(body.get("amount_total")),
            currency=body.get("currency") or settings.default_currency,
            payment_intent_id=body.get("payment_intent"),
            customer_id=body.get("customer"),
        )

    async def process_refund(self, payment_intent_id: str, amount: Decimal | None = None) -> RefundResult:
        data: dict[str, Any] = {"payment_intent": payment_intent_id}
        if amount is not None:
            data["amount"] = _to_minor_units(amount)
        body = await self._request("process_refund", "POST", "/refunds", data)
        return RefundResult(status=body.get("status", "failed"), amount_refunded=_from_minor_units(body.get("amount")))

    async def create_connected_account(
        self,
        email: str,
        refresh_url: str,
        return_url: str,
    ) -> ConnectedAccount:
        account = await self._request(
            "create_connected_account",
            "POST",
            "/accounts",
            {
                "type": "express",
                "email": email,
                "capabilities[card_payments][requested]": "true",
                "capabilities[transfers][requested]": "true",
            },
        )
        link = await self._request(
            "create_account_link",
            "POST",
            "/account_links",
            {
                "account": account["id"],
                "refresh_url": refresh_url,
                "return_url": return_url,
                "type": "account_onboarding",
            },
        )
        return ConnectedAccount(id=account["id"], onboarding_url=link["url"])


def build_payment_gateway() -> PaymentGateway:
    """Pick the gateway implementation from settings."""
    if settings.payment_mode == "production":
        if not settings.stripe_secret_key:
            logger.warning("STRIPE_SECRET_KEY is not set but payment mode is production")
        return StripePaymentGateway(settings.stripe_secret_key or "")
    return SandboxPaymentGateway()
