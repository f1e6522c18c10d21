# triphub/infrastructure/gateways/payment_gateway.py

import logging
import os
from dataclasses import dataclass, field

import razorpay
import requests

from triphub.domain.exceptions import UpstreamError

logger = logging.getLogger(__name__)

_RAZORPAY_ERRORS = (
    razorpay.errors.BadRequestError,
    razorpay.errors.GatewayError,
    razorpay.errors.ServerError,
    requests.RequestException,
)


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str


@dataclass(frozen=True)
class GatewaySession:
    """Checkout session as reported back by the gateway."""

    id: str
    status: str
    amount: int
    currency: str
    metadata: dict = field(default_factory=dict)
    payment_ids: tuple[str, ...] = ()

    @property
    def is_paid(self) -> bool:
        return self.status == "paid"

    @property
    def transaction_id(self) -> str:
        # Stable across retries of the same session: the first captured
        # payment, else the session id itself.
        if self.payment_ids:
            return self.payment_ids[0]
        return self.id


class RazorpayPaymentGateway:
    """
    Hosted checkout backed by Razorpay Payment Links.
    `notes` round-trips the booking metadata to settlement.
    """

    def __init__(
        self,
        client: razorpay.Client,
        callback_url: str,
        currency: str = "INR",
    ):
        self.client = client
        self.callback_url = callback_url
        self.currency = currency

    def create_checkout_session(
        self,
        amount: int,
        customer_email: str,
        description: str,
        metadata: dict,
    ) -> CheckoutSession:
        payload = {
            "amount": amount,
            "currency": self.currency,
            "description": description,
            "customer": {"email": customer_email},
            "notify": {"email": False, "sms": False},
            "reference_id": metadata.get("booking_id"),
            "notes": {key: str(value) for key, value in metadata.items()},
            "callback_url": self.callback_url,
            "callback_method": "get",
        }
        try:
            link = self.client.payment_link.create(payload)
        except _RAZORPAY_ERRORS as exc:
            logger.exception("Checkout session creation failed for %s", customer_email)
            raise UpstreamError("Payment gateway rejected checkout session") from exc

        return CheckoutSession(id=link["id"], url=link.get("short_url", ""))

    def retrieve_session(self, session_id: str) -> GatewaySession:
        try:
            link = self.client.payment_link.fetch(session_id)
        except _RAZORPAY_ERRORS as exc:
            logger.exception("Checkout session lookup failed for %s", session_id)
            raise UpstreamError("Payment gateway session lookup failed") from exc

        payments = link.get("payments") or []
        captured = tuple(
            item["payment_id"]
            for item in payments
            if item.get("status") == "captured" and item.get("payment_id")
        )
        return GatewaySession(
            id=link["id"],
            status=link.get("status", ""),
            amount=int(link.get("amount_paid") or link.get("amount") or 0),
            currency=link.get("currency", self.currency),
            metadata=dict(link.get("notes") or {}),
            payment_ids=captured,
        )


def razorpay_gateway_from_env() -> RazorpayPaymentGateway:
    key_id = os.getenv("RAZORPAY_KEY_ID")
    key_secret = os.getenv("RAZORPAY_KEY_SECRET")
    if not key_id or not key_secret:
        raise UpstreamError(
            "Razorpay keys not configured. Set RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET."
        )
    return RazorpayPaymentGateway(
        client=razorpay.Client(auth=(key_id, key_secret)),
        callback_url=os.getenv(
            "PAYMENT_CALLBACK_URL",
            "http://localhost:5173/payment-success",
        ),
        currency=os.getenv("PAYMENT_CURRENCY", "INR"),
    )
