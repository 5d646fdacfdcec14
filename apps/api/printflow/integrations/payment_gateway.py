import hashlib
import hmac
from typing import Protocol

import httpx
from pydantic import BaseModel, Field

from printflow.config import settings
from printflow.integrations.errors import IntegrationBadGatewayError
from printflow.integrations.transport import build_timeout, call_with_retries
from printflow.services.errors import GatewayNotConfigured

_SERVICE = "razorpay"


class GatewayOrder(BaseModel):
    id: str
    amount: int
    currency: str = "INR"
    receipt: str | None = None
    status: str = "created"


class GatewayPayment(BaseModel):
    id: str
    order_id: str | None = None
    status: str
    captured: bool = False
    amount: int = Field(ge=0)
    currency: str = "INR"
    method: str | None = None

    @property
    def is_successful(self) -> bool:
        return self.status == "captured" and self.captured


class PaymentGatewayProtocol(Protocol):
    def create_order(self, amount_paise: int, receipt: str, notes: dict) -> GatewayOrder: ...

    def fetch_order_payments(self, gateway_order_id: str) -> list[GatewayPayment]: ...

    def verify_signature(self, gateway_order_id: str, payment_id: str, signature: str) -> bool: ...


def compute_signature(secret: str, gateway_order_id: str, payment_id: str) -> str:
    message = f"{gateway_order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class RazorpayClient:
    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str,
        timeout_s: float,
        max_retries: int,
        backoff_s: float,
    ) -> None:
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self.backoff_s = backoff_s

    def _require_credentials(self) -> None:
        if not self.key_id or not self.key_secret:
            raise GatewayNotConfigured()

    def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        def send() -> httpx.Response:
            with httpx.Client(
                timeout=build_timeout(self.timeout_s),
                auth=(self.key_id, self.key_secret),
            ) as client:
                return client.request(method, f"{self.base_url}{path}", **kwargs)

        response = call_with_retries(
            _SERVICE, send, max_retries=self.max_retries, backoff_s=self.backoff_s
        )
        if response.status_code >= 400:
            raise IntegrationBadGatewayError(
                _SERVICE, f"Razorpay returned {response.status_code}"
            )
        return response

    def create_order(self, amount_paise: int, receipt: str, notes: dict) -> GatewayOrder:
        self._require_credentials()
        response = self._send(
            "POST",
            "/orders",
            json={
                "amount": amount_paise,
                "currency": settings.currency,
                "receipt": receipt,
                "notes": notes,
            },
        )
        try:
            return GatewayOrder.model_validate(response.json())
        except ValueError as err:
            raise IntegrationBadGatewayError(_SERVICE, "Malformed order payload") from err

    def fetch_order_payments(self, gateway_order_id: str) -> list[GatewayPayment]:
        self._require_credentials()
        response = self._send("GET", f"/orders/{gateway_order_id}/payments")
        try:
            items = response.json().get("items", [])
            return [GatewayPayment.model_validate(item) for item in items]
        except (ValueError, AttributeError) as err:
            raise IntegrationBadGatewayError(_SERVICE, "Malformed payments payload") from err

    def verify_signature(self, gateway_order_id: str, payment_id: str, signature: str) -> bool:
        if not self.key_secret:
            raise GatewayNotConfigured()
        expected = compute_signature(self.key_secret, gateway_order_id, payment_id)
        return hmac.compare_digest(expected, signature or "")


def get_payment_gateway() -> PaymentGatewayProtocol:
    return RazorpayClient(
        key_id=settings.razorpay_key_id,
        key_secret=settings.razorpay_key_secret,
        base_url=settings.razorpay_base_url,
        timeout_s=settings.razorpay_timeout_s,
        max_retries=settings.razorpay_max_retries,
        backoff_s=settings.razorpay_backoff_s,
    )
