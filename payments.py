"""Payment initiators.

Two gateways sell the same plans:

* SSLCommerz hosted checkout, spoken to over its HTTP API with httpx. The
  browser is redirected to the gateway, which later posts back to our
  success/fail/cancel callbacks.
* Stripe PaymentIntents through the official SDK. The client confirms the
  card payment itself and then posts the intent id back to us; the webhook
  covers clients that never come back.

Both only *start* or *verify* payments. Granting the plan is
``entitlements.complete_order``.
"""
import uuid
from dataclasses import dataclass
from typing import Optional

import httpx
import stripe
import structlog

from settings import Settings

logger = structlog.get_logger(__name__)

SSLCOMMERZ_SANDBOX_URL = "https://sandbox.sslcommerz.com"
SSLCOMMERZ_LIVE_URL = "https://securepay.sslcommerz.com"


class PaymentGatewayError(Exception):
    """The gateway refused the request or could not be reached."""


@dataclass(frozen=True)
class PaymentSession:
    url: str
    tran_id: str


def new_tran_id() -> str:
    return uuid.uuid4().hex


def to_minor_units(amount: float) -> int:
    return int(round(amount * 100))


class SSLCommerzClient:
    def __init__(self, settings: Settings, http: Optional[httpx.Client] = None):
        if not settings.sslcommerz_store_id or not settings.sslcommerz_store_password:
            raise PaymentGatewayError("SSLCommerz configuration missing")
        self.settings = settings
        self.base_url = SSLCOMMERZ_SANDBOX_URL if settings.sslcommerz_sandbox else SSLCOMMERZ_LIVE_URL
        self._owns_http = http is None
        self.http = http or httpx.Client(timeout=settings.gateway_timeout)

    def close(self) -> None:
        """Release the connection pool, unless the caller supplied the client."""
        if self._owns_http:
            self.http.close()

    def _credentials(self) -> dict:
        return {
            "store_id": self.settings.sslcommerz_store_id,
            "store_passwd": self.settings.sslcommerz_store_password,
        }

    def initiate(
        self,
        amount: float,
        currency: str,
        tier: str,
        tran_id: str,
        customer_email: str,
        success_url: str,
        fail_url: str,
        cancel_url: str,
    ) -> PaymentSession:
        """Open a hosted checkout session and return the page to redirect to."""
        form = {
            **self._credentials(),
            "total_amount": f"{amount:.2f}",
            "currency": currency,
            "tran_id": tran_id,
            "success_url": success_url,
            "fail_url": fail_url,
            "cancel_url": cancel_url,
            "cus_name": customer_email,
            "cus_email": customer_email,
            "cus_add1": "N/A",
            "cus_city": "N/A",
            "cus_country": "N/A",
            "cus_phone": "N/A",
            "shipping_method": "NO",
            "product_name": f"{tier} plan",
            "product_category": "subscription",
            "product_profile": "non-physical-goods",
            "value_a": tier,
        }
        try:
            resp = self.http.post(f"{self.base_url}/gwprocess/v4/api.php", data=form)
            resp.raise_for_status()
            body = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("SSLCommerz session request failed", tran_id=tran_id, error=str(exc))
            raise PaymentGatewayError("Payment gateway unavailable") from exc

        if body.get("status") != "SUCCESS" or not body.get("GatewayPageURL"):
            logger.error("SSLCommerz refused session", tran_id=tran_id, reason=body.get("failedreason"))
            raise PaymentGatewayError(body.get("failedreason") or "Payment session refused")

        logger.info("SSLCommerz session created", tran_id=tran_id, plan=tier)
        return PaymentSession(url=body["GatewayPageURL"], tran_id=tran_id)

    def validate(self, val_id: str, tran_id: str) -> bool:
        """Ask the gateway whether a success callback is genuine."""
        params = {**self._credentials(), "val_id": val_id, "format": "json"}
        try:
            resp = self.http.get(f"{self.base_url}/validator/api/validationserverAPI.php", params=params)
            resp.raise_for_status()
            body = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("SSLCommerz validation request failed", tran_id=tran_id, error=str(exc))
            raise PaymentGatewayError("Payment gateway unavailable") from exc

        valid = body.get("status") in ("VALID", "VALIDATED") and body.get("tran_id") == tran_id
        if not valid:
            logger.warning("SSLCommerz validation rejected", tran_id=tran_id, status=body.get("status"))
        return valid


def _configure_stripe(settings: Settings) -> None:
    if not settings.stripe_secret_key:
        raise PaymentGatewayError("Stripe configuration missing")
    stripe.api_key = settings.stripe_secret_key


def create_payment_intent(settings: Settings, amount: float, currency: str, tier: str, customer_email: str):
    """Create a card PaymentIntent; its id doubles as the order's tran_id."""
    _configure_stripe(settings)
    try:
        return stripe.PaymentIntent.create(
            amount=to_minor_units(amount),
            currency=currency.lower(),
            payment_method_types=["card"],
            receipt_email=customer_email,
            metadata={"plan": tier, "user_email": customer_email},
        )
    except stripe.StripeError as exc:
        logger.error("Stripe PaymentIntent creation failed", error=str(exc))
        raise PaymentGatewayError("Payment gateway unavailable") from exc


def payment_intent_succeeded(settings: Settings, payment_intent_id: str) -> bool:
    """Check with Stripe that the client-reported payment really went through."""
    _configure_stripe(settings)
    try:
        intent = stripe.PaymentIntent.retrieve(payment_intent_id)
    except stripe.StripeError as exc:
        logger.error("Stripe PaymentIntent lookup failed", payment_intent_id=payment_intent_id, error=str(exc))
        raise PaymentGatewayError("Payment gateway unavailable") from exc
    return intent.status == "succeeded"


def construct_webhook_event(settings: Settings, payload: bytes, signature: Optional[str]):
    """Verify a webhook signature. Raises ``stripe.SignatureVerificationError``."""
    if not settings.stripe_webhook_secret:
        raise PaymentGatewayError("Stripe webhook secret missing")
    return stripe.Webhook.construct_event(payload, signature, settings.stripe_webhook_secret)
