"""
Stripe hosted checkout and webhook verification.

Only talks to Stripe; order preconditions and state changes belong to
storefront.services.orders.
"""
import logging
from dataclasses import dataclass

import stripe

from storefront.core.errors import GatewayError

log = logging.getLogger("storefront.gateway")

# Events that confirm the money was captured
CHECKOUT_COMPLETED = "checkout.session.completed"
ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    session_url: str


@dataclass(frozen=True)
class ParsedWebhook:
    """Verified event. Anything that is not a completed payment is a pass-through."""

    event_id: str
    event_type: str
    payment_completed: bool = False
    order_id: str | None = None  # from checkout metadata, completed payments only


class StripeGateway:
    def __init__(
        self,
        api_key: str,
        webhook_secret: str,
        success_url: str,
        cancel_url: str,
        timeout: float = 20.0,
        client: "stripe.StripeClient | None" = None,
    ):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.success_url = success_url
        self.cancel_url = cancel_url
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings) -> "StripeGateway":
        return cls(
            api_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
            success_url=settings.checkout_success_url,
            cancel_url=settings.checkout_cancel_url,
            timeout=settings.stripe_timeout_seconds,
        )

    def _get_client(self) -> "stripe.StripeClient":
        # Built lazily: the app must start without Stripe keys (manual transfers only)
        if self._client is None:
            if not self.api_key:
                raise GatewayError("Card payments are not configured.", retryable=False)
            self._client = stripe.StripeClient(
                self.api_key,
                http_client=stripe.RequestsClient(timeout=self.timeout),
                max_network_retries=1,
            )
        return self._client

    def create_checkout_session(
        self,
        buyer_email: str,
        line_item_description: str,
        currency: str,
        amount_minor_units: int,
        metadata: dict[str, str],
    ) -> CheckoutSession:
        params = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "customer_email": buyer_email,
            "line_items": [
                {
                    "quantity": 1,
                    "price_data": {
                        "currency": currency.lower(),
                        "unit_amount": amount_minor_units,
                        "product_data": {"name": line_item_description},
                    },
                }
            ],
            "success_url": self.success_url,
            "cancel_url": self.cancel_url,
            "metadata": dict(metadata),
        }
        order_id = metadata.get("orderId", "")
        try:
            session = self._get_client().checkout.sessions.create(
                params=params,
                options={"idempotency_key": f"checkout_{order_id}_{amount_minor_units}"},
            )
        except (stripe.APIConnectionError, stripe.RateLimitError) as e:
            log.warning("Stripe checkout timeout/connection error: order_id=%s error=%s", order_id, e)
            raise GatewayError("Payment provider is unreachable, please retry.", retryable=True) from e
        except stripe.StripeError as e:
            # 5xx is Stripe's side and may pass; auth / invalid request errors will not
            retryable = (e.http_status or 0) >= 500
            log.error("Stripe checkout failed: order_id=%s status=%s error=%s", order_id, e.http_status, e)
            raise GatewayError(f"Payment provider error: {str(e)[:80]}", retryable=retryable) from e
        log.info("Checkout session created: order_id=%s session_id=%s", order_id, session.id)
        return CheckoutSession(session_id=session.id, session_url=session.url)

    def parse_webhook(self, payload: bytes, signature: str | None) -> ParsedWebhook:
        """Verifies the Stripe-Signature header before reading anything from the payload."""
        if not self.webhook_secret:
            raise GatewayError("Webhook secret is not configured.", retryable=False)
        if not signature:
            raise GatewayError("Missing webhook signature.", retryable=False)
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            log.warning("Webhook signature invalid: %s", e)
            raise GatewayError("Invalid webhook signature.", retryable=False) from e
        except ValueError as e:
            log.warning("Webhook payload is not valid JSON: %s", e)
            raise GatewayError("Invalid webhook payload.", retryable=False) from e

        # Plain dicts from here on: StripeObject stopped behaving like a dict in recent stripe releases
        data = event.to_dict()
        event_type = data["type"]
        event_id = data["id"]
        obj = (data.get("data") or {}).get("object") or {}
        if event_type == CHECKOUT_COMPLETED and obj.get("payment_status") != "paid":
            # Delayed methods: money arrives with async_payment_succeeded
            return ParsedWebhook(event_id=event_id, event_type=event_type)
        if event_type in (CHECKOUT_COMPLETED, ASYNC_PAYMENT_SUCCEEDED):
            metadata = obj.get("metadata") or {}
            order_id = metadata.get("orderId") or None
            return ParsedWebhook(
                event_id=event_id,
                event_type=event_type,
                payment_completed=True,
                order_id=str(order_id) if order_id else None,
            )
        return ParsedWebhook(event_id=event_id, event_type=event_type)
