"""
Billing Service - Stripe checkout sessions and payment completion webhooks
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Union

import stripe
from starlette.concurrency import run_in_threadpool

from backend.utils.errors import InvalidSignature, PaymentProviderError
from config import Settings, settings as default_settings
from crud.user import UserRepository
from database_models import utcnow

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


class StripeCheckoutIssuer:
    """
    Creates one-off Stripe Checkout sessions for a single paid request.
    The user ID travels as client_reference_id so the completion webhook
    can be tied back to the ledger row.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings

    async def create_checkout_session(
        self,
        user_id: str,
        unit_price_cents: Optional[int] = None,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
    ) -> str:
        """
        Create a Checkout session and return its hosted URL.

        Raises:
            PaymentProviderError: If Stripe is not configured or the call fails
        """
        if not self.settings.stripe_secret_key:
            logger.error("STRIPE_SECRET_KEY is not set. Cannot create checkout session.")
            raise PaymentProviderError("STRIPE_SECRET_KEY is not set")

        params = {
            "api_key": self.settings.stripe_secret_key,
            "payment_method_types": ["card"],
            "line_items": [{
                "price_data": {
                    "currency": self.settings.currency,
                    "product_data": {"name": self.settings.product_name},
                    "unit_amount": unit_price_cents or self.settings.unit_price_cents,
                },
                "quantity": 1,
            }],
            "mode": "payment",
            "success_url": success_url or self.settings.stripe_success_url,
            "cancel_url": cancel_url or self.settings.stripe_cancel_url,
            "client_reference_id": user_id,
        }

        try:
            # The Stripe SDK call is blocking; keep it off the event loop
            session = await run_in_threadpool(stripe.checkout.Session.create, **params)
        except stripe.StripeError as e:
            logger.error(f"Failed to create checkout session for user {user_id}: {e}")
            raise PaymentProviderError(str(e)) from e

        logger.info(f"Created checkout session {session.id} for user {user_id}")
        return session.url


def get_checkout_issuer() -> StripeCheckoutIssuer:
    """FastAPI dependency returning the configured checkout issuer."""
    return StripeCheckoutIssuer()


def verify_webhook_event(
    raw_payload: Union[bytes, str],
    signature_header: Optional[str],
    webhook_secret: Optional[str],
) -> stripe.Event:
    """
    Authenticate a webhook payload with the shared secret.

    Raises:
        InvalidSignature: If the secret or header is missing, the signature
            does not match, or the payload is not a valid event
    """
    if not webhook_secret:
        logger.error("STRIPE_WEBHOOK_SECRET is not set. Rejecting webhook.")
        raise InvalidSignature("Webhook secret not configured")
    if not signature_header:
        raise InvalidSignature("Missing signature header")

    try:
        return stripe.Webhook.construct_event(raw_payload, signature_header, webhook_secret)
    except (ValueError, stripe.SignatureVerificationError) as e:
        raise InvalidSignature(str(e)) from e


class WebhookOutcome(str, Enum):
    EXTENDED = "extended"
    UNCHANGED = "unchanged"
    UNKNOWN_USER = "unknown_user"
    IGNORED = "ignored"


@dataclass
class WebhookResult:
    event_type: str
    outcome: WebhookOutcome
    user_id: Optional[str] = None
    paid_until: Optional[datetime] = None


class PaymentCompletionHandler:
    """
    Turns a verified checkout.session.completed event into paid access.

    A checkout session is PENDING until this event arrives and COMPLETED
    after it; there are no further transitions. The ledger is only touched
    after the signature verifies.
    """

    def __init__(self, user_repo: UserRepository, settings: Optional[Settings] = None):
        self.user_repo = user_repo
        self.settings = settings or default_settings

    async def handle_completion_event(
        self,
        raw_payload: Union[bytes, str],
        signature_header: Optional[str],
        webhook_secret: Optional[str],
        now: Optional[datetime] = None,
    ) -> WebhookResult:
        try:
            event = verify_webhook_event(raw_payload, signature_header, webhook_secret)
        except InvalidSignature as e:
            logger.warning(f"Webhook signature verification failed: {e.details}")
            raise

        event_type = event.type
        logger.info(f"Received Stripe webhook event: {event_type}")

        if event_type != CHECKOUT_COMPLETED:
            return WebhookResult(event_type, WebhookOutcome.IGNORED)

        session = event.data.object
        user_id = getattr(session, "client_reference_id", None)
        if not user_id:
            logger.warning(f"Checkout session {getattr(session, 'id', '?')} has no client_reference_id")
            return WebhookResult(event_type, WebhookOutcome.IGNORED)

        new_expiry = (now or utcnow()) + timedelta(days=self.settings.paid_access_days)
        extended = await self.user_repo.extend_paid_until(user_id, new_expiry)

        if extended is None:
            logger.warning(f"Payment completed for unknown user {user_id}; acknowledging anyway")
            return WebhookResult(event_type, WebhookOutcome.UNKNOWN_USER, user_id)
        if not extended:
            logger.warning(f"User {user_id} already paid beyond {new_expiry.isoformat()}; not regressing")
            return WebhookResult(event_type, WebhookOutcome.UNCHANGED, user_id)

        logger.info(f"User {user_id} has paid until {new_expiry.isoformat()}")
        return WebhookResult(event_type, WebhookOutcome.EXTENDED, user_id, new_expiry)
