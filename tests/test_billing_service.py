"""
Tests for Stripe webhook verification and the payment completion handler
"""
from datetime import timedelta
from unittest.mock import patch

import pytest

from backend.utils.errors import InvalidSignature, PaymentProviderError
from config import settings
from crud.user import UserRepository
from database_models import utcnow
from services.billing_service import (
    PaymentCompletionHandler,
    StripeCheckoutIssuer,
    WebhookOutcome,
)
from tests.conftest import checkout_event_payload, stripe_signature_header

SECRET = "whsec_test_secret"


async def paid_until(session_factory, user_id):
    async with session_factory() as session:
        user = await UserRepository(session).get_user_by_id(user_id)
        return user.paid_until


@pytest.mark.asyncio
async def test_completed_checkout_extends_paid_until(test_db, make_user, session_factory):
    user_id = await make_user("alice@example.com", request_count=10)
    payload = checkout_event_payload(user_id)
    now = utcnow()

    handler = PaymentCompletionHandler(UserRepository(test_db))
    result = await handler.handle_completion_event(
        payload, stripe_signature_header(payload, SECRET), SECRET, now=now
    )
    await test_db.commit()

    assert result.outcome is WebhookOutcome.EXTENDED
    assert result.user_id == user_id
    assert await paid_until(session_factory, user_id) == now + timedelta(days=1)


@pytest.mark.asyncio
async def test_tampered_payload_is_rejected_without_mutation(test_db, make_user, session_factory):
    user_id = await make_user("alice@example.com")
    payload = checkout_event_payload(user_id)
    header = stripe_signature_header(payload, SECRET)
    handler = PaymentCompletionHandler(UserRepository(test_db))

    for index in (0, len(payload) // 2, len(payload) - 1):
        tampered = bytearray(payload)
        tampered[index] ^= 0x01
        with pytest.raises(InvalidSignature):
            await handler.handle_completion_event(bytes(tampered), header, SECRET)

    assert await paid_until(session_factory, user_id) is None


@pytest.mark.asyncio
async def test_tampered_signature_is_rejected(test_db, make_user, session_factory):
    user_id = await make_user("alice@example.com")
    payload = checkout_event_payload(user_id)
    header = stripe_signature_header(payload, SECRET)
    last = header[-1]
    tampered_header = header[:-1] + ("0" if last != "0" else "1")
    handler = PaymentCompletionHandler(UserRepository(test_db))

    with pytest.raises(InvalidSignature):
        await handler.handle_completion_event(payload, tampered_header, SECRET)
    with pytest.raises(InvalidSignature):
        await handler.handle_completion_event(payload, stripe_signature_header(payload, "whsec_wrong"), SECRET)

    assert await paid_until(session_factory, user_id) is None


@pytest.mark.asyncio
async def test_missing_header_or_secret_is_rejected(test_db):
    payload = checkout_event_payload("user-1")
    handler = PaymentCompletionHandler(UserRepository(test_db))

    with pytest.raises(InvalidSignature):
        await handler.handle_completion_event(payload, None, SECRET)
    with pytest.raises(InvalidSignature):
        await handler.handle_completion_event(payload, stripe_signature_header(payload, SECRET), None)


@pytest.mark.asyncio
async def test_other_event_types_are_ignored(test_db, make_user, session_factory):
    user_id = await make_user("alice@example.com")
    payload = checkout_event_payload(user_id, event_type="checkout.session.expired")

    handler = PaymentCompletionHandler(UserRepository(test_db))
    result = await handler.handle_completion_event(payload, stripe_signature_header(payload, SECRET), SECRET)

    assert result.outcome is WebhookOutcome.IGNORED
    assert await paid_until(session_factory, user_id) is None


@pytest.mark.asyncio
async def test_completion_without_client_reference_is_ignored(test_db):
    payload = checkout_event_payload(None)
    handler = PaymentCompletionHandler(UserRepository(test_db))

    result = await handler.handle_completion_event(payload, stripe_signature_header(payload, SECRET), SECRET)

    assert result.outcome is WebhookOutcome.IGNORED


@pytest.mark.asyncio
async def test_completion_for_unknown_user_is_acknowledged(test_db):
    payload = checkout_event_payload("deleted-user")
    handler = PaymentCompletionHandler(UserRepository(test_db))

    result = await handler.handle_completion_event(payload, stripe_signature_header(payload, SECRET), SECRET)

    assert result.outcome is WebhookOutcome.UNKNOWN_USER


@pytest.mark.asyncio
async def test_replayed_event_does_not_regress_entitlement(test_db, make_user, session_factory):
    now = utcnow()
    later = now + timedelta(days=5)
    user_id = await make_user("alice@example.com", paid_until=later)
    payload = checkout_event_payload(user_id)

    handler = PaymentCompletionHandler(UserRepository(test_db))
    result = await handler.handle_completion_event(
        payload, stripe_signature_header(payload, SECRET), SECRET, now=now
    )
    await test_db.commit()

    assert result.outcome is WebhookOutcome.UNCHANGED
    assert await paid_until(session_factory, user_id) == later


@pytest.mark.asyncio
async def test_checkout_issuer_passes_user_reference():
    class FakeSession:
        id = "cs_test_abc"
        url = "https://checkout.stripe.com/c/pay/cs_test_abc"

    with patch("services.billing_service.stripe.checkout.Session.create", return_value=FakeSession()) as create:
        url = await StripeCheckoutIssuer(settings).create_checkout_session("user-42")

    assert url == FakeSession.url
    kwargs = create.call_args.kwargs
    assert kwargs["client_reference_id"] == "user-42"
    assert kwargs["mode"] == "payment"
    assert kwargs["line_items"][0]["price_data"]["unit_amount"] == settings.unit_price_cents


@pytest.mark.asyncio
async def test_checkout_issuer_without_secret_key():
    with patch("services.billing_service.default_settings.stripe_secret_key", None):
        issuer = StripeCheckoutIssuer()
        with pytest.raises(PaymentProviderError):
            await issuer.create_checkout_session("user-42")
