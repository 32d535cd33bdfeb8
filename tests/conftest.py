"""
Pytest configuration and fixtures for testing
"""
import hashlib
import hmac
import json
import os
import time
from datetime import datetime
from typing import Optional

# Settings are read at import time, so the test environment must exist first
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id.apps.googleusercontent.com")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("GOOGLE_REDIRECT_URI", "http://test/oauth/callback")

import httpx
import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine

from auth_utils import issue_session_credential
from backend.utils.errors import PaymentProviderError, UpstreamAuthError
from config import settings
from crud.user import UserRepository
from database import Base, create_session_factory, get_db
from database_models import User
from main import app
from services.billing_service import get_checkout_issuer
from services.identity_service import get_identity_provider


@pytest.fixture
async def test_engine(tmp_path):
    """
    Fixture that provides an isolated SQLite database file for each test.
    Tables are created before the test runs and the engine is disposed after.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        future=True,
    )
    async with engine.begin() as conn:
        # Import models to ensure they're registered with Base
        import database_models  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return create_session_factory(test_engine)


@pytest.fixture
async def test_db(session_factory):
    """Yields a clean AsyncSession for the test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(session_factory):
    """Create and commit a ledger row, returning its ID."""
    async def _make_user(
        email: str = "alice@example.com",
        request_count: int = 0,
        paid_until: Optional[datetime] = None,
    ) -> str:
        async with session_factory() as session:
            user = await UserRepository(session).get_or_create(email)
            await session.execute(
                update(User)
                .where(User.id == user.id)
                .values(request_count=request_count, paid_until=paid_until)
            )
            await session.commit()
            return user.id

    return _make_user


class FakeIdentityProvider:
    """Stands in for Google: code 'bad-code' fails, anything else signs in."""

    def __init__(self, email: str = "alice@example.com"):
        self.email = email
        self.codes = []

    async def exchange_and_identify(self, code: Optional[str]) -> str:
        self.codes.append(code)
        if not code:
            raise UpstreamAuthError("Missing authorization code")
        if code == "bad-code":
            raise UpstreamAuthError("invalid_grant: Bad Request")
        return self.email.lower()


class FakeCheckoutIssuer:
    """Records checkout requests instead of calling Stripe."""

    def __init__(self, url: str = "https://checkout.stripe.com/c/pay/cs_test_123"):
        self.url = url
        self.user_ids = []
        self.fail = False

    async def create_checkout_session(self, user_id: str, *args, **kwargs) -> str:
        self.user_ids.append(user_id)
        if self.fail:
            raise PaymentProviderError("Stripe is unreachable")
        return self.url


@pytest.fixture
def identity_provider():
    return FakeIdentityProvider()


@pytest.fixture
def checkout_issuer():
    return FakeCheckoutIssuer()


@pytest.fixture
async def async_client(session_factory, identity_provider, checkout_issuer):
    """
    Async HTTP client fixture with the test database and fake providers
    swapped in through dependency overrides.
    """
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_provider] = lambda: identity_provider
    app.dependency_overrides[get_checkout_issuer] = lambda: checkout_issuer

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def session_cookie_header(user_id: str) -> dict:
    return {"cookie": f"{settings.session_cookie_name}={issue_session_credential(user_id)}"}


def stripe_signature_header(payload: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header the way Stripe signs webhook payloads."""
    timestamp = timestamp if timestamp is not None else int(time.time())
    signed_payload = f"{timestamp}.".encode("utf-8") + payload
    signature = hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def checkout_event_payload(
    user_id: Optional[str],
    event_type: str = "checkout.session.completed",
    session_id: str = "cs_test_123",
) -> bytes:
    session = {
        "id": session_id,
        "object": "checkout.session",
        "mode": "payment",
        "payment_status": "paid",
    }
    if user_id is not None:
        session["client_reference_id"] = user_id
    event = {
        "id": "evt_test_123",
        "object": "event",
        "type": event_type,
        "data": {"object": session},
    }
    return json.dumps(event).encode("utf-8")
