"""
Access Service - free-quota and paid-access gating for protected requests
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from backend.auth.billing import AccessDecision, decide
from backend.auth.user import User
from backend.utils.errors import UserNotFound
from crud.user import UserRepository
from database_models import utcnow
from services.billing_service import StripeCheckoutIssuer

logger = logging.getLogger(__name__)


@dataclass
class AccessResult:
    decision: AccessDecision
    user: User
    checkout_url: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.decision is AccessDecision.ALLOW


class AccessService:
    """
    Runs one access check for an authenticated user.
    ALLOW counts the request in the ledger; REQUIRE_PAYMENT leaves the ledger
    untouched and returns a checkout URL instead.
    """

    def __init__(self, user_repo: UserRepository, checkout_issuer: StripeCheckoutIssuer, free_quota: int):
        """
        Initialize the access service.

        Args:
            user_repo: UserRepository bound to the request's session
            checkout_issuer: Issuer used when payment is required
            free_quota: Requests allowed before payment is required
        """
        self.user_repo = user_repo
        self.checkout_issuer = checkout_issuer
        self.free_quota = free_quota

    async def load_snapshot(self, user_id: str) -> User:
        row = await self.user_repo.get_user_by_id(user_id)
        if row is None:
            raise UserNotFound(f"No user with id {user_id}")
        return User.model_validate(row)

    async def authorize(self, user_id: str, now: Optional[datetime] = None) -> AccessResult:
        """
        Decide on one request and apply its ledger effect.

        Raises:
            UserNotFound: If the authenticated user has no ledger row
            PaymentProviderError: If payment is required and no checkout
                session could be created
        """
        now = now or utcnow()
        user = await self.load_snapshot(user_id)
        decision = decide(user, now, quota=self.free_quota)
        logger.info(f"Access decision for user {user_id}: {decision.value} (count={user.request_count})")

        if decision is AccessDecision.ALLOW:
            await self.user_repo.record_allowed_request(user_id, now)
            return AccessResult(decision, user)

        checkout_url = await self.checkout_issuer.create_checkout_session(user_id)
        return AccessResult(decision, user, checkout_url=checkout_url)
