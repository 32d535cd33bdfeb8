from datetime import datetime
from enum import Enum

from backend.auth.user import User


FREE_QUOTA = 4


class AccessDecision(str, Enum):
    ALLOW = "allow"
    REQUIRE_PAYMENT = "require_payment"


def has_active_payment(user: User, now: datetime) -> bool:
    return user.paid_until is not None and user.paid_until > now


def free_requests_remaining(user: User, quota: int = FREE_QUOTA) -> int:
    return max(quota - user.request_count, 0)


def decide(user: User, now: datetime, quota: int = FREE_QUOTA) -> AccessDecision:
    # The quota is never replenished; only an active payment lifts it
    if user.request_count < quota:
        return AccessDecision.ALLOW
    if has_active_payment(user, now):
        return AccessDecision.ALLOW
    return AccessDecision.REQUIRE_PAYMENT
