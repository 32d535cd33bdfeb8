"""
Protected Router - the metered resource behind the free quota and paywall
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user_id
from backend.utils.errors import PaymentProviderError, UserNotFound
from backend.utils.responses import gateway_error_response, success_response
from config import settings
from crud.user import UserRepository
from database import get_db
from services.access_service import AccessService
from services.billing_service import StripeCheckoutIssuer, get_checkout_issuer

logger = logging.getLogger(__name__)

protected_router = APIRouter(tags=["protected"])


@protected_router.get("/protected")
async def protected_resource(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    checkout_issuer: StripeCheckoutIssuer = Depends(get_checkout_issuer),
):
    """
    Serve the protected resource or hand back a Stripe checkout URL.

    Payment required is reported with HTTP 200 for compatibility with
    existing clients that read the body rather than the status code.
    """
    service = AccessService(UserRepository(db), checkout_issuer, settings.free_quota)
    try:
        result = await service.authorize(user_id)
    except (UserNotFound, PaymentProviderError) as e:
        return gateway_error_response(e)

    if result.allowed:
        # The request is only counted once this commit succeeds
        await db.commit()
        return success_response({"message": "You are authenticated"})

    return success_response({
        "error": "Payment required",
        "stripeSessionUrl": result.checkout_url,
    })
