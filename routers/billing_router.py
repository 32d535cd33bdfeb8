"""
Billing Router - Stripe webhook endpoint
"""

import logging

from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from backend.utils.errors import InvalidSignature
from backend.utils.responses import error_response
from config import settings
from crud.user import UserRepository
from database import get_db
from services.billing_service import PaymentCompletionHandler

logger = logging.getLogger(__name__)

# Create billing router
billing_router = APIRouter(tags=["billing"])


@billing_router.post("/webhook")
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Handle Stripe webhook events with signature verification.

    Returns 400 when the signature does not verify. Every verified event is
    acknowledged with 200, including completions for users that no longer
    exist, so Stripe does not keep redelivering them.
    """
    # Get raw request body (required for signature verification)
    payload = await request.body()
    stripe_signature = request.headers.get("stripe-signature")

    handler = PaymentCompletionHandler(UserRepository(db))
    try:
        result = await handler.handle_completion_event(
            payload,
            stripe_signature,
            settings.stripe_webhook_secret,
        )
    except InvalidSignature as e:
        return error_response(e.error, status=e.status_code)

    await db.commit()
    logger.info(f"Webhook {result.event_type} processed: {result.outcome.value}")
    return JSONResponse(status_code=200, content={"received": True})
