"""
Authentication routes and dependencies
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from auth_utils import clear_session_cookie
from backend.auth.billing import free_requests_remaining, has_active_payment
from backend.auth.user import User
from backend.utils.errors import MissingCredential, UserNotFound
from backend.utils.responses import gateway_error_response, success_response
from config import settings
from database import get_db
from database_models import utcnow
from crud.user import UserRepository
from services.identity_service import build_sign_in_url

logger = logging.getLogger(__name__)

# Create auth router
auth_router = APIRouter(prefix="/api/auth", tags=["auth"])


# Dependency for protected routes
async def get_current_user_id(request: Request) -> str:
    """
    Return the user ID verified by SessionAuthMiddleware.

    The middleware has already rejected missing or invalid cookies; this only
    fails if a route is mounted on a path the middleware treats as public.
    """
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise MissingCredential()
    return user_id


@auth_router.get("/me")
async def get_current_user_info(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Report the caller's usage without counting it as a request"""
    row = await UserRepository(db).get_user_by_id(user_id)
    if row is None:
        return gateway_error_response(UserNotFound())
    user = User.model_validate(row)

    now = utcnow()
    return success_response({
        "userId": user.id,
        "email": user.email,
        "requestCount": user.request_count,
        "freeRequestsRemaining": free_requests_remaining(user, settings.free_quota),
        "paidUntil": user.paid_until.isoformat() if user.paid_until else None,
        "hasActivePayment": has_active_payment(user, now),
    })


@auth_router.post("/logout")
async def logout():
    """Logout and clear the session cookie"""
    response = JSONResponse(content={"message": "Logged out successfully"})
    clear_session_cookie(response)
    return response


async def missing_credential_handler(request: Request, exc: MissingCredential) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "signInUrl": build_sign_in_url()},
    )
