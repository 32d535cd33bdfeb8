"""
Google Single Sign-On (SSO) Router
Handles the Google OAuth callback and issues the session cookie
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from auth_utils import issue_session_credential, set_session_cookie
from backend.utils.errors import UpstreamAuthError
from backend.utils.responses import gateway_error_response
from config import settings
from crud.user import UserRepository
from database import get_db
from services.identity_service import GoogleIdentityProvider, get_identity_provider

logger = logging.getLogger(__name__)

# Create Google auth router
google_auth_router = APIRouter(tags=["google-auth"])


@google_auth_router.get("/oauth/callback")
async def google_auth_callback(
    code: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    identity_provider: GoogleIdentityProvider = Depends(get_identity_provider),
):
    """
    Handle Google OAuth callback.
    Exchanges the code for the account email, creates the user on first
    sign-in, and redirects to the landing page with the session cookie set.
    """
    try:
        email = await identity_provider.exchange_and_identify(code)
    except UpstreamAuthError as e:
        return gateway_error_response(e)

    user_repo = UserRepository(db)
    user = await user_repo.get_or_create(email)
    await db.commit()

    credential = issue_session_credential(user.id)
    logger.info(f"User {user.id} signed in")

    response = RedirectResponse(url=settings.landing_url, status_code=302)
    set_session_cookie(response, credential)
    return response
