"""
Identity Service - Google OAuth authorization-code exchange
"""

import logging
from typing import Optional
from urllib.parse import urlencode

import httpx
from authlib.common.errors import AuthlibBaseError
from authlib.integrations.httpx_client import AsyncOAuth2Client

from backend.utils.errors import UpstreamAuthError
from config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"


def build_sign_in_url(settings: Optional[Settings] = None) -> str:
    """Consent-screen URL handed to unauthenticated clients."""
    settings = settings or default_settings
    query = urlencode({
        "response_type": "code",
        "client_id": settings.google_client_id or "",
        "redirect_uri": settings.google_redirect_uri or "",
        "scope": "openid email",
    })
    return f"{GOOGLE_AUTHORIZE_URL}?{query}"


class GoogleIdentityProvider:
    """
    Exchanges an authorization code for the signed-in account's email.
    A new HTTP client is opened per exchange; nothing is cached between calls.
    """

    def __init__(self, settings: Optional[Settings] = None, timeout: float = 10.0):
        self.settings = settings or default_settings
        self.timeout = timeout

    async def exchange_and_identify(self, code: Optional[str]) -> str:
        """
        Exchange the authorization code and fetch the account email.

        Args:
            code: Authorization code from the OAuth callback query string

        Returns:
            The account email, lower-cased

        Raises:
            UpstreamAuthError: If configuration is missing or either call fails
        """
        if not code:
            raise UpstreamAuthError("Missing authorization code")
        if not (self.settings.google_client_id and self.settings.google_client_secret
                and self.settings.google_redirect_uri):
            raise UpstreamAuthError("Google OAuth not configured")

        try:
            async with AsyncOAuth2Client(
                client_id=self.settings.google_client_id,
                client_secret=self.settings.google_client_secret,
                redirect_uri=self.settings.google_redirect_uri,
                token_endpoint_auth_method="client_secret_post",
                timeout=self.timeout,
            ) as client:
                await client.fetch_token(
                    GOOGLE_TOKEN_URL,
                    code=code,
                    grant_type="authorization_code",
                )
                resp = await client.get(GOOGLE_USERINFO_URL)
                resp.raise_for_status()
                user_info = resp.json()
        except (AuthlibBaseError, httpx.HTTPError, ValueError) as e:
            logger.error(f"Google token exchange failed: {e}")
            raise UpstreamAuthError(str(e)) from e

        email = user_info.get("email") if isinstance(user_info, dict) else None
        if not email:
            raise UpstreamAuthError("Email not provided by Google")
        return email.lower()


def get_identity_provider() -> GoogleIdentityProvider:
    """FastAPI dependency returning the configured identity provider."""
    return GoogleIdentityProvider()
