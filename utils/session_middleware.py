import logging
from typing import Iterable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from auth_utils import verify_session_credential
from backend.utils.errors import InvalidCredential
from backend.utils.responses import error_response
from config import settings
from services.identity_service import build_sign_in_url

logger = logging.getLogger(__name__)

PUBLIC_PATHS = (
    "/oauth/callback",
    "/webhook",
    "/health",
    "/api/auth/logout",
    "/docs",
    "/redoc",
    "/openapi.json",
)


class SessionAuthMiddleware(BaseHTTPMiddleware):
    """
    Verifies the signed session cookie on every non-public path.
    On success the user ID is stored on request.state.user_id.
    """

    def __init__(self, app, public_paths: Optional[Iterable[str]] = None):
        super().__init__(app)
        self.public_paths = tuple(public_paths) if public_paths is not None else PUBLIC_PATHS

    def _is_public(self, path: str) -> bool:
        return any(path == p or path.startswith(p + "/") for p in self.public_paths)

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method == "OPTIONS" or self._is_public(request.url.path):
            return await call_next(request)

        cookie_value = request.cookies.get(settings.session_cookie_name)
        try:
            request.state.user_id = verify_session_credential(cookie_value)
        except InvalidCredential as e:
            if cookie_value:
                logger.warning(f"Rejected session credential on {request.url.path}: {e.details}")
            return error_response(e.error, status=e.status_code, signInUrl=build_sign_in_url())

        return await call_next(request)
