"""
Paywall Gateway - session-authenticated access with a free quota and Stripe pay-per-use
"""

import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from auth import auth_router, missing_credential_handler
from backend.utils.errors import MissingCredential
from config import settings
from database import init_db, close_db
from routers.billing_router import billing_router
from routers.google_auth_router import google_auth_router
from routers.protected_router import protected_router
from utils.session_middleware import SessionAuthMiddleware

logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)

# Settings the gateway cannot work without, checked at startup (non-fatal)
REQUIRED_KEY_MAP = {
    "JWT_SECRET_KEY": settings.jwt_secret_key,
    "GOOGLE_CLIENT_ID": settings.google_client_id,
    "GOOGLE_CLIENT_SECRET": settings.google_client_secret,
    "GOOGLE_REDIRECT_URI": settings.google_redirect_uri,
    "STRIPE_SECRET_KEY": settings.stripe_secret_key,
    "STRIPE_WEBHOOK_SECRET": settings.stripe_webhook_secret,
    "STRIPE_SUCCESS_URL": settings.stripe_success_url,
    "STRIPE_CANCEL_URL": settings.stripe_cancel_url,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the shared database engine on startup and dispose it on shutdown."""
    missing = [key for key, value in REQUIRED_KEY_MAP.items() if not value]
    if missing:
        logger.warning(f"Startup check: Missing environment variables: {', '.join(missing)}")
    else:
        logger.info("Startup check: All critical environment variables are set")

    await init_db()
    try:
        yield
    finally:
        await close_db()


# Uncaught exception middleware - logs all unhandled exceptions and returns 500
class UncaughtExceptionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Uncaught exception: {e}\n{traceback.format_exc()}")
            return JSONResponse(
                status_code=500,
                content={"error": "Internal Server Error"}
            )


# Security headers middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses: CSP, X-Frame-Options, X-Content-Type-Options"""
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        return response


app = FastAPI(title="Paywall Gateway", lifespan=lifespan)

# Added innermost first: the session check runs after CORS and error handling
app.add_middleware(SessionAuthMiddleware)
app.add_middleware(UncaughtExceptionMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url] if settings.frontend_url else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(MissingCredential, missing_credential_handler)


@app.get("/health", tags=["system"])
async def health_check():
    return {"status": "healthy"}


app.include_router(google_auth_router)
app.include_router(billing_router)
app.include_router(auth_router)
app.include_router(protected_router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
