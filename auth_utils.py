"""
Authentication utilities: session credential signing and cookie transport
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from itsdangerous import BadSignature, Signer
from starlette.responses import Response

from backend.utils.errors import InvalidCredential, MissingCredential
from config import settings

# JWT configuration
ALGORITHM = "HS256"
COOKIE_SALT = "session-cookie"


def _require_secret() -> str:
    if not settings.jwt_secret_key:
        raise ValueError("JWT_SECRET_KEY is not set. Cannot sign session credentials.")
    return settings.jwt_secret_key


def create_jwt(user_id: str, ttl_seconds: Optional[int] = None) -> str:
    """
    Create a JWT binding the user ID.

    The token only carries an expiry when a TTL is configured; without one it
    stays valid until JWT_SECRET_KEY is rotated.
    """
    secret = _require_secret()
    now = datetime.now(timezone.utc)
    payload = {"sub": user_id, "iat": now}

    ttl = ttl_seconds if ttl_seconds is not None else settings.session_token_ttl_seconds
    if ttl is not None:
        payload["exp"] = now + timedelta(seconds=ttl)
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_jwt(token: str) -> str:
    """
    Decode a JWT and return the user ID it carries.

    Raises:
        InvalidCredential: If the signature, expiry or payload is invalid
    """
    secret = _require_secret()
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.InvalidTokenError as e:
        raise InvalidCredential(str(e)) from e

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise InvalidCredential("Invalid token payload")
    return user_id


def _cookie_signer() -> Signer:
    return Signer(_require_secret(), salt=COOKIE_SALT)


def issue_session_credential(user_id: str) -> str:
    """Sign a session credential and wrap it for cookie transport."""
    token = create_jwt(user_id)
    return _cookie_signer().sign(token).decode("utf-8")


def verify_session_credential(cookie_value: Optional[str]) -> str:
    """
    Verify a session cookie value and return the user ID.

    Raises:
        MissingCredential: If no cookie value was presented
        InvalidCredential: If the cookie signature or the JWT does not verify
    """
    if not cookie_value:
        raise MissingCredential()

    try:
        token = _cookie_signer().unsign(cookie_value).decode("utf-8")
    except BadSignature as e:
        raise InvalidCredential("Invalid cookie signature") from e

    return decode_jwt(token)


def set_session_cookie(response: Response, credential: str) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=credential,
        httponly=True,
        secure=True,
        samesite="strict",
        path="/",
        max_age=settings.session_cookie_max_age,
    )


def clear_session_cookie(response: Response) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value="",
        httponly=True,
        secure=True,
        samesite="strict",
        path="/",
        max_age=0,
    )
