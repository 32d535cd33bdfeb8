class GatewayError(Exception):
    """Base class for failures that map onto a JSON error response."""

    status_code = 500
    error = "Internal Server Error"

    def __init__(self, message: str = None):
        super().__init__(message or self.error)
        self.details = message or self.error


class UpstreamAuthError(GatewayError):
    """Identity provider token exchange or userinfo lookup failed."""

    status_code = 500
    error = "OAuth callback failed"


class InvalidCredential(GatewayError):
    """Session cookie missing, tampered with, expired or malformed."""

    status_code = 401
    error = "Invalid token"


class MissingCredential(InvalidCredential):
    error = "User not authenticated"


class InvalidSignature(GatewayError):
    """Webhook payload could not be authenticated."""

    status_code = 400
    error = "Webhook signature verification failed."


class UserNotFound(GatewayError):
    status_code = 404
    error = "User not found"


class PaymentProviderError(GatewayError):
    """Checkout session could not be created."""

    status_code = 502
    error = "Payment provider unavailable"
