from fastapi.responses import JSONResponse

from backend.utils.errors import GatewayError


def success_response(data=None, status=200):
    return JSONResponse(status_code=status, content=data or {})


def error_response(error, status=400, **fields):
    return JSONResponse(
        status_code=status,
        content={"error": error, **fields},
    )


def gateway_error_response(exc: GatewayError, **fields):
    """Render a GatewayError; 500-class failures also carry their details."""
    if exc.status_code >= 500 and "details" not in fields:
        fields["details"] = exc.details
    return error_response(exc.error, status=exc.status_code, **fields)
