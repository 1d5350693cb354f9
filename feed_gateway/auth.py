import logging
from typing import Optional

from fastapi import Header, Request
from fastapi.responses import Response

from feed_gateway.errors import Unauthorized
from feed_gateway.vars import AUTH_TOKEN

logger = logging.getLogger("uvicorn.error")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
}
PREFLIGHT_HEADERS = {
    **CORS_HEADERS,
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Authorization, Content-Type",
}


def validate_token(authorization: Optional[str], expected: str) -> bool:
    """Check an ``Authorization: Bearer <token>`` header against the configured secret."""
    if not expected:
        return True
    if not authorization:
        return False
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return False
    return parts[1] == expected


async def require_auth(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> None:
    """
    Dependency for routes that need the bearer token when AUTH_TOKEN is configured.
    """
    if validate_token(authorization, AUTH_TOKEN):
        return
    logger.warning(f"[Auth] Unauthorized request: {request.url.path}")
    raise Unauthorized()


async def cors_middleware(request: Request, call_next):
    """Answer preflight requests before any auth check and mark every response cross-origin."""
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=PREFLIGHT_HEADERS)
    response = await call_next(request)
    for name, value in CORS_HEADERS.items():
        response.headers[name] = value
    return response
