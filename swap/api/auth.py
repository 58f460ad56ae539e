"""
Authentication

Optional bearer token guarding every non-public endpoint, plus acting
principal resolution.

The client identifies the actor by an email in the request body. When a
trusted gateway has authenticated the caller it forwards the verified email
in the X-User-Email header; if present it wins, and a body email that
disagrees with it is rejected instead of being trusted.
"""
import logging
import secrets
from typing import Optional
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from swap import config
from swap.services.errors import NotAuthorized
from swap.services.user_service import normalize_email

logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)

ACTOR_HEADER = "X-User-Email"

# Public endpoints that don't require authentication
PUBLIC_ENDPOINTS = {
    "/",
    "/health",
    "/api/docs",
    "/api/redoc",
    "/api/openapi.json"
}


def is_public_endpoint(path: str) -> bool:
    """Check if endpoint is public"""
    return path in PUBLIC_ENDPOINTS or path.startswith("/api/docs")


async def verify_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> bool:
    """
    Verify the bearer token when SWAP_API_TOKEN is configured.

    With no token configured (local development) every caller is accepted.

    Returns:
        True if valid, raises HTTPException otherwise
    """
    expected = config.SWAP_API_TOKEN
    if expected is None:
        return True

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": {
                    "code": "AUTH_001",
                    "message": "Authorization header missing",
                    "details": "Please provide a valid bearer token"
                }
            },
            headers={"WWW-Authenticate": "Bearer"}
        )

    if not secrets.compare_digest(credentials.credentials, expected):
        logger.warning("Invalid API token attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": {
                    "code": "AUTH_002",
                    "message": "Invalid or expired token",
                    "details": "The provided token is not valid"
                }
            },
            headers={"WWW-Authenticate": "Bearer"}
        )

    return True


async def require_admin_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> bool:
    """
    Guard for administrative endpoints that create or destroy tokens.

    Unlike verify_token this fails closed: with no SWAP_API_TOKEN configured
    the endpoint is disabled rather than open.
    """
    if config.SWAP_API_TOKEN is None:
        logger.warning("Admin endpoint called but SWAP_API_TOKEN is not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "error": {
                    "code": "AUTH_003",
                    "message": "Admin operations are disabled",
                    "details": "Set SWAP_API_TOKEN to enable administrative endpoints"
                }
            }
        )
    return await verify_token(credentials)


def resolve_actor(request: Request, claimed_email: str) -> str:
    """
    Email of the principal performing an action.

    Raises:
        NotAuthorized: If the gateway-verified email disagrees with the claim
    """
    claimed = normalize_email(claimed_email)
    verified = request.headers.get(ACTOR_HEADER)
    if not verified:
        return claimed

    verified = normalize_email(verified)
    if verified != claimed:
        logger.warning(f"Actor mismatch on {request.url.path}: header={verified} body={claimed}")
        raise NotAuthorized("Acting email does not match the authenticated user.")
    return verified
