"""
Auth utilities for the ListingAI API.

Validates Clerk session JWTs and extracts user_id from request context.
Falls back to X-User-Id header outside production (tests, local dev).
"""
from fastapi import Header, Request
from typing import Any, Dict, Optional
from listingai.core.config import settings
from listingai.core.errors import UnauthorizedError
import jwt
import logging

logger = logging.getLogger(__name__)

# One PyJWKClient per JWKS URL; PyJWKClient caches signing keys itself
_jwks_clients: Dict[str, jwt.PyJWKClient] = {}


def _jwks_url() -> Optional[str]:
    if settings.CLERK_JWKS_URL:
        return settings.CLERK_JWKS_URL
    if settings.CLERK_ISSUER:
        return f"{settings.CLERK_ISSUER.rstrip('/')}/.well-known/jwks.json"
    return None


def _get_jwks_client(url: str) -> jwt.PyJWKClient:
    client = _jwks_clients.get(url)
    if client is None:
        client = jwt.PyJWKClient(url)
        _jwks_clients[url] = client
    return client


def verify_clerk_jwt(token: str) -> Dict[str, Any]:
    """
    Verify a Clerk session JWT and return its claims.

    Uses CLERK_JWT_KEY (PEM public key) when configured, otherwise the
    JWKS published at CLERK_JWKS_URL / CLERK_ISSUER.

    Raises:
        jwt.PyJWTError: invalid signature, expired token, or no verification key
    """
    options = {"verify_signature": True, "verify_exp": True, "verify_aud": bool(settings.CLERK_AUDIENCE)}
    decode_kwargs: Dict[str, Any] = {"algorithms": ["RS256"], "options": options}
    if settings.CLERK_AUDIENCE:
        decode_kwargs["audience"] = settings.CLERK_AUDIENCE
    if settings.CLERK_ISSUER:
        decode_kwargs["issuer"] = settings.CLERK_ISSUER

    if settings.CLERK_JWT_KEY:
        return jwt.decode(token, settings.CLERK_JWT_KEY, **decode_kwargs)

    url = _jwks_url()
    if not url:
        raise jwt.PyJWTError("CLERK_JWT_KEY, CLERK_JWKS_URL or CLERK_ISSUER must be configured")

    signing_key = _get_jwks_client(url).get_signing_key_from_jwt(token)
    return jwt.decode(token, signing_key.key, **decode_kwargs)


async def get_current_user_id(
    request: Request,
    x_user_id: Optional[str] = Header(None, description="Non-production fallback: user ID"),
) -> str:
    """
    Extract current user ID from request context.

    Priority:
    1. Clerk JWT from Authorization header
    2. X-User-Id header (not in production)
    3. Raise 401 Unauthorized
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:]
        try:
            claims = verify_clerk_jwt(token)
        except jwt.ExpiredSignatureError:
            raise UnauthorizedError("Token expired")
        except jwt.PyJWTError as e:
            logger.debug(f"Invalid token: {e}")
            raise UnauthorizedError("Invalid token")

        user_id = claims.get("sub")
        if not user_id:
            raise UnauthorizedError("No 'sub' claim in token")
        request.state.user_id = user_id
        return user_id

    if x_user_id and settings.ENV.lower() != "production":
        request.state.user_id = x_user_id
        return x_user_id

    raise UnauthorizedError("Unauthorized")
