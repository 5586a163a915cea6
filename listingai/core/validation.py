"""
Environment validation utilities.

Ensures the backend fails fast on misconfiguration while
remaining bypassable for tests via SKIP_ENV_VALIDATION.
"""

import os
from typing import Optional, Iterable

from listingai.core.config import settings


class EnvValidationError(RuntimeError):
    """Raised when environment validation fails."""


def _require(vars_required: Iterable[str], source: object) -> None:
    for var in vars_required:
        if not getattr(source, var, None):
            raise EnvValidationError(f"{var} is required in production")


def validate_env(env: Optional[str] = None, settings_obj=None) -> bool:
    """Validate environment configuration.

    Args:
        env: Override environment name (defaults to settings.ENV)
        settings_obj: Override settings object (defaults to listingai.core.config.settings)

    Returns:
        True if validation passes.

    Raises:
        EnvValidationError when a rule is violated.
    """
    if os.getenv("SKIP_ENV_VALIDATION") == "1":
        return True

    cfg = settings_obj or settings
    mode = (env or getattr(cfg, "ENV", "development") or "development").lower()

    store = (getattr(cfg, "ENTITLEMENT_STORE", None) or "").lower()
    if store and store not in {"clerk", "memory"}:
        raise EnvValidationError("ENTITLEMENT_STORE must be 'clerk' or 'memory'")

    if getattr(cfg, "FREE_QUOTA", 0) < 0:
        raise EnvValidationError("FREE_QUOTA must be >= 0")
    if getattr(cfg, "TRIAL_DAYS", 0) < 0:
        raise EnvValidationError("TRIAL_DAYS must be >= 0")
    if getattr(cfg, "MAX_IMAGES", 5) < 1:
        raise EnvValidationError("MAX_IMAGES must be >= 1")

    # Required vars in production
    required_prod = [
        "CLERK_SECRET_KEY",
        "STRIPE_SECRET_KEY",
    ]

    if mode == "production":
        _require(required_prod, cfg)
        if store == "memory":
            raise EnvValidationError("ENTITLEMENT_STORE=memory is not allowed in production")
        if not (getattr(cfg, "CLERK_JWT_KEY", None) or getattr(cfg, "CLERK_JWKS_URL", None) or getattr(cfg, "CLERK_ISSUER", None)):
            raise EnvValidationError("CLERK_JWT_KEY, CLERK_JWKS_URL or CLERK_ISSUER is required in production")

    return True
