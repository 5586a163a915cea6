import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Clerk (auth + per-user metadata store)
    CLERK_SECRET_KEY: Optional[str] = None
    CLERK_JWT_KEY: Optional[str] = None  # PEM public key for networkless verification
    CLERK_ISSUER: Optional[str] = None  # e.g. https://your-instance.clerk.accounts.dev
    CLERK_JWKS_URL: Optional[str] = None
    CLERK_AUDIENCE: Optional[str] = None
    CLERK_API_URL: str = "https://api.clerk.com/v1"
    ENTITLEMENT_STORE: Optional[str] = None  # "clerk" | "memory" (default: clerk when key set)

    # Generation (Groq) + OCR (Google Vision)
    GROQ_API_KEY: Optional[str] = None
    GROQ_VISION_MODEL: str = "meta-llama/llama-4-scout-17b-16e-instruct"
    GROQ_TEXT_MODEL: str = "llama-3.3-70b-versatile"
    GOOGLE_VISION_API_KEY: Optional[str] = None
    GOOGLE_VISION_URL: str = "https://vision.googleapis.com/v1/images:annotate"
    USE_MOCK_DATA: bool = False

    # Stripe
    STRIPE_SECRET_KEY: Optional[str] = None

    # Entitlements
    TRIAL_DAYS: int = 3
    FREE_QUOTA: int = 2

    # Upload limits
    MAX_IMAGES: int = 5
    MAX_IMAGE_BYTES: int = 10 * 1024 * 1024

    # Pipeline timing
    VISION_TIMEOUT_SECONDS: float = 30.0
    SYNTHESIS_TIMEOUT_SECONDS: float = 45.0
    OCR_TIMEOUT_SECONDS: float = 20.0
    MOCK_DELAY_SECONDS: float = 1.5

    # App
    CORS_ORIGINS: str = "http://localhost:3000"  # comma-separated

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("listingai")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "CLERK_SECRET_KEY",
        "GROQ_API_KEY",
        "GOOGLE_VISION_API_KEY",
        "STRIPE_SECRET_KEY",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    if getattr(cfg, "USE_MOCK_DATA", False):
        log.warning("USE_MOCK_DATA is enabled: visual analysis and synthesis will return placeholders")

    return True
