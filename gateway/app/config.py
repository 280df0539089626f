"""
Configuration module for the Secret Gateway.

This module uses Pydantic Settings to load and validate environment variables
for the shared session secret, the request/response header policies, CORS
headers and server settings.

Environment variables are loaded from .env file or system environment.
The resulting Settings object is frozen: it is built once at startup and
passed into every gateway component.
"""

from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_DROP_REQUEST_HEADERS = (
    "cf-connecting-ip,cf-worker,cf-ray,cf-visitor,cf-ipcountry,cf-ipcontinent,"
    "x-forwarded-for,x-real-ip,x-client-ip,via"
)

DEFAULT_DROP_RESPONSE_HEADERS = (
    "content-security-policy,content-security-policy-report-only,"
    "clear-site-data,x-frame-options,strict-transport-security"
)

# Characters that cannot appear in a URL path segment or a cookie value
FORBIDDEN_SECRET_CHARS = set('/;,="\\?#%')


def _split_header_names(raw: str) -> List[str]:
    return [name.strip().lower() for name in raw.split(",") if name.strip()]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Holds the shared secret used for the session cookie, the header drop
    lists applied to outbound requests and client responses, and the CORS
    headers stamped on every proxied response.
    """

    # =========================================================================
    # Session Configuration
    # =========================================================================

    GATEWAY_SECRET: str = Field(
        ...,
        description="Shared secret used as login path prefix and session cookie value",
        min_length=1,
    )

    # =========================================================================
    # Header Policy
    # =========================================================================

    DROP_REQUEST_HEADERS: str = Field(
        default=DEFAULT_DROP_REQUEST_HEADERS,
        description="Comma-separated inbound headers never forwarded upstream",
    )

    DROP_RESPONSE_HEADERS: str = Field(
        default=DEFAULT_DROP_RESPONSE_HEADERS,
        description="Comma-separated upstream response headers never returned to the client",
    )

    # =========================================================================
    # CORS Configuration
    # =========================================================================

    CORS_ALLOW_ORIGIN: str = Field(default="*")
    CORS_ALLOW_METHODS: str = Field(default="*")
    CORS_ALLOW_HEADERS: str = Field(default="*")
    CORS_ALLOW_CREDENTIALS: str = Field(default="true")

    # =========================================================================
    # Gateway Server Configuration
    # =========================================================================

    PUBLIC_ORIGIN: Optional[str] = Field(
        None,
        description="Public gateway origin used in rewritten URLs (e.g., https://gw.example.com)",
    )

    GATEWAY_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the gateway server",
    )

    GATEWAY_PORT: int = Field(
        default=8080,
        description="Port to bind the gateway server",
        ge=1,
        le=65535,
    )

    LOG_LEVEL: str = Field(default="INFO")

    # =========================================================================
    # Pydantic Settings Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def drop_request_headers_list(self) -> List[str]:
        """Lower-cased inbound header names stripped before forwarding."""
        return _split_header_names(self.DROP_REQUEST_HEADERS)

    @property
    def drop_response_headers_list(self) -> List[str]:
        """Lower-cased upstream header names stripped before responding."""
        return _split_header_names(self.DROP_RESPONSE_HEADERS)

    @property
    def cors_headers(self) -> Dict[str, str]:
        """
        CORS headers set on every proxied response and preflight.

        Returns:
            Mapping of Access-Control-Allow-* header names to values.
        """
        return {
            "Access-Control-Allow-Origin": self.CORS_ALLOW_ORIGIN,
            "Access-Control-Allow-Methods": self.CORS_ALLOW_METHODS,
            "Access-Control-Allow-Headers": self.CORS_ALLOW_HEADERS,
            "Access-Control-Allow-Credentials": self.CORS_ALLOW_CREDENTIALS,
        }

    @property
    def public_origin(self) -> Optional[str]:
        if not self.PUBLIC_ORIGIN:
            return None
        return self.PUBLIC_ORIGIN.rstrip("/")

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("GATEWAY_SECRET")
    @classmethod
    def validate_secret(cls, v: str) -> str:
        """
        Validate that the secret can be used as a path segment and a cookie value.

        Args:
            v: Raw secret string

        Returns:
            Validated secret

        Raises:
            ValueError: If the secret contains whitespace or reserved characters
        """
        if any(ch.isspace() for ch in v):
            raise ValueError("GATEWAY_SECRET must not contain whitespace")

        bad = sorted(FORBIDDEN_SECRET_CHARS.intersection(v))
        if bad:
            raise ValueError(
                f"GATEWAY_SECRET contains reserved characters: {''.join(bad)}"
            )

        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

        if v.upper() not in allowed_levels:
            raise ValueError(
                f"LOG_LEVEL must be one of {allowed_levels}, got: {v}"
            )

        return v.upper()


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    This function is cached so that the settings are loaded only once
    during the application lifecycle.

    Returns:
        Settings instance with all configuration loaded and validated.

    Raises:
        ValidationError: If GATEWAY_SECRET is missing or any value is invalid.
    """
    return Settings()
