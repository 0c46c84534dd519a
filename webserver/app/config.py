"""
Configuration module for the OIDC example web server.

This module uses Pydantic Settings to load and validate the OIDC client
configuration (issuer, client credentials, redirect URI, scope) together with
the server and session settings.

Settings are loaded from a .env file or the process environment, or can be
passed programmatically as keyword arguments:

    >>> settings = Settings(
    ...     OIDC_ISSUER="https://dev-123.okta.com/oauth2/default",
    ...     OIDC_CLIENT_ID="0oa1example",
    ...     OIDC_CLIENT_SECRET="very-secret-value",
    ... )
"""

import secrets
from functools import lru_cache
from typing import List
from urllib.parse import urlparse

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from webserver.app.models import OIDCDisplayConfig


SECRET_MASK = "****"
VISIBLE_SECRET_CHARS = 4


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Read once before the server is constructed and never mutated afterwards.
    """

    # =========================================================================
    # OIDC Client Configuration
    # =========================================================================

    OIDC_ISSUER: str = Field(
        ...,
        description="Issuer URL of the authorization server (e.g., https://dev-123.okta.com/oauth2/default)",
        min_length=1,
    )

    OIDC_CLIENT_ID: str = Field(
        ...,
        description="Client ID of the registered web application",
        min_length=1,
    )

    OIDC_CLIENT_SECRET: str = Field(
        ...,
        description="Client secret of the registered web application",
        min_length=1,
    )

    OIDC_REDIRECT_URI: str = Field(
        default="http://localhost:8080/authorization-code/callback",
        description="Redirect URI registered with the authorization server",
    )

    OIDC_SCOPE: str = Field(
        default="openid profile email",
        description="Space-separated scopes requested during login",
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================

    HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the web server",
    )

    PORT: int = Field(
        default=8080,
        description="Port to bind the web server",
        ge=1,
        le=65535,
    )

    SESSION_SECRET: str = Field(
        default_factory=lambda: secrets.token_urlsafe(32),
        description="Key used to sign the session cookie (random per process when unset)",
        min_length=1,
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level",
    )

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
    def issuer(self) -> str:
        """Issuer URL without a trailing slash."""
        return self.OIDC_ISSUER.rstrip("/")

    @property
    def server_metadata_url(self) -> str:
        """OpenID Provider discovery document for the issuer."""
        return f"{self.issuer}/.well-known/openid-configuration"

    @property
    def callback_path(self) -> str:
        """Path component of the redirect URI, served by the callback route."""
        return urlparse(self.OIDC_REDIRECT_URI).path or "/"

    @property
    def scopes(self) -> List[str]:
        return self.OIDC_SCOPE.split()

    @property
    def session_secret_generated(self) -> bool:
        return "SESSION_SECRET" not in self.model_fields_set

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("OIDC_ISSUER", "OIDC_REDIRECT_URI")
    @classmethod
    def validate_http_url(cls, v: str) -> str:
        """
        Validate that the value is an absolute http(s) URL.

        Raises:
            ValueError: If the scheme or host is missing
        """
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(
                f"Invalid URL: '{v}'. Expected an absolute http(s) URL"
            )
        return v

    @field_validator("OIDC_SCOPE")
    @classmethod
    def validate_scope(cls, v: str) -> str:
        """
        Validate that the requested scopes include 'openid'.

        Raises:
            ValueError: If 'openid' is missing
        """
        if "openid" not in v.split():
            raise ValueError("OIDC_SCOPE must include 'openid'")
        return " ".join(v.split())

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

    Raises:
        ValidationError: If required environment variables are missing
                        or invalid.
    """
    return Settings()


# =============================================================================
# Configuration Helpers
# =============================================================================

def mask_secret(secret: str) -> str:
    """
    Mask a secret, leaving at most its last four characters readable.

    Example:
        >>> mask_secret("abcdefgh1234")
        '****1234'
        >>> mask_secret("")
        '****'
    """
    return SECRET_MASK + secret[-VISIBLE_SECRET_CHARS:] if secret else SECRET_MASK


def display_config(settings: Settings) -> OIDCDisplayConfig:
    """
    Build the redacted copy of the OIDC configuration shown on the homepage.

    The result is for display only and must never be used as a credential.
    """
    return OIDCDisplayConfig(
        issuer=settings.OIDC_ISSUER,
        client_id=settings.OIDC_CLIENT_ID,
        client_secret=mask_secret(settings.OIDC_CLIENT_SECRET),
        redirect_uri=settings.OIDC_REDIRECT_URI,
        scope=settings.OIDC_SCOPE,
    )


def validate_configuration(settings: Settings) -> dict:
    """
    Check the loaded settings and return a status report.

    Called during application startup; errors and warnings are logged.

    Returns:
        Dictionary with validation status, errors and warnings.
    """
    errors = []
    warnings = []

    issuer = urlparse(settings.OIDC_ISSUER)
    if issuer.scheme != "https" and issuer.hostname not in ("localhost", "127.0.0.1"):
        warnings.append("OIDC_ISSUER does not use https")

    redirect = urlparse(settings.OIDC_REDIRECT_URI)
    if redirect.hostname in ("localhost", "127.0.0.1"):
        redirect_port = redirect.port or (443 if redirect.scheme == "https" else 80)
        if redirect_port != settings.PORT:
            warnings.append(
                f"OIDC_REDIRECT_URI points to port {redirect_port} but the server listens on {settings.PORT}"
            )

    if settings.session_secret_generated:
        warnings.append("SESSION_SECRET is not set; sessions will not survive a restart")

    if not settings.callback_path.startswith("/") or settings.callback_path == "/":
        errors.append("OIDC_REDIRECT_URI must have a callback path")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "scopes": settings.scopes,
        "callback_path": settings.callback_path,
    }
