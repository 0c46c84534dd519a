"""
Data Models Module

Pydantic models shared between the configuration layer and the views.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class OIDCDisplayConfig(BaseModel):
    """Redacted OIDC configuration rendered on the homepage."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    issuer: str = Field(..., description="Issuer URL")
    client_id: str = Field(..., alias="clientId", description="Client ID")
    client_secret: str = Field(..., alias="clientSecret", description="Masked client secret")
    redirect_uri: str = Field(..., alias="redirectUri", description="Redirect URI")
    scope: str = Field(..., description="Requested scopes")


class SessionTokens(BaseModel):
    """Token fields kept in the session after a successful login."""

    access_token: Optional[str] = Field(None, description="Access token")
    id_token: Optional[str] = Field(None, description="Raw ID token")
    token_type: Optional[str] = Field(None, description="Token type (usually Bearer)")
    expires_at: Optional[int] = Field(None, description="Access token expiry (epoch seconds)")
    scope: Optional[str] = Field(None, description="Granted scopes")

    @classmethod
    def from_token_response(cls, token: Dict[str, Any]) -> "SessionTokens":
        return cls(**{name: token.get(name) for name in cls.model_fields})
