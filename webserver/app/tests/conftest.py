"""
Shared fixtures for the web server tests.

The identity provider is never contacted: discovery metadata is seeded into
the Authlib client and the token exchange is replaced with an AsyncMock.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from webserver.app.config import Settings
from webserver.app.main import create_app


ISSUER = "https://idp.example.com/oauth2/default"
CLIENT_SECRET = "test-client-secret-wxyz"
CALLBACK_PATH = "/authorization-code/callback"

PROVIDER_METADATA = {
    "issuer": ISSUER,
    "authorization_endpoint": f"{ISSUER}/v1/authorize",
    "token_endpoint": f"{ISSUER}/v1/token",
    "userinfo_endpoint": f"{ISSUER}/v1/userinfo",
    "jwks_uri": f"{ISSUER}/v1/keys",
    "end_session_endpoint": f"{ISSUER}/v1/logout",
}

USERINFO = {
    "sub": "00u1abcdEFGH",
    "name": "Test User",
    "email": "test.user@example.com",
    "preferred_username": "test.user@example.com",
}

TOKEN_RESPONSE = {
    "access_token": "mock-access-token",
    "id_token": "mock-id-token",
    "refresh_token": "mock-refresh-token",
    "token_type": "Bearer",
    "expires_at": 9999999999,
    "scope": "openid profile email",
    "userinfo": USERINFO,
}


@pytest.fixture
def settings():
    """Settings supplied programmatically, as the server expects"""
    return Settings(
        OIDC_ISSUER=ISSUER,
        OIDC_CLIENT_ID="test-client-id",
        OIDC_CLIENT_SECRET=CLIENT_SECRET,
        OIDC_REDIRECT_URI=f"http://localhost:8080{CALLBACK_PATH}",
        OIDC_SCOPE="openid profile email",
        HOST="127.0.0.1",
        PORT=8080,
        SESSION_SECRET="test-session-secret",
        LOG_LEVEL="INFO",
    )


@pytest.fixture
def app(settings):
    """Application with provider discovery already satisfied"""
    app = create_app(settings)
    app.state.oidc.client.server_metadata.update(PROVIDER_METADATA, _loaded_at=1)
    return app


@pytest.fixture
def oidc(app):
    return app.state.oidc


@pytest.fixture
def client(app):
    """Test client (lifespan is not run)"""
    return TestClient(app)


@pytest.fixture
def token_exchange(oidc):
    """Replace the authorization code exchange with a canned token response"""
    with patch.object(
        oidc.client,
        "authorize_access_token",
        AsyncMock(return_value=dict(TOKEN_RESPONSE)),
    ) as mock_exchange:
        yield mock_exchange


@pytest.fixture
def authenticated_client(client, token_exchange):
    """Test client whose session completed the login callback"""
    response = client.get(f"{CALLBACK_PATH}?code=mock-code&state=mock-state", follow_redirects=False)
    assert response.status_code == 302
    return client
