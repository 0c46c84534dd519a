"""
Authentication routes for OIDC login and callback handling.

The authorization code flow itself (state, nonce, code exchange and ID token
validation) is performed by the Authlib client; these handlers only start
the flow and record its result in the session.
"""

import logging
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from webserver.app.auth import session
from webserver.app.models import SessionTokens

if TYPE_CHECKING:
    from webserver.app.auth.oidc import OIDCMiddleware

logger = logging.getLogger(__name__)


def build_auth_router(oidc: "OIDCMiddleware") -> APIRouter:
    """
    Build the login and callback routes for an OIDC middleware instance.

    The callback is served on the path of the configured redirect URI.
    """
    auth_router = APIRouter(tags=["authentication"])
    callback_path = urlparse(oidc.redirect_uri).path or "/"

    # =========================================================================
    # Login Endpoint
    # =========================================================================

    @auth_router.get(oidc.login_path, name="oidc_login")
    async def login(request: Request) -> RedirectResponse:
        """
        Start the authorization code flow by redirecting to the provider.

        Authlib stores state and nonce in the session for the callback.
        """
        return await oidc.client.authorize_redirect(request, oidc.redirect_uri)

    # =========================================================================
    # Callback Endpoint
    # =========================================================================

    @auth_router.get(callback_path, name="oidc_callback")
    async def callback(request: Request):
        """
        Finish the authorization code flow.

        On success the userinfo claims and tokens are stored in the session
        and the user is sent back to the page that required login.
        """
        try:
            token = await oidc.client.authorize_access_token(request)
            userinfo = token.get("userinfo")
            if not userinfo:
                userinfo = await oidc.client.userinfo(token=token)
        except OAuthError as e:
            logger.warning(
                f"OIDC callback failed: {e.error}",
                extra={"description": e.description},
            )
            return _render_error_page(
                request,
                title="Authentication Failed",
                message=e.description or e.error or "Unable to complete login",
                login_path=oidc.login_path,
            )

        session.store_login(request, userinfo, SessionTokens.from_token_response(token))
        logger.info("User logged in", extra={"sub": userinfo.get("sub")})

        return RedirectResponse(url=session.pop_return_to(request), status_code=302)

    return auth_router


def _render_error_page(
    request: Request,
    title: str,
    message: str,
    login_path: str = "/login",
    status_code: int = 401,
) -> HTMLResponse:
    """
    Render the error page for authentication failures.

    Args:
        title: Error title
        message: Error message (no tokens or secrets)
        login_path: Target of the retry link
        status_code: HTTP status code
    """
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "error.html",
        {"title": title, "message": message, "login_path": login_path},
        status_code=status_code,
    )
