"""
OIDC Middleware
===============

Wraps the Authlib Starlette client that performs the actual OpenID Connect
handshake. The wrapper adds what the example application needs around it:

- readiness and error events for startup sequencing
- an authentication guard usable as a FastAPI dependency
- session-based ``is_authenticated`` / ``logout`` helpers
- the login and callback router

Usage:
    oidc = OIDCMiddleware(
        issuer="https://dev-123.okta.com/oauth2/default",
        client_id="0oa1example",
        client_secret="very-secret-value",
        redirect_uri="http://localhost:8080/authorization-code/callback",
        scope="openid profile email",
    )
    oidc.on("ready", lambda: print("ready"))
    await oidc.initialize()

    @app.get("/protected", dependencies=[Depends(oidc.ensure_authenticated())])
    async def protected():
        ...
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from authlib.integrations.starlette_client import OAuth
from fastapi import APIRouter, Request

from webserver.app.auth import session
from webserver.app.auth.routes import build_auth_router

logger = logging.getLogger(__name__)


EVENTS = ("ready", "error")


# =============================================================================
# Exceptions
# =============================================================================

class OIDCError(Exception):
    """Base exception for OIDC middleware errors"""
    pass


class OIDCSetupError(OIDCError):
    """The identity provider could not be discovered or is misconfigured."""
    pass


class LoginRequired(OIDCError):
    """Raised by the authentication guard for unauthenticated requests."""

    def __init__(self, return_to: str, interactive: bool = True):
        super().__init__(f"Authentication required for {return_to}")
        self.return_to = return_to
        self.interactive = interactive


# =============================================================================
# Middleware
# =============================================================================

class OIDCMiddleware:
    """
    OIDC relying-party middleware backed by Authlib.

    Args:
        issuer: Issuer URL; endpoints are discovered from its metadata
        client_id: Client ID
        client_secret: Client secret
        redirect_uri: Absolute redirect URI registered with the provider
        scope: Space-separated scopes
        login_path: Path of the route that starts the login flow
        **client_options: Extra options merged into the Authlib client
            registration (e.g. ``client_kwargs={"code_challenge_method": "S256"}``)
    """

    def __init__(
        self,
        issuer: str,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scope: str = "openid",
        login_path: str = "/login",
        **client_options: Any,
    ):
        self.issuer = issuer.rstrip("/")
        self.redirect_uri = redirect_uri
        self.scope = scope
        self.login_path = login_path
        self.ready = False
        self._handlers: Dict[str, List[Callable[..., Any]]] = {name: [] for name in EVENTS}

        client_kwargs = {"scope": scope}
        client_kwargs.update(client_options.pop("client_kwargs", {}))

        self._oauth = OAuth()
        self.client = self._oauth.register(
            name="oidc",
            client_id=client_id,
            client_secret=client_secret,
            server_metadata_url=f"{self.issuer}/.well-known/openid-configuration",
            client_kwargs=client_kwargs,
            **client_options,
        )

        self._router: Optional[APIRouter] = None

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        """
        Subscribe to a middleware event.

        Args:
            event: "ready" (no arguments) or "error" (receives the OIDCSetupError)
            handler: Plain or async callable

        Raises:
            ValueError: If the event name is unknown
        """
        if event not in self._handlers:
            raise ValueError(f"Unknown event '{event}'. Expected one of {list(EVENTS)}")
        self._handlers[event].append(handler)

    async def _emit(self, event: str, *args: Any) -> None:
        for handler in self._handlers[event]:
            result = handler(*args)
            if inspect.isawaitable(result):
                await result

    # -------------------------------------------------------------------------
    # Startup
    # -------------------------------------------------------------------------

    async def initialize(self) -> Dict[str, Any]:
        """
        Discover the provider configuration and signal readiness.

        Emits "ready" on success. On failure emits "error" and raises.

        Returns:
            The provider metadata document

        Raises:
            OIDCSetupError: If discovery fails or the metadata is unusable
        """
        if self.ready:
            return self.client.server_metadata

        try:
            metadata = await self.client.load_server_metadata()
            self._check_metadata(metadata)
        except OIDCSetupError as e:
            await self._report(e)
            raise
        except (httpx.HTTPError, ValueError, TypeError) as e:
            error = OIDCSetupError(f"Unable to load OIDC provider metadata from {self.issuer}: {e}")
            await self._report(error)
            raise error from e

        self.ready = True
        logger.info(
            "OIDC middleware ready",
            extra={"issuer": self.issuer, "authorization_endpoint": metadata.get("authorization_endpoint")},
        )
        await self._emit("ready")
        return metadata

    def _check_metadata(self, metadata: Any) -> None:
        if not isinstance(metadata, dict):
            raise OIDCSetupError(f"Provider metadata must be a JSON object, got {type(metadata).__name__}")

        if not metadata.get("authorization_endpoint"):
            raise OIDCSetupError("Provider metadata is missing 'authorization_endpoint'")

        issuer = (metadata.get("issuer") or "").rstrip("/")
        if issuer != self.issuer:
            raise OIDCSetupError(
                f"Issuer mismatch: configured {self.issuer}, provider reports {issuer or 'none'}"
            )

    async def _report(self, error: OIDCSetupError) -> None:
        logger.error(f"OIDC setup failed: {error}")
        await self._emit("error", error)

    # -------------------------------------------------------------------------
    # Guard & Session
    # -------------------------------------------------------------------------

    def ensure_authenticated(self) -> Callable[[Request], Awaitable[None]]:
        """
        Build a FastAPI dependency that rejects unauthenticated requests.

        Usage:
            @app.get("/apps/{rest:path}", dependencies=[Depends(oidc.ensure_authenticated())])
        """

        async def guard(request: Request) -> None:
            if session.is_authenticated(request):
                return

            return_to = request.url.path
            if request.url.query:
                return_to = f"{return_to}?{request.url.query}"

            raise LoginRequired(return_to=return_to, interactive=_wants_redirect(request))

        return guard

    def is_authenticated(self, request: Request) -> bool:
        return session.is_authenticated(request)

    def userinfo(self, request: Request) -> Optional[Dict[str, Any]]:
        return session.get_userinfo(request)

    def tokens(self, request: Request) -> Optional[Dict[str, Any]]:
        return session.get_tokens(request)

    def logout(self, request: Request) -> None:
        """Clear the authenticated session state."""
        userinfo = session.get_userinfo(request) or {}
        session.clear_login(request)
        logger.info("User logged out", extra={"sub": userinfo.get("sub")})

    @property
    def router(self) -> APIRouter:
        """Login and callback routes, built on first access."""
        if self._router is None:
            self._router = build_auth_router(self)
        return self._router


def _wants_redirect(request: Request) -> bool:
    """Browsers get redirected to the login page; API callers get a 401."""
    if request.headers.get("x-requested-with", "").lower() == "xmlhttprequest":
        return False

    accept = request.headers.get("accept", "*/*")
    return "text/html" in accept or "*/*" in accept
