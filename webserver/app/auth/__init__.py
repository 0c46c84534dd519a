"""
Authentication Package

Wires the delegated OpenID Connect client (Authlib) into the web server.

Modules:
- oidc: OIDCMiddleware (events, authentication guard, logout)
- routes: Login and callback endpoints
- session: Session keys owned by the middleware

The authentication flow:
1. A guarded route redirects the browser to /login
2. /login redirects to the provider's authorization endpoint
3. The provider redirects back to the callback path of the redirect URI
4. The callback stores userinfo and tokens in the session
5. The browser is sent back to the page it originally asked for
"""

from .oidc import LoginRequired, OIDCError, OIDCMiddleware, OIDCSetupError

__all__ = [
    "LoginRequired",
    "OIDCError",
    "OIDCMiddleware",
    "OIDCSetupError",
]
