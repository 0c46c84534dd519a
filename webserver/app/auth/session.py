"""
Session Helpers
===============

The session itself is stored and signed by Starlette's SessionMiddleware.
This module only names the keys the OIDC middleware keeps in it and wraps
reading and writing them.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from starlette.requests import Request

from webserver.app.models import SessionTokens

logger = logging.getLogger(__name__)


USERINFO_KEY = "userinfo"
TOKENS_KEY = "tokens"
RETURN_TO_KEY = "return_to"


# =============================================================================
# Login State
# =============================================================================

def store_login(request: Request, userinfo: Dict[str, Any], tokens: SessionTokens) -> None:
    """
    Record a completed login in the session.

    Refresh tokens are not kept; the session lives in a cookie.
    """
    request.session[USERINFO_KEY] = dict(userinfo)
    request.session[TOKENS_KEY] = tokens.model_dump(exclude_none=True)


def clear_login(request: Request) -> None:
    request.session.pop(USERINFO_KEY, None)
    request.session.pop(TOKENS_KEY, None)
    request.session.pop(RETURN_TO_KEY, None)


def is_authenticated(request: Request) -> bool:
    return bool(request.session.get(USERINFO_KEY))


def get_userinfo(request: Request) -> Optional[Dict[str, Any]]:
    return request.session.get(USERINFO_KEY)


def get_tokens(request: Request) -> Optional[Dict[str, Any]]:
    return request.session.get(TOKENS_KEY)


# =============================================================================
# Post-login Redirect
# =============================================================================

def remember_return_to(request: Request, url: str) -> None:
    request.session[RETURN_TO_KEY] = url


def pop_return_to(request: Request, default: str = "/") -> str:
    """
    Take the URL remembered before login out of the session.

    Only relative paths on this site are honoured; anything else
    (absolute or protocol-relative URLs) falls back to ``default``.
    """
    url = request.session.pop(RETURN_TO_KEY, None)
    if not url:
        return default

    parsed = urlparse(url)
    if parsed.scheme or parsed.netloc or not url.startswith("/") or url.startswith("//"):
        logger.warning(f"Ignoring unsafe return URL: {url}")
        return default

    return url
