"""
Example routes.

Protected routes run the OIDC middleware's guard as a dependency, so an
unauthenticated request never reaches the handler body.
"""

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import (
    HTMLResponse,
    JSONResponse,
    PlainTextResponse,
    RedirectResponse,
)

from webserver.app.auth import OIDCMiddleware


NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def build_router(oidc: OIDCMiddleware, home_page_template_name: str = "home.html") -> APIRouter:
    """
    Build the example routes around an OIDC middleware instance.

    Args:
        oidc: Middleware providing the guard and session helpers
        home_page_template_name: Template rendered by /home
    """
    router = APIRouter()
    protected = [Depends(oidc.ensure_authenticated())]

    @router.get("/", response_class=PlainTextResponse)
    async def root() -> str:
        return "OK"

    @router.get("/home", response_class=HTMLResponse)
    async def home(request: Request):
        """Homepage showing the active (redacted) configuration."""
        return request.app.state.templates.TemplateResponse(
            request,
            home_page_template_name,
            {
                "is_authenticated": oidc.is_authenticated(request),
                "userinfo": oidc.userinfo(request),
                "login_path": oidc.login_path,
            },
        )

    @router.get("/profile", response_class=HTMLResponse, dependencies=protected)
    async def profile(request: Request):
        userinfo = oidc.userinfo(request) or {}
        return request.app.state.templates.TemplateResponse(
            request,
            "profile.html",
            {"userinfo": userinfo, "claims": sorted(userinfo.items())},
        )

    @router.get("/apps/{rest:path}", response_class=PlainTextResponse, dependencies=protected)
    async def apps(rest: str) -> str:
        return "Protected stuff"

    # Debug endpoints echoing framework state

    @router.get("/request", dependencies=protected)
    async def request_keys(request: Request) -> JSONResponse:
        return JSONResponse(sorted(request.scope.keys()))

    @router.get("/session", dependencies=protected)
    async def session_contents(request: Request) -> JSONResponse:
        return JSONResponse(dict(request.session))

    @router.get("/tokens", dependencies=protected)
    async def tokens(request: Request) -> JSONResponse:
        return JSONResponse(oidc.userinfo(request))

    @router.get("/validate")
    async def validate(request: Request) -> Response:
        """
        Session check for reverse proxies (e.g. nginx auth_request).

        Returns 401 with an empty body when not logged in.
        """
        if not oidc.is_authenticated(request):
            return Response(status_code=401)

        return PlainTextResponse("Authorized", headers=NO_CACHE_HEADERS)

    @router.get("/logout")
    async def logout(request: Request) -> RedirectResponse:
        oidc.logout(request)
        return RedirectResponse(url="/", status_code=302)

    return router
