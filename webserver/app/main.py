"""
FastAPI Web Server Application Factory
======================================

A simple web server that initializes the OIDC middleware with the given
configuration, and attaches route handlers for the example homepage,
profile page, protected routes and logout.

Routes:
    - /login, <callback path> : OIDC authorization code flow (Authlib)
    - /                       : Static "OK"
    - /home                   : Homepage showing the active configuration
    - /profile, /apps/*       : Protected pages
    - /request, /session,
      /tokens                 : Protected debug endpoints
    - /validate               : Session check (401 / 200)
    - /logout                 : Clear the session
    - /assets/*               : Static CSS

Environment Variables:
    - OIDC_ISSUER, OIDC_CLIENT_ID, OIDC_CLIENT_SECRET (required)
    - OIDC_REDIRECT_URI, OIDC_SCOPE, HOST, PORT, SESSION_SECRET, LOG_LEVEL

Running the Service:
    python -m webserver.app.main

    or, with the uvicorn CLI (the lifespan waits for OIDC discovery):
        uvicorn webserver.app.main:create_app --factory --port 8080
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.middleware.sessions import SessionMiddleware

from webserver.app.auth import LoginRequired, OIDCMiddleware, OIDCSetupError
from webserver.app.auth import session
from webserver.app.config import (
    Settings,
    display_config,
    get_settings,
    validate_configuration,
)
from webserver.app.routes import build_router


COMMON_DIR = Path(__file__).resolve().parent.parent / "common"
TEMPLATE_DIR = COMMON_DIR / "views"
ASSETS_DIR = COMMON_DIR / "assets"

logger = logging.getLogger(__name__)


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup waits for the OIDC middleware to become ready. uvicorn runs the
    lifespan before binding its socket, so a setup error aborts startup
    without ever accepting a connection.
    """
    settings: Settings = app.state.settings
    oidc: OIDCMiddleware = app.state.oidc

    logger.info(
        "Starting web server",
        extra={
            "issuer": settings.issuer,
            "port": settings.PORT,
            "log_level": settings.LOG_LEVEL,
        }
    )

    await oidc.initialize()

    yield

    logger.info("Web server shutdown complete")


# Create FastAPI application
def create_app(
    settings: Optional[Settings] = None,
    extra_oidc_options: Optional[Dict[str, Any]] = None,
    home_page_template_name: str = "home.html",
) -> FastAPI:
    """
    Application factory function.

    Args:
        settings: Configuration; loaded from the environment when omitted
        extra_oidc_options: Extra options passed to the OIDC middleware
            (e.g. ``{"login_path": "/signin", "client_kwargs": {"code_challenge_method": "S256"}}``)
        home_page_template_name: Template rendered by /home

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    status_report = validate_configuration(settings)
    for warning in status_report["warnings"]:
        logger.warning(f"Configuration warning: {warning}")
    if not status_report["valid"]:
        raise ValueError(f"Invalid configuration: {'; '.join(status_report['errors'])}")

    # Extra options override the settings-derived values
    oidc_options: Dict[str, Any] = {
        "issuer": settings.OIDC_ISSUER,
        "client_id": settings.OIDC_CLIENT_ID,
        "client_secret": settings.OIDC_CLIENT_SECRET,
        "redirect_uri": settings.OIDC_REDIRECT_URI,
        "scope": settings.OIDC_SCOPE,
    }
    oidc_options.update(extra_oidc_options or {})
    oidc = OIDCMiddleware(**oidc_options)

    app = FastAPI(
        title="OIDC Web Server Example",
        description="Example web application protected by OpenID Connect",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
    )

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SESSION_SECRET,
        same_site="lax",
        https_only=settings.OIDC_REDIRECT_URI.startswith("https://"),
    )

    # Provide the configuration to the view layer because we show it on the homepage
    templates = Jinja2Templates(directory=str(TEMPLATE_DIR))
    templates.env.globals["oidc_config"] = display_config(settings).model_dump(by_alias=True)

    app.state.settings = settings
    app.state.oidc = oidc
    app.state.templates = templates

    app.mount("/assets", StaticFiles(directory=str(ASSETS_DIR)), name="assets")

    app.include_router(oidc.router)
    app.include_router(build_router(oidc, home_page_template_name))

    @app.exception_handler(LoginRequired)
    async def login_required_handler(request: Request, exc: LoginRequired) -> Response:
        """
        Send browsers to the login page, remembering where they were going.

        Non-interactive callers get a bare 401.
        """
        if not exc.interactive:
            return Response(status_code=status.HTTP_401_UNAUTHORIZED)

        session.remember_return_to(request, exc.return_to)
        return RedirectResponse(url=oidc.login_path, status_code=status.HTTP_302_FOUND)

    return app


async def serve(app: FastAPI) -> None:
    """
    Start listening once the OIDC middleware is ready.

    Raises:
        OIDCSetupError: If the middleware fails to initialize; the server
            is never started in that case.
    """
    settings: Settings = app.state.settings
    oidc: OIDCMiddleware = app.state.oidc

    oidc.on("ready", lambda: logger.info(f"OIDC ready, starting server on port {settings.PORT}"))
    await oidc.initialize()

    config = uvicorn.Config(
        app,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    """
    Process entry point.

    An error while setting up OIDC is fatal: it is logged and the process
    exits immediately.
    """
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)

    app = create_app(settings)

    try:
        asyncio.run(serve(app))
    except OIDCSetupError as e:
        logger.critical(f"An error occurred while setting up OIDC: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
