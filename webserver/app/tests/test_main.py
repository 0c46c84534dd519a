"""
Tests for the application factory and startup sequencing.

The server must not start listening before the OIDC middleware is ready,
and a setup error must stop the process.
"""

from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from fastapi.testclient import TestClient

from webserver.app import main
from webserver.app.auth import OIDCSetupError

from .conftest import PROVIDER_METADATA


@pytest.mark.asyncio
async def test_serve_starts_listening_only_after_ready(app):
    events = []
    app.state.oidc.on("ready", lambda: events.append("ready"))

    with patch.object(app.state.oidc.client, "load_server_metadata", AsyncMock(return_value=PROVIDER_METADATA)), \
            patch("webserver.app.main.uvicorn.Server") as server_cls:
        server_cls.return_value.serve = AsyncMock(side_effect=lambda: events.append("serve"))
        await main.serve(app)

    assert events == ["ready", "serve"]
    config = server_cls.call_args.args[0]
    assert config.port == 8080
    assert config.host == "127.0.0.1"


@pytest.mark.asyncio
async def test_serve_never_starts_when_setup_fails(app):
    failing = AsyncMock(side_effect=httpx.ConnectError("connection refused"))

    with patch.object(app.state.oidc.client, "load_server_metadata", failing), \
            patch("webserver.app.main.uvicorn.Server") as server_cls:
        with pytest.raises(OIDCSetupError):
            await main.serve(app)

    server_cls.assert_not_called()


def test_main_exits_on_setup_error(settings):
    with patch("webserver.app.main.get_settings", return_value=settings), \
            patch("webserver.app.main.setup_logging"), \
            patch("webserver.app.main.serve", AsyncMock(side_effect=OIDCSetupError("discovery failed"))):
        with pytest.raises(SystemExit) as exc_info:
            main.main()

    assert exc_info.value.code == 1


def test_lifespan_waits_for_oidc(app):
    load = AsyncMock(return_value=PROVIDER_METADATA)

    with patch.object(app.state.oidc.client, "load_server_metadata", load):
        with TestClient(app) as client:
            assert app.state.oidc.ready is True
            assert client.get("/").text == "OK"

    load.assert_awaited_once()


def test_lifespan_aborts_startup_on_setup_error(app):
    failing = AsyncMock(side_effect=httpx.ConnectError("connection refused"))

    with patch.object(app.state.oidc.client, "load_server_metadata", failing):
        with pytest.raises(OIDCSetupError):
            with TestClient(app):
                pass


def test_custom_home_page_template(settings):
    app = main.create_app(settings, home_page_template_name="profile.html")

    response = TestClient(app).get("/home")

    assert response.status_code == 200
    assert "My User Profile" in response.text


def test_extra_oidc_options_change_login_path(settings):
    app = main.create_app(settings, extra_oidc_options={"login_path": "/signin"})

    response = TestClient(app).get("/apps/x", follow_redirects=False)

    assert response.headers["location"] == "/signin"


def test_invalid_configuration_is_rejected(settings):
    broken = settings.model_copy(update={"OIDC_REDIRECT_URI": "http://localhost:8080"})

    with pytest.raises(ValueError, match="callback path"):
        main.create_app(broken)


def test_extra_oidc_options_override_settings(settings):
    app = main.create_app(settings, extra_oidc_options={"scope": "openid groups"})
    app.state.oidc.client.server_metadata.update(PROVIDER_METADATA, _loaded_at=1)

    response = TestClient(app).get("/login", follow_redirects=False)

    assert app.state.oidc.scope == "openid groups"
    assert parse_qs(urlparse(response.headers["location"]).query)["scope"] == ["openid groups"]
