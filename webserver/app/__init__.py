"""
OIDC Web Server Example
=======================

Example web application showing how to protect routes with an OpenID
Connect middleware: session setup, protected routes, a logout endpoint and
a homepage that renders the active configuration.

Architecture:
    Browser → FastAPI (this service) → OIDC provider (via Authlib)

Entry point: ``webserver.app.main`` (``create_app`` / ``main``).
"""
