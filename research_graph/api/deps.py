from __future__ import annotations

import hmac

from fastapi import Header, Request

from research_graph.components import Components
from research_graph.config import settings
from research_graph.errors import AppError, AuthError


def get_components(request: Request) -> Components:
    components = getattr(request.app.state, "components", None)
    if components is None:
        raise AppError("Service is starting up", status_code=503, code="UNAVAILABLE", retryable=True)
    return components


def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Identity is asserted upstream by the auth gateway via ``x-user-id``."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise AuthError("Missing user identity")
    return user_id


def require_daemon(authorization: str | None = Header(default=None)) -> None:
    provided = (authorization or "").removeprefix("Bearer ").strip()
    secret = settings.daemon_secret
    if not secret or not hmac.compare_digest(provided.encode(), secret.encode()):
        raise AuthError("Invalid daemon secret")
