"""
FastAPI Dependencies for API Routes

Reusable dependency functions for the session endpoints. Separated from
server.py so routers can import them without importing the app factory.
"""

import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..application.controllers.session_controller import SessionController
from ..domain.services.status_publisher import StatusPublisher

bearer_scheme = HTTPBearer(auto_error=False)


async def verify_service_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> str:
    """
    Require ``Authorization: Bearer <WHATSAPP_SERVICE_TOKEN>``.

    An unset service token rejects every request.

    Raises:
        HTTPException: 401 if the header is missing or the token does not match
    """
    expected = getattr(request.app.state, "service_token", "") or ""
    supplied = credentials.credentials if credentials else ""

    if not expected or not supplied or not secrets.compare_digest(supplied.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return supplied


def get_session_controller(request: Request) -> SessionController:
    return request.app.state.session_controller


def get_status_publisher(request: Request) -> StatusPublisher:
    return request.app.state.status_publisher
