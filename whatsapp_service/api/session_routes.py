"""
Session API Routes
==================

REST endpoints used by the backend and the control panel.

Endpoints (all require the service bearer token):
- GET  /api/status   - Current status row
- POST /api/send-otp - Send a text message through the active session
- POST /api/control  - restart | logout | clear_session
- GET  /api/health   - Heartbeat write + liveness answer

Error bodies are ``{"message": ...}``.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..application.controllers.session_controller import SessionController
from ..core.exceptions import InvalidControlActionError, MessageSendError, NotConnectedError
from ..core.logger import get_logger
from ..domain.services.status_publisher import StatusPublisher
from .dependencies import get_session_controller, get_status_publisher, verify_service_token

logger = get_logger(__name__)
router = APIRouter(
    prefix="/api",
    tags=["session"],
    dependencies=[Depends(verify_service_token)]
)


class SendOtpRequest(BaseModel):
    phoneNumber: Optional[str] = None
    message: Optional[str] = None


class ControlRequest(BaseModel):
    action: Optional[str] = None


def _json_error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(content={"message": message}, status_code=status_code)


@router.get("/status")
async def get_status(publisher: StatusPublisher = Depends(get_status_publisher)):
    """Current status row, ``{}`` when the row does not exist yet."""
    try:
        snapshot = await publisher.fetch()
    except Exception as e:
        logger.error("api.status_fetch_failed", {"error": str(e)})
        return _json_error("Failed to read WhatsApp status.", status.HTTP_500_INTERNAL_SERVER_ERROR)
    return snapshot.to_dict() if snapshot else {}


@router.post("/send-otp")
async def send_otp(
    body: Optional[SendOtpRequest] = None,
    controller: SessionController = Depends(get_session_controller)
):
    """
    Send ``message`` to ``phoneNumber``.

    - 400 when either field is missing
    - 503 when no authenticated session exists
    - 500 when the transport fails the send
    """
    body = body or SendOtpRequest()
    phone_number = (body.phoneNumber or "").strip()
    message = body.message or ""
    if not phone_number or not message.strip():
        return _json_error("phoneNumber and message required.", status.HTTP_400_BAD_REQUEST)

    try:
        await controller.send_message(phone_number, message)
    except NotConnectedError as e:
        return _json_error(e.message, status.HTTP_503_SERVICE_UNAVAILABLE)
    except ValueError:
        return _json_error("Invalid phoneNumber.", status.HTTP_400_BAD_REQUEST)
    except MessageSendError as e:
        logger.error("api.send_otp_failed", {"recipient": e.recipient, "error": e.reason})
        return _json_error("Failed to send WhatsApp message.", status.HTTP_500_INTERNAL_SERVER_ERROR)

    return {"success": True}


@router.post("/control")
async def control(
    body: Optional[ControlRequest] = None,
    controller: SessionController = Depends(get_session_controller)
):
    body = body or ControlRequest()
    if not body.action:
        return _json_error("Action required.", status.HTTP_400_BAD_REQUEST)

    try:
        await controller.control(body.action)
    except InvalidControlActionError:
        logger.warning("api.invalid_control_action", {"action": body.action})
        return _json_error("Invalid action.", status.HTTP_400_BAD_REQUEST)

    return {"success": True}


@router.get("/health")
async def health(publisher: StatusPublisher = Depends(get_status_publisher)):
    await publisher.heartbeat()
    return {"status": "ok"}
