"""
Signaling endpoints.

The relay is reached through a single WebSocket at ``/``. Plain HTTP requests
to the same path are told to upgrade. All endpoints refuse service while no
signing secret is configured.
"""

import asyncio
import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect, status
from fastapi.responses import PlainTextResponse
from starlette.websockets import WebSocketState

from peer_relay.api.dispatcher import Dispatcher
from peer_relay.core.config import settings
from peer_relay.core.limiter import limiter
from peer_relay.core.utils.logging_config import new_correlation_id
from peer_relay.db.session import SessionLocal
from peer_relay.services.mailbox import MailboxStore
from peer_relay.services.session import RelaySession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Signaling"])

# Shared by every connection of this process
_store = MailboxStore(SessionLocal)

MISSING_SECRET_DETAIL = "SECRET_KEY not set"


def get_store() -> MailboxStore:
    """Dependency returning the process-wide mailbox store"""
    return _store


@router.get("/")
@limiter.limit(settings.rate_limit_http_endpoints)
async def upgrade_required(request: Request):
    """Reject plain HTTP requests; the relay only speaks WebSocket"""
    if not settings.SECRET_KEY:
        return PlainTextResponse(
            MISSING_SECRET_DETAIL, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    return PlainTextResponse(
        "Upgrade Required",
        status_code=status.HTTP_426_UPGRADE_REQUIRED,
        headers={"Upgrade": "websocket", "Connection": "Upgrade"},
    )


async def _refuse(websocket: WebSocket, status_code: int, detail: str) -> None:
    """Reject the upgrade with an HTTP response when the server supports it"""
    if "websocket.http.response" in (websocket.scope.get("extensions") or {}):
        await websocket.send_denial_response(
            PlainTextResponse(detail, status_code=status_code)
        )
    else:
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR, reason=detail)


@router.websocket("/")
async def signaling_socket(websocket: WebSocket, store: MailboxStore = Depends(get_store)):
    """
    Serve one signaling connection.

    Frames are JSON requests ``{"method", "params"?, "id"?}``. Responses carry
    the request's ``id``; requests without one are executed silently.
    """
    connection_id = new_correlation_id()
    client_ip = websocket.client.host if websocket.client else None

    secret_key = settings.SECRET_KEY
    if not secret_key:
        logger.error("Refusing connection: signing secret is not configured")
        await _refuse(websocket, status.HTTP_500_INTERNAL_SERVER_ERROR, MISSING_SECRET_DETAIL)
        return

    await websocket.accept()
    logger.info(
        "Signaling connection accepted",
        extra={"connection_id": connection_id, "ip_address": client_ip},
    )

    send_lock = asyncio.Lock()

    async def send_frame(frame: Dict[str, Any]) -> None:
        async with send_lock:
            if websocket.application_state != WebSocketState.CONNECTED:
                return
            await websocket.send_text(json.dumps(frame))

    session = RelaySession(
        store,
        secret_key,
        api_key=settings.PEER_API_KEY,
        poll_interval_ms=settings.PEER_POLL_INTERVAL,
        ip_address=client_ip,
    )

    async def close_connection(reason: str) -> None:
        session.close()
        dispatcher.cancel_pending()
        async with send_lock:
            if websocket.application_state == WebSocketState.CONNECTED:
                await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=reason)
        logger.info("Signaling connection terminated", extra={"reason": reason})

    dispatcher = Dispatcher(session, send_frame, close_connection)
    session.start_auth_deadline(
        settings.AUTH_TIMEOUT_SECONDS,
        lambda: close_connection("Authentication timeout"),
    )

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            text = message.get("text")
            if text is None:
                continue  # binary frames are ignored
            await dispatcher.handle_frame(text)
    except WebSocketDisconnect:
        pass
    finally:
        session.close()
        dispatcher.cancel_pending()
        logger.info(
            "Signaling connection closed",
            extra={"connection_id": connection_id, "peer_id": session.peer_id},
        )
