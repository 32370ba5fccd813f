import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from teamchat.core.dependencies import get_coordinator
from teamchat.core.exceptions import AuthenticationError, StorageError
from teamchat.services.session_coordinator import RealtimeSessionCoordinator

logger = logging.getLogger(__name__)

router = APIRouter()


def extract_credential(websocket: WebSocket, token: Optional[str]) -> Optional[str]:
    """Bearer credential from the `token` query parameter or the Authorization header."""
    if token:
        return token
    authorization = websocket.headers.get("authorization", "")
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() == "bearer" and value:
        return value.strip()
    return None


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    realtime: RealtimeSessionCoordinator = Depends(get_coordinator),
):
    # Accept first so the close reason reaches the client
    await websocket.accept()

    try:
        connection = await realtime.connect(websocket, extract_credential(websocket, token))
    except AuthenticationError:
        logger.info("[ws] Connection refused: authentication error")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Authentication error")
        return
    except StorageError as e:
        logger.error(f"[ws] Connection refused: could not load user: {e.detail}")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR, reason="Server error")
        return

    logger.info(f"[ws] Connection {connection.connection_id} established for user {connection.user_id}")

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000), frame.get("reason"))
            data = frame.get("text")
            if data is None:
                logger.info(f"[ws] Ignoring binary frame from connection {connection.connection_id}")
                continue
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                logger.info(f"[ws] Received non-JSON data from connection {connection.connection_id}: {data[:100]}")
                continue
            await realtime.handle_event(connection, message)
    except WebSocketDisconnect:
        logger.info(f"[ws] Client disconnected: {connection.connection_id}")
    except Exception:
        logger.exception(f"[ws] Error in WebSocket for connection {connection.connection_id}")
    finally:
        await realtime.disconnect(connection)
