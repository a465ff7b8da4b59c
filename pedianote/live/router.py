"""WebSocket endpoint for the live audio consultation."""

from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from httpx import AsyncClient
from loguru import logger
from starlette.websockets import WebSocketState

from ..core.config import Config
from ..core.dependencies import get_config, get_http_client_dependency
from ..core.exceptions import MissingApiKeyError
from .session import LiveAudioSession, open_realtime_connection

router = APIRouter(tags=["Live Session"])


async def _close(
    websocket: WebSocket,
    code: int = status.WS_1000_NORMAL_CLOSURE,
    error: Optional[str] = None
) -> None:
    # The client may already be gone; closing twice is a protocol error.
    if websocket.client_state is not WebSocketState.CONNECTED:
        return
    if websocket.application_state is not WebSocketState.CONNECTED:
        return
    if error:
        await websocket.send_json({"type": "error", "message": error})
    await websocket.close(code=code, reason=error)


@router.websocket("/ws/live")
async def live_session(
    websocket: WebSocket,
    config: Config = Depends(get_config),
    http_client: AsyncClient = Depends(get_http_client_dependency)
):
    """Relay microphone audio to the realtime model and stream its answers back."""
    await websocket.accept()

    if not config.openai_api_key:
        error = MissingApiKeyError()
        logger.warning(f"Live session refused: {error.message}")
        await _close(websocket, status.WS_1008_POLICY_VIOLATION, error.message)
        return

    try:
        async with open_realtime_connection(config, http_client) as connection:
            await LiveAudioSession(websocket, connection).run()
    except WebSocketDisconnect:
        logger.info("Live session client disconnected")
        return
    except Exception as e:
        logger.error(f"Live session error: {e}")
        await _close(websocket, status.WS_1011_INTERNAL_ERROR, "Erro na conexão")
        return

    await _close(websocket)
