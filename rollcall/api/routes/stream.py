from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from rollcall.api.schemas.models import CycleSchema
from rollcall.api.services.session import CaptureSession
from rollcall.api.services.state import get_session

router = APIRouter()

logger = logging.getLogger(__name__)


def _is_closed_send_error(exc: BaseException) -> bool:
    # Uvicorn raises this when an ASGI websocket.send happens after close.
    if not isinstance(exc, RuntimeError):
        return False
    msg = str(exc)
    return "Unexpected ASGI message 'websocket.send'" in msg or "response already completed" in msg


@router.websocket("/stream/metadata")
async def stream_metadata(ws: WebSocket):
    await ws.accept()
    session: CaptureSession = await asyncio.to_thread(get_session)

    try:
        async for summary in session.metadata_stream():
            try:
                payload = CycleSchema.from_summary(summary).model_dump(mode="json")
            except Exception:
                # Keep the websocket alive even if one cycle fails serialization.
                logger.exception("Failed to serialize cycle summary")
                continue
            try:
                await ws.send_json(payload)
            except Exception as e:
                if _is_closed_send_error(e) or isinstance(e, WebSocketDisconnect):
                    return
                raise
    except WebSocketDisconnect:
        return
    except Exception:
        logger.exception("Metadata websocket crashed")
        try:
            await ws.close(code=1011)
        except Exception:
            pass
