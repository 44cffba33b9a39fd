"""
Conversation WebSocket endpoint for the AI Tutor Room.

Carries live turns at /ws/conversation. The orchestrator pushes its events
(status, message, alert, mode, ui_language) straight onto the socket while a
client is connected, and a fresh ``state`` snapshot follows every handled frame.

Client sends:
    {"type": "text", "content": "Hello", "language": "en"}   # typed turn
    {"type": "audio", "content": "<base64>"}                # pre-recorded audio turn
    {"type": "record_start"}                                # open the microphone
    {"type": "record_stop"}                                 # finalize and process
    {"type": "typing", "content": "Hel"}                    # keystrokes for language detection

Server responds:
    {"type": "status", "step": "..."}
    {"type": "message", "message": {...}}
    {"type": "alert", "message": "..."}
    {"type": "mode", "mode": "..."}
    {"type": "ui_language", "language": "en|zh"}
    {"type": "state", "state": {...}}
    {"type": "error", "message": "..."}
"""

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from tutor_room.routes.session import get_started_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["conversation"])

_FRAME_TYPES = ("text", "audio", "record_start", "record_stop", "typing")


@router.websocket("/ws/conversation")
async def conversation_ws(websocket: WebSocket) -> None:
    """WebSocket endpoint for real-time conversation with the AI tutor."""
    await websocket.accept()
    orchestrator = await get_started_orchestrator()
    orchestrator.emit = websocket.send_json
    await websocket.send_json({"type": "state", "state": orchestrator.state.model_dump(mode="json")})

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            msg_type = message.get("type", "") if isinstance(message, dict) else ""
            content = (message.get("content") or "") if isinstance(message, dict) else ""
            if msg_type not in _FRAME_TYPES:
                await websocket.send_json({"type": "error", "message": f"Unknown message type: {msg_type}"})
                continue

            try:
                if msg_type == "typing":
                    await orchestrator.on_typing(content)
                    continue
                if msg_type == "text":
                    await orchestrator.submit_text(content, language=message.get("language"))
                elif msg_type == "audio":
                    await orchestrator.process_audio(content)
                elif msg_type == "record_start":
                    await orchestrator.start_recording()
                elif msg_type == "record_stop":
                    await orchestrator.stop_recording()
            except Exception as exc:
                logger.exception("Error processing %s frame", msg_type)
                await websocket.send_json({"type": "error", "message": str(exc)})
                continue

            await websocket.send_json({"type": "state", "state": orchestrator.state.model_dump(mode="json")})

    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected")
    finally:
        orchestrator.emit = None
        await orchestrator.cancel_recording()
