# studyup_chat/api/realtime.py
import json

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from studyup_chat.realtime.handler import ConnectionHandler

router = APIRouter()


@router.websocket("/ws")
async def realtime_endpoint(websocket: WebSocket):
    handler: ConnectionHandler = websocket.app.state.connection_handler
    await websocket.accept()
    connection = handler.connect(websocket)
    try:
        while True:
            # one frame at a time: a connection's events are handled in order
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            raw = message.get("text")
            if raw is None:
                handler.logger.warning(f"Ignored binary frame from connection {connection.id}")
                continue
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                handler.logger.warning(f"Ignored non-JSON frame from connection {connection.id}")
                continue
            await handler.handle_frame(connection, frame)
    except WebSocketDisconnect:
        pass
    finally:
        await handler.disconnect(connection)
