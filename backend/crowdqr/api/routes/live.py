"""
Live update socket.

Clients send ``{"type": ..., "payload": {...}}`` frames:

- ``joinEvent`` with ``{"eventId": n}``: start receiving that event's updates
  (leaving any previous event); answered with ``joinedEvent``.
- ``leaveEvent``: stop receiving updates; answered with ``leftEvent``.
- ``ping``: answered with ``pong``.

A viewer that the broadcaster dropped after a failed delivery is told so with
a ``droppedFromEvent`` frame ahead of the reply to its next message, and has
to send ``joinEvent`` again.

Anything else is answered with an ``error`` frame and the socket stays open.
"""
import json
import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session
from crowdqr.core.exceptions import StoreUnavailableError
from crowdqr.core.utils import MAX_ID
from crowdqr.db.session import get_db
from crowdqr.db.store import Store
from crowdqr.services.live_connection import ViewerConnection

logger = logging.getLogger(__name__)

router = APIRouter(tags=["live"])


def frame(message_type: str, payload: dict = None) -> str:
    return json.dumps({"type": message_type, "payload": payload or {}})


async def handle_join(connection: ViewerConnection, store: Store, payload: dict) -> str:
    event_id = payload.get("eventId")
    if isinstance(event_id, bool) or not isinstance(event_id, int) or not 1 <= event_id <= MAX_ID:
        return frame("error", {"message": "eventId must be a positive integer id"})
    if not store.event_exists(event_id):
        return frame("error", {"message": f"Event {event_id} not found"})
    connection.join(event_id)
    return frame("joinedEvent", {"eventId": event_id})


@router.websocket("/live")
async def live_updates(websocket: WebSocket, db: Session = Depends(get_db)):
    """Viewer socket for one browser tab."""
    await websocket.accept()
    connection = ViewerConnection(websocket.app.state.broadcaster, websocket)
    store = Store(db)

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_text(frame("error", {"message": "Invalid JSON"}))
                continue
            if not isinstance(message, dict):
                await websocket.send_text(frame("error", {"message": "Expected a JSON object"}))
                continue

            dropped = connection.take_dropped()
            if dropped is not None:
                await websocket.send_text(frame("droppedFromEvent", {"eventId": dropped}))

            message_type = message.get("type")
            payload = message.get("payload") or {}
            if not isinstance(payload, dict):
                payload = {}

            if message_type == "joinEvent":
                try:
                    reply = await handle_join(connection, store, payload)
                except StoreUnavailableError as e:
                    reply = frame("error", {"message": e.message})
            elif message_type == "leaveEvent":
                left = connection.leave()
                reply = frame("leftEvent", {"eventId": left})
            elif message_type == "ping":
                reply = frame("pong", {"timestamp": payload.get("timestamp")})
            else:
                reply = frame("error", {"message": f"Unknown message type: {message_type}"})

            await websocket.send_text(reply)
    except WebSocketDisconnect:
        logger.info(f"Live socket closed (event {connection.event_id})")
    finally:
        connection.disconnect()
