import json
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from blackjack_rooms.domain.errors import RoomFull
from blackjack_rooms.domain.models.messages import JoinPayload, parse_client_message
from blackjack_rooms.domain.models.table import PlayerSession, Room
from blackjack_rooms.domain.models.types import ActionType
from blackjack_rooms.services.table_service import RoomRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


async def _safe_close(ws: WebSocket) -> None:
    try:
        await ws.close()
    except Exception:
        logger.debug("Socket already closed")


@router.websocket("/ws/blackjack")
async def blackjack_ws(ws: WebSocket) -> None:
    await ws.accept()
    registry: RoomRegistry = ws.app.state.registry
    room: Optional[Room] = None
    session: Optional[PlayerSession] = None
    try:
        while True:
            try:
                message = await ws.receive()
            except WebSocketDisconnect:
                break
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text") or message.get("bytes")
            if not raw:
                continue
            try:
                payload = json.loads(raw)
            except ValueError:
                continue

            msg = parse_client_message(payload)
            if msg is None:
                continue

            if msg.type == ActionType.JOIN:
                if session is not None or not msg.room_id:
                    continue
                name = msg.payload.name if isinstance(msg.payload, JoinPayload) else None
                try:
                    room, session = await registry.join(msg.room_id, name, transport=ws)
                except RoomFull as exc:
                    await registry.gateway.send_error(ws, str(exc))
                    await _safe_close(ws)
                    return
                continue

            if room is None or session is None:
                continue

            await registry.dispatch(room, session, msg)
            if msg.type == ActionType.LEAVE:
                room, session = None, None
                await _safe_close(ws)
                return
    finally:
        if room is not None and session is not None:
            logger.info("%s disconnected from %s", session.name, room.code)
            await registry.leave(room, session)
