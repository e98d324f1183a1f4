import asyncio
import logging
from typing import Any, Dict, Iterable, Protocol

from blackjack_rooms.domain.models.messages import (
    ChatEntry,
    ChatMessage,
    ErrorMessage,
    StateMessage,
)
from blackjack_rooms.domain.models.table import PlayerSession, Room
from blackjack_rooms.utils.ids import new_id
from blackjack_rooms.utils.time import utc_ms

logger = logging.getLogger(__name__)


class Transport(Protocol):
    async def send_json(self, data: Any) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class BroadcastGateway:
    """Delivers room messages to every seated session's transport."""

    async def broadcast_state(self, room: Room) -> None:
        message = StateMessage(state=room.state()).to_wire()
        await self._fan_out(room.code, room.players, message)

    async def broadcast_chat(self, room: Room, sender: PlayerSession, text: str) -> None:
        entry = ChatEntry(
            id=new_id(),
            player_id=sender.id,
            player_name=sender.name,
            text=text,
            timestamp=utc_ms(),
        )
        await self._fan_out(room.code, room.players, ChatMessage(message=entry).to_wire())

    async def send_error(self, transport: Transport, message: str) -> bool:
        try:
            await transport.send_json(ErrorMessage(message=message).to_wire())
            return True
        except Exception:
            logger.warning("Failed to deliver error message", exc_info=True)
            return False

    async def _fan_out(
        self, code: str, sessions: Iterable[PlayerSession], message: Dict[str, Any]
    ) -> None:
        targets = list(sessions)
        if not targets:
            return
        await asyncio.gather(*(self._safe_send(code, s, message) for s in targets))

    async def _safe_send(
        self, code: str, session: PlayerSession, message: Dict[str, Any]
    ) -> None:
        try:
            await session.transport.send_json(message)
        except Exception as exc:
            logger.warning(
                "Failed to send to %s: %s", session.name, exc, extra={"room": code}
            )
