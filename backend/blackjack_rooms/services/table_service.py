import asyncio
import logging
import random
from typing import Any, Dict, List, Optional, Tuple

from blackjack_rooms.config import Settings, settings as default_settings
from blackjack_rooms.domain.errors import RoomFull
from blackjack_rooms.domain.models.messages import ChatPayload, ClientMessage
from blackjack_rooms.domain.models.table import PlayerSession, Room
from blackjack_rooms.domain.models.types import ActionType, Phase, PlayerStatus
from blackjack_rooms.services.broadcast import BroadcastGateway
from blackjack_rooms.services.round_service import RoundService
from blackjack_rooms.utils.ids import new_id

logger = logging.getLogger(__name__)


class RoomRegistry:
    """Owns every live room. Rooms appear on first join and vanish when empty.

    ``_lock`` only guards the code -> room mapping. Room state is guarded by each
    room's own lock; when both are needed the room lock is taken first.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        gateway: Optional[BroadcastGateway] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings or default_settings
        self.gateway = gateway or BroadcastGateway()
        self.rounds = RoundService(self.settings, self.gateway, rng)
        self._rooms: Dict[str, Room] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, code: object) -> bool:
        return code in self._rooms

    def get(self, code: str) -> Optional[Room]:
        return self._rooms.get(code)

    def codes(self) -> List[str]:
        return list(self._rooms)

    async def get_or_create(self, code: str) -> Room:
        async with self._lock:
            room = self._rooms.get(code)
            if room is None:
                room = Room(
                    code=code,
                    shoe=self.rounds.new_shoe(),
                    max_players=self.settings.max_players,
                )
                self._rooms[code] = room
                logger.info("Room %s created", code)
            return room

    async def join(
        self, code: str, name: Optional[str] = None, transport: Any = None
    ) -> Tuple[Room, PlayerSession]:
        display_name = (name or "").strip() or self.settings.default_player_name
        while True:
            room = await self.get_or_create(code)
            async with room.lock:
                if room.closed:
                    # Emptied and discarded while we waited; make a fresh one.
                    continue
                if room.is_full:
                    logger.info(
                        "%s tried to join full room %s (%d/%d)",
                        display_name,
                        code,
                        len(room.players),
                        room.max_players,
                    )
                    raise RoomFull(code, room.max_players)
                session = PlayerSession(
                    id=new_id(),
                    name=display_name,
                    transport=transport,
                    stack=self.settings.initial_stack,
                )
                if room.phase != Phase.LOBBY:
                    session.status = PlayerStatus.WAITING
                room.players.append(session)
                logger.info(
                    "%s joined room %s (%d/%d)",
                    session.name,
                    code,
                    len(room.players),
                    room.max_players,
                )
                await self.gateway.broadcast_state(room)
                return room, session

    async def leave(self, room: Room, session: PlayerSession) -> None:
        async with room.lock:
            if session not in room.players:
                return
            await self.rounds.remove_player(room, session)
            logger.info("%s left room %s", session.name, room.code)
            if not room.players:
                await self._discard(room)

    async def _discard(self, room: Room) -> None:
        room.closed = True
        room.cancel_timer()
        async with self._lock:
            if self._rooms.get(room.code) is room:
                del self._rooms[room.code]
        logger.info("Room %s deleted (empty)", room.code)

    async def dispatch(
        self, room: Room, session: PlayerSession, message: ClientMessage
    ) -> None:
        if message.type == ActionType.JOIN:
            # A connection holds one seat for its lifetime.
            return
        if message.type == ActionType.LEAVE:
            await self.leave(room, session)
            return
        async with room.lock:
            if room.closed or session not in room.players:
                return
            if message.type == ActionType.CHAT:
                await self._relay_chat(room, session, message)
                return
            await self.rounds.dispatch(room, session, message)

    async def _relay_chat(
        self, room: Room, session: PlayerSession, message: ClientMessage
    ) -> None:
        payload = message.payload
        text = payload.text.strip() if isinstance(payload, ChatPayload) else ""
        if not text:
            return
        text = text[: self.settings.chat_max_length]
        logger.info("[%s] %s: %s", room.code, session.name, text)
        await self.gateway.broadcast_chat(room, session, text)

    async def close(self) -> None:
        async with self._lock:
            rooms = list(self._rooms.values())
            self._rooms.clear()
        for room in rooms:
            room.closed = True
            room.cancel_timer()
        await self.rounds.timers.drain()
        if rooms:
            logger.info("Closed %d room(s)", len(rooms))
