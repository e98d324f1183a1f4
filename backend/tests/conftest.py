import asyncio
import random
from typing import Any, Dict, List

import pytest
import pytest_asyncio

from blackjack_rooms.config import Settings
from blackjack_rooms.domain.models.messages import ClientMessage, parse_client_message
from blackjack_rooms.domain.models.table import PlayerSession, Room
from blackjack_rooms.domain.models.types import Phase
from blackjack_rooms.domain.rules.blackjack_rules import Card, Shoe, build_decks
from blackjack_rooms.services.table_service import RoomRegistry


class FakeTransport:
    """Stands in for a websocket; records everything sent to it."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.closed = False
        self.fail = fail

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise ConnectionError("socket gone")
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed = True

    def states(self) -> List[Dict[str, Any]]:
        return [m["state"] for m in self.sent if m.get("type") == "state"]

    def phases(self) -> List[str]:
        return [s["phase"] for s in self.states()]


def fast_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = {
        "shuffle_delay_seconds": 0.001,
        "deal_interval_seconds": 0.001,
        "insurance_window_seconds": 5.0,
        "turn_timeout_seconds": 5.0,
        "dealer_start_delay_seconds": 0.001,
        "dealer_draw_delay_seconds": 0.001,
        "settle_delay_seconds": 0.001,
        "result_display_seconds": 5.0,
    }
    values.update(overrides)
    return Settings(**values)


def stacked_shoe(*ranks: str) -> Shoe:
    """Shoe whose first cards are ``ranks`` (all spades), followed by unshuffled decks."""
    top = [Card(id=f"t{i}-S{rank}", suit="S", rank=rank) for i, rank in enumerate(ranks)]
    return Shoe(top + build_decks(6))


def msg(action: str, room: str = "r1", **payload: Any) -> ClientMessage:
    parsed = parse_client_message({"type": action, "roomId": room, "payload": payload})
    assert parsed is not None
    return parsed


async def wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met in time")
        await asyncio.sleep(0.002)


async def wait_for_phase(room: Room, phase: Phase, timeout: float = 2.0) -> None:
    await wait_for(lambda: room.phase == phase, timeout)


async def seat_players(registry: RoomRegistry, code: str, *names: str):
    sessions: List[PlayerSession] = []
    room = None
    for name in names:
        room, session = await registry.join(code, name, transport=FakeTransport())
        sessions.append(session)
    return room, sessions


async def bet_and_start(
    registry: RoomRegistry, room: Room, sessions: List[PlayerSession], bet: int = 100
) -> None:
    for session in sessions:
        await registry.dispatch(room, session, msg("bet", room.code, value=bet))
        await registry.dispatch(room, session, msg("ready", room.code, ready=True))
    await registry.dispatch(room, sessions[0], msg("start", room.code))


@pytest_asyncio.fixture
async def make_registry():
    created: List[RoomRegistry] = []

    def _factory(**overrides: Any) -> RoomRegistry:
        registry = RoomRegistry(fast_settings(**overrides), rng=random.Random(7))
        created.append(registry)
        return registry

    yield _factory
    for registry in created:
        await registry.close()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


def recv_message(ws, msg_type: str, max_messages: int = 50) -> Dict[str, Any]:
    for _ in range(max_messages):
        message = ws.receive_json()
        if message.get("type") == msg_type:
            return message
    raise AssertionError(f"Did not receive {msg_type}")


def recv_state(ws) -> Dict[str, Any]:
    return recv_message(ws, "state")["state"]
