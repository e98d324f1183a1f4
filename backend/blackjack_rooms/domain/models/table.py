import asyncio
from dataclasses import dataclass, field
from typing import Any, List, Optional

from blackjack_rooms.domain.models.messages import (
    CardView,
    DealerView,
    PlayerView,
    RoomState,
)
from blackjack_rooms.domain.models.types import (
    FINISHED_STATUSES,
    Phase,
    PlayerStatus,
    RoundResult,
)
from blackjack_rooms.domain.rules.blackjack_rules import Card, Shoe
from blackjack_rooms.infra.timers import RoomTimer


def _card_views(cards: List[Card]) -> List[CardView]:
    return [CardView(id=c.id, suit=c.suit, rank=c.rank) for c in cards]


@dataclass(eq=False)
class PlayerSession:
    id: str
    name: str
    transport: Any
    stack: int
    bet: int = 0
    insurance_bet: int = 0
    insurance_decided: bool = False
    ready: bool = False
    hand: List[Card] = field(default_factory=list)
    status: PlayerStatus = PlayerStatus.NONE
    result: Optional[RoundResult] = None

    @property
    def finished(self) -> bool:
        return self.status in FINISHED_STATUSES

    @property
    def in_round(self) -> bool:
        return self.status != PlayerStatus.WAITING

    def place_bet(self, amount: int) -> bool:
        if amount <= 0 or self.stack < amount:
            return False
        self.stack -= amount
        self.bet += amount
        return True

    def refund_wagers(self) -> None:
        self.stack += self.bet + self.insurance_bet
        self.bet = 0
        self.insurance_bet = 0

    def reset_round(self) -> None:
        self.hand = []
        self.status = PlayerStatus.NONE
        self.result = None
        self.insurance_decided = False

    def view(self) -> PlayerView:
        return PlayerView(
            id=self.id,
            name=self.name,
            stack=self.stack,
            bet=self.bet,
            insurance_bet=self.insurance_bet,
            ready=self.ready,
            cards=_card_views(self.hand),
            status=self.status.value,
            result=self.result.value if self.result else None,
        )


@dataclass(eq=False)
class Room:
    """One blackjack table. Every field is guarded by ``lock``."""

    code: str
    shoe: Shoe
    max_players: int = 8
    players: List[PlayerSession] = field(default_factory=list)
    dealer_hand: List[Card] = field(default_factory=list)
    phase: Phase = Phase.LOBBY
    turn_index: int = -1
    pending_timer: Optional[RoomTimer] = None
    closed: bool = False
    # Remaining initial-deal targets; None stands for the dealer.
    deal_queue: List[Optional[PlayerSession]] = field(default_factory=list)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def is_full(self) -> bool:
        return len(self.players) >= self.max_players

    def round_players(self) -> List[PlayerSession]:
        return [p for p in self.players if p.in_round]

    def current_player(self) -> Optional[PlayerSession]:
        if self.phase != Phase.PLAYER or not 0 <= self.turn_index < len(self.players):
            return None
        return self.players[self.turn_index]

    def next_eligible_index(self, start: int) -> int:
        """First index >= start whose player still has to act, or -1."""
        for idx in range(max(start, 0), len(self.players)):
            player = self.players[idx]
            if player.in_round and not player.finished:
                return idx
        return -1

    def cancel_timer(self) -> None:
        if self.pending_timer is not None:
            self.pending_timer.cancel()
            self.pending_timer = None

    def state(self) -> RoomState:
        return RoomState(
            code=self.code,
            phase=self.phase.value,
            turn_idx=self.turn_index,
            max_players=self.max_players,
            dealer=DealerView(cards=_card_views(self.dealer_hand)),
            players=[p.view() for p in self.players],
        )
