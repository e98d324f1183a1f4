import random
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterable, List, Optional, Sequence, Tuple

from blackjack_rooms.domain.errors import EmptyShoe
from blackjack_rooms.domain.models.types import RoundResult

RANKS = ["A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K"]
SUITS = ["S", "H", "D", "C"]
DECK_SIZE = len(RANKS) * len(SUITS)


@dataclass(frozen=True)
class Card:
    id: str
    suit: str
    rank: str


def card_value(rank: str) -> int:
    if rank in {"J", "Q", "K"}:
        return 10
    if rank == "A":
        return 11
    return int(rank)


def hand_value(cards: Iterable[Card]) -> int:
    """Best blackjack total: aces count 11, then drop to 1 one at a time while over 21."""
    total = 0
    aces = 0
    for card in cards:
        if card.rank == "A":
            aces += 1
        total += card_value(card.rank)
    while total > 21 and aces > 0:
        total -= 10
        aces -= 1
    return total


def is_blackjack(cards: Sequence[Card]) -> bool:
    return len(cards) == 2 and hand_value(cards) == 21


def build_decks(decks: int) -> List[Card]:
    return [
        Card(id=f"{deck}-{suit}{rank}", suit=suit, rank=rank)
        for deck in range(decks)
        for suit in SUITS
        for rank in RANKS
    ]


class Shoe:
    """Draw pile for one room. Cards come off the front and never go back mid-round."""

    def __init__(self, cards: Iterable[Card] = ()) -> None:
        self._cards: Deque[Card] = deque(cards)

    @classmethod
    def regenerate(cls, decks: int = 6, rng: Optional[random.Random] = None) -> "Shoe":
        cards = build_decks(decks)
        # random.shuffle is a single Fisher-Yates pass.
        (rng or random).shuffle(cards)
        return cls(cards)

    def __len__(self) -> int:
        return len(self._cards)

    @property
    def remaining(self) -> int:
        return len(self._cards)

    def draw(self) -> Card:
        if not self._cards:
            raise EmptyShoe("Shoe is empty")
        return self._cards.popleft()

    def needs_reshuffle(self, threshold: int = DECK_SIZE) -> bool:
        return len(self._cards) < threshold


def settle_hand(
    player_cards: Sequence[Card],
    dealer_cards: Sequence[Card],
    bet: int,
    insurance_bet: int = 0,
) -> Tuple[RoundResult, int]:
    """Return the round result and the total amount credited back to the stack.

    Wagers were debited when placed, so the credit includes the returned stake.
    """
    dealer_total = hand_value(dealer_cards)
    dealer_blackjack = is_blackjack(dealer_cards)
    player_total = hand_value(player_cards)
    player_blackjack = is_blackjack(player_cards)

    credit = 0
    if insurance_bet and dealer_blackjack:
        # 2:1 plus the returned insurance stake.
        credit += insurance_bet * 3

    if player_total > 21:
        return RoundResult.LOSE, credit
    if player_blackjack and dealer_blackjack:
        return RoundResult.PUSH, credit + bet
    if player_blackjack:
        return RoundResult.BLACKJACK, credit + bet * 5 // 2
    if dealer_total > 21 or player_total > dealer_total:
        return RoundResult.WIN, credit + bet * 2
    if player_total == dealer_total:
        return RoundResult.PUSH, credit + bet
    return RoundResult.LOSE, credit
