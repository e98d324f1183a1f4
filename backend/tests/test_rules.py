import itertools

import pytest

from blackjack_rooms.domain.errors import EmptyShoe
from blackjack_rooms.domain.models.types import RoundResult
from blackjack_rooms.domain.rules.blackjack_rules import (
    RANKS,
    Card,
    Shoe,
    build_decks,
    card_value,
    hand_value,
    is_blackjack,
    settle_hand,
)


def hand(*ranks: str) -> list[Card]:
    return [Card(id=f"{i}-H{r}", suit="H", rank=r) for i, r in enumerate(ranks)]


@pytest.mark.parametrize(
    "ranks,expected",
    [
        (("K", "Q"), 20),
        (("A", "K"), 21),
        (("A", "A"), 12),
        (("A", "A", "9"), 21),
        (("A", "6", "K"), 17),
        (("10", "6", "K"), 26),
        (("A", "A", "A", "A"), 14),
        (("5", "A", "A", "K"), 17),
        ((), 0),
    ],
)
def test_hand_value(ranks, expected) -> None:
    assert hand_value(hand(*ranks)) == expected


def test_hand_value_matches_best_ace_assignment() -> None:
    for size in range(1, 5):
        for ranks in itertools.combinations_with_replacement(RANKS, size):
            cards = hand(*ranks)
            aces = ranks.count("A")
            hard = sum(card_value(r) for r in ranks)
            options = [hard - 10 * k for k in range(aces + 1)]
            fitting = [v for v in options if v <= 21]
            expected = max(fitting) if fitting else min(options)
            value = hand_value(cards)
            assert value <= hard
            assert value == expected, ranks


def test_is_blackjack_needs_two_cards() -> None:
    assert is_blackjack(hand("A", "J"))
    assert not is_blackjack(hand("7", "7", "7"))
    assert not is_blackjack(hand("A", "9"))


def test_regenerated_shoe_has_six_full_decks(rng) -> None:
    shoe = Shoe.regenerate(6, rng)
    assert len(shoe) == 312
    cards = [shoe.draw() for _ in range(312)]
    assert len({c.id for c in cards}) == 312
    assert sum(1 for c in cards if c.rank == "A" and c.suit == "S") == 6


def test_regenerate_shuffles(rng) -> None:
    shoe = Shoe.regenerate(6, rng)
    drawn = [shoe.draw() for _ in range(len(shoe))]
    assert drawn != build_decks(6)
    assert sorted(c.id for c in drawn) == sorted(c.id for c in build_decks(6))


def test_needs_reshuffle_below_threshold(rng) -> None:
    shoe = Shoe.regenerate(1, rng)
    assert len(shoe) == 52
    assert not shoe.needs_reshuffle(52)
    shoe.draw()
    assert shoe.remaining == 51
    assert shoe.needs_reshuffle(52)
    assert not shoe.needs_reshuffle(51)


def test_draw_from_empty_shoe_raises() -> None:
    shoe = Shoe(hand("5"))
    assert shoe.draw().rank == "5"
    with pytest.raises(EmptyShoe):
        shoe.draw()


def test_draw_takes_from_front() -> None:
    shoe = Shoe(hand("2", "3", "4"))
    assert [shoe.draw().rank for _ in range(3)] == ["2", "3", "4"]


@pytest.mark.parametrize(
    "player,dealer,bet,insurance,result,credit",
    [
        (("K", "Q", "5"), ("10", "8"), 100, 0, RoundResult.LOSE, 0),
        (("K", "Q", "5"), ("10", "6", "K"), 100, 0, RoundResult.LOSE, 0),
        (("A", "K"), ("A", "Q"), 100, 0, RoundResult.PUSH, 100),
        (("A", "K"), ("10", "Q"), 100, 0, RoundResult.BLACKJACK, 250),
        (("A", "K"), ("10", "Q"), 101, 0, RoundResult.BLACKJACK, 252),
        (("K", "2"), ("10", "6", "K"), 100, 0, RoundResult.WIN, 200),
        (("K", "Q"), ("10", "8"), 100, 0, RoundResult.WIN, 200),
        (("K", "8"), ("10", "8"), 100, 0, RoundResult.PUSH, 100),
        (("K", "7"), ("10", "8"), 100, 0, RoundResult.LOSE, 0),
        (("10", "9"), ("A", "K"), 100, 50, RoundResult.LOSE, 150),
        (("10", "9"), ("A", "7"), 100, 50, RoundResult.WIN, 200),
        (("7", "4", "K"), ("A", "5", "5"), 100, 50, RoundResult.PUSH, 100),
    ],
)
def test_settle_hand(player, dealer, bet, insurance, result, credit) -> None:
    assert settle_hand(hand(*player), hand(*dealer), bet, insurance) == (result, credit)
