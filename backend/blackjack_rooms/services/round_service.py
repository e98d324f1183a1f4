import logging
import random
from typing import Awaitable, Callable, Dict, Optional, Tuple

from blackjack_rooms.config import Settings
from blackjack_rooms.domain.errors import EmptyShoe
from blackjack_rooms.domain.models.messages import (
    BetPayload,
    ClientMessage,
    InsurancePayload,
    ReadyPayload,
)
from blackjack_rooms.domain.models.table import PlayerSession, Room
from blackjack_rooms.domain.models.types import ActionType, Phase, PlayerStatus
from blackjack_rooms.domain.rules.blackjack_rules import (
    Shoe,
    hand_value,
    settle_hand,
)
from blackjack_rooms.infra.timers import RoomTimer, TimerGroup
from blackjack_rooms.services.broadcast import BroadcastGateway

logger = logging.getLogger(__name__)

Step = Callable[[Room], Awaitable[None]]
Handler = Callable[[Room, PlayerSession, ClientMessage], Awaitable[None]]

DEALER_STANDS_ON = 17


class RoundService:
    """Drives a room through LOBBY -> ... -> RESULT -> LOBBY.

    Every public coroutine expects the caller to hold ``room.lock``. Timer
    callbacks take the same lock before touching the room, so actions and timer
    expiries are applied one at a time in arrival order.
    """

    def __init__(
        self,
        settings: Settings,
        gateway: BroadcastGateway,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings
        self.gateway = gateway
        self.rng = rng or random.Random()
        self.timers = TimerGroup()
        self._routes: Dict[Tuple[Phase, ActionType], Handler] = {
            (Phase.LOBBY, ActionType.READY): self._on_ready,
            (Phase.LOBBY, ActionType.BET): self._on_bet,
            (Phase.LOBBY, ActionType.CLEARBET): self._on_clearbet,
            (Phase.LOBBY, ActionType.START): self._on_start,
            (Phase.INSURANCE, ActionType.INSURANCE): self._on_insurance,
            (Phase.PLAYER, ActionType.HIT): self._on_hit,
            (Phase.PLAYER, ActionType.STAND): self._on_stand,
            (Phase.PLAYER, ActionType.DOUBLE): self._on_double,
        }

    def new_shoe(self) -> Shoe:
        return Shoe.regenerate(self.settings.shoe_decks, self.rng)

    async def dispatch(
        self, room: Room, session: PlayerSession, message: ClientMessage
    ) -> None:
        handler = self._routes.get((room.phase, message.type))
        if handler is None or session not in room.players:
            logger.debug(
                "Ignored %s from %s in %s", message.type.value, session.name, room.phase.value
            )
            return
        await self._guarded(room, lambda r: handler(r, session, message))

    async def _broadcast(self, room: Room) -> None:
        await self.gateway.broadcast_state(room)

    # --- timers -----------------------------------------------------------

    def _arm(self, room: Room, delay: float, step: Step, label: str) -> None:
        room.cancel_timer()

        async def _run(timer: RoomTimer) -> None:
            async with room.lock:
                if timer.cancelled or room.closed or room.pending_timer is not timer:
                    return
                room.pending_timer = None
                await self._guarded(room, step)

        room.pending_timer = self.timers.start(delay, _run, label=f"{room.code}:{label}")

    async def _guarded(self, room: Room, step: Step) -> None:
        try:
            await step(room)
        except EmptyShoe:
            logger.exception("Shoe exhausted mid-round, aborting", extra={"room": room.code})
            await self.abort_round(room)

    # --- lobby ------------------------------------------------------------

    async def _on_ready(self, room: Room, session: PlayerSession, message: ClientMessage) -> None:
        payload = message.payload
        session.ready = payload.ready if isinstance(payload, ReadyPayload) else False
        logger.info("%s ready: %s", session.name, session.ready)
        await self._broadcast(room)

    async def _on_bet(self, room: Room, session: PlayerSession, message: ClientMessage) -> None:
        payload = message.payload
        if not isinstance(payload, BetPayload):
            return
        if session.place_bet(payload.value):
            logger.info("%s bet %d (total: %d)", session.name, payload.value, session.bet)
            await self._broadcast(room)

    async def _on_clearbet(self, room: Room, session: PlayerSession, message: ClientMessage) -> None:
        if session.bet <= 0:
            return
        session.stack += session.bet
        session.bet = 0
        logger.info("%s cleared bet", session.name)
        await self._broadcast(room)

    async def _on_start(self, room: Room, session: PlayerSession, message: ClientMessage) -> None:
        if not room.players or not all(p.ready and p.bet > 0 for p in room.players):
            return
        logger.info("Starting round in room %s", room.code)
        await self.start_round(room)

    async def start_round(self, room: Room) -> None:
        dealt = len(room.round_players())
        needed = max(
            self.settings.reshuffle_threshold,
            self.settings.cards_reserved_per_hand * (dealt + 1),
        )
        if room.shoe.needs_reshuffle(needed):
            logger.info(
                "Reshuffling shoe in room %s (%d cards left)", room.code, room.shoe.remaining
            )
            room.shoe = self.new_shoe()
            room.phase = Phase.SHUFFLING
            await self._broadcast(room)
            self._arm(room, self.settings.shuffle_delay_seconds, self._begin_dealing, "shuffle")
            return
        await self._begin_dealing(room)

    # --- dealing ----------------------------------------------------------

    async def _begin_dealing(self, room: Room) -> None:
        room.phase = Phase.DEALING
        room.turn_index = -1
        room.dealer_hand = []
        # Anyone who sat down during SHUFFLING stays WAITING until the next lobby.
        seated = room.round_players()
        for player in seated:
            player.reset_round()
        room.deal_queue = [*seated, None, *seated, None]
        await self._deal_next(room)

    async def _deal_next(self, room: Room) -> None:
        while room.deal_queue:
            target = room.deal_queue.pop(0)
            if target is not None and target not in room.players:
                continue
            card = room.shoe.draw()
            if target is None:
                room.dealer_hand.append(card)
            else:
                target.hand.append(card)
            await self._broadcast(room)
            self._arm(room, self.settings.deal_interval_seconds, self._deal_next, "deal")
            return
        await self._finish_deal(room)

    async def _finish_deal(self, room: Room) -> None:
        if room.dealer_hand and room.dealer_hand[0].rank == "A":
            room.phase = Phase.INSURANCE
            room.turn_index = -1
            await self._broadcast(room)
            if not self._insurance_pending(room):
                await self._enter_player_phase(room)
                return
            self._arm(
                room,
                self.settings.insurance_window_seconds,
                self._enter_player_phase,
                "insurance",
            )
            return
        await self._enter_player_phase(room)

    # --- insurance --------------------------------------------------------

    def _insurance_pending(self, room: Room) -> bool:
        for player in room.round_players():
            if player.insurance_decided or player.insurance_bet:
                continue
            amount = player.bet // 2
            if amount > 0 and player.stack >= amount:
                return True
        return False

    async def _on_insurance(self, room: Room, session: PlayerSession, message: ClientMessage) -> None:
        if not session.in_round or session.insurance_decided:
            return
        payload = message.payload
        take = payload.take if isinstance(payload, InsurancePayload) else True
        if take:
            amount = session.bet // 2
            if amount <= 0 or session.stack < amount:
                return
            session.stack -= amount
            session.insurance_bet = amount
            session.status = PlayerStatus.INSURED
            logger.info("%s bought insurance for %d", session.name, amount)
        else:
            logger.info("%s declined insurance", session.name)
        session.insurance_decided = True
        await self._broadcast(room)
        if not self._insurance_pending(room):
            await self._enter_player_phase(room)

    # --- player turns -----------------------------------------------------

    async def _enter_player_phase(self, room: Room) -> None:
        room.cancel_timer()
        room.phase = Phase.PLAYER
        room.turn_index = -1
        await self._next_turn(room)

    async def _next_turn(self, room: Room) -> None:
        room.cancel_timer()
        next_idx = room.next_eligible_index(room.turn_index + 1)
        if next_idx == -1:
            logger.info("All players done in room %s, dealer's turn", room.code)
            room.phase = Phase.DEALER
            room.turn_index = -1
            await self._broadcast(room)
            self._arm(room, self.settings.dealer_start_delay_seconds, self._dealer_step, "dealer")
            return
        room.turn_index = next_idx
        logger.info("Next turn in room %s: %s", room.code, room.players[next_idx].name)
        await self._broadcast(room)
        self._arm_turn_timer(room)

    def _arm_turn_timer(self, room: Room) -> None:
        player = room.current_player()
        if player is None:
            return

        async def _expire(r: Room) -> None:
            if r.current_player() is not player or player.finished:
                return
            logger.info("Turn timed out for %s", player.name)
            player.status = PlayerStatus.TIMEOUT
            await self._next_turn(r)

        self._arm(room, self.settings.turn_timeout_seconds, _expire, "turn")

    def _is_turn_of(self, room: Room, session: PlayerSession) -> bool:
        return room.current_player() is session

    async def _on_hit(self, room: Room, session: PlayerSession, message: ClientMessage) -> None:
        if not self._is_turn_of(room, session):
            return
        card = room.shoe.draw()
        session.hand.append(card)
        total = hand_value(session.hand)
        logger.info("%s hit - drew %s%s (%d)", session.name, card.rank, card.suit, total)
        if total > 21:
            session.status = PlayerStatus.BUST
            await self._next_turn(room)
            return
        await self._broadcast(room)

    async def _on_stand(self, room: Room, session: PlayerSession, message: ClientMessage) -> None:
        if not self._is_turn_of(room, session):
            return
        session.status = PlayerStatus.DONE
        logger.info("%s stands", session.name)
        await self._next_turn(room)

    async def _on_double(self, room: Room, session: PlayerSession, message: ClientMessage) -> None:
        if not self._is_turn_of(room, session):
            return
        if len(session.hand) != 2 or session.bet <= 0 or session.stack < session.bet:
            return
        card = room.shoe.draw()
        session.stack -= session.bet
        session.bet *= 2
        session.hand.append(card)
        total = hand_value(session.hand)
        session.status = PlayerStatus.BUST if total > 21 else PlayerStatus.DONE
        logger.info("%s doubled down - drew %s%s (%d)", session.name, card.rank, card.suit, total)
        await self._next_turn(room)

    # --- dealer & settlement ----------------------------------------------

    async def _dealer_step(self, room: Room) -> None:
        if hand_value(room.dealer_hand) < DEALER_STANDS_ON:
            room.dealer_hand.append(room.shoe.draw())
            await self._broadcast(room)
            self._arm(room, self.settings.dealer_draw_delay_seconds, self._dealer_step, "dealer")
            return
        self._arm(room, self.settings.settle_delay_seconds, self.evaluate_results, "settle")

    async def evaluate_results(self, room: Room) -> None:
        room.phase = Phase.RESULT
        room.turn_index = -1
        players = room.round_players()
        try:
            outcomes = [
                (p, settle_hand(p.hand, room.dealer_hand, p.bet, p.insurance_bet))
                for p in players
            ]
        except Exception:
            # Nothing applied yet; the room stays in RESULT until someone looks.
            logger.exception("Settlement failed", extra={"room": room.code})
            await self._broadcast(room)
            return

        for player, (result, credit) in outcomes:
            player.stack += credit
            player.result = result
            if player.status != PlayerStatus.BUST:
                player.status = PlayerStatus(result.value)
            player.bet = 0
            player.insurance_bet = 0
            logger.info(
                "%s: %s (value %d, credited %d)",
                player.name,
                result.value,
                hand_value(player.hand),
                credit,
            )
        await self._broadcast(room)
        self._arm(room, self.settings.result_display_seconds, self._return_to_lobby, "result")

    async def _return_to_lobby(self, room: Room) -> None:
        self._reset_table(room)
        await self._broadcast(room)

    async def abort_round(self, room: Room) -> None:
        for player in room.players:
            player.refund_wagers()
        self._reset_table(room)
        await self._broadcast(room)

    def _reset_table(self, room: Room) -> None:
        room.cancel_timer()
        room.phase = Phase.LOBBY
        room.turn_index = -1
        room.dealer_hand = []
        room.deal_queue = []
        for player in room.players:
            player.reset_round()
            player.ready = False

    # --- departures -------------------------------------------------------

    async def remove_player(self, room: Room, session: PlayerSession) -> None:
        """Drop a session, keeping the turn order and phase consistent."""
        if session not in room.players:
            return
        idx = room.players.index(session)
        room.players.pop(idx)
        if not room.players:
            room.cancel_timer()
            return

        if room.phase == Phase.PLAYER and room.turn_index >= 0:
            if idx < room.turn_index:
                room.turn_index -= 1
            elif idx == room.turn_index:
                room.turn_index = idx - 1
                await self._guarded(room, self._next_turn)
                return
        elif room.phase == Phase.INSURANCE and not self._insurance_pending(room):
            await self._enter_player_phase(room)
            return
        await self._broadcast(room)
