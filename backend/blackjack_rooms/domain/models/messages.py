from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from blackjack_rooms.domain.models.types import ActionType


class Payload(BaseModel):
    pass


class JoinPayload(Payload):
    name: Optional[str] = None


class ChatPayload(Payload):
    text: str = ""


class ReadyPayload(Payload):
    ready: bool = False


class BetPayload(Payload):
    value: int = Field(ge=0)


class InsurancePayload(Payload):
    take: bool = True


class ClientMessage(BaseModel):
    type: ActionType
    room_id: Optional[str] = Field(default=None, alias="roomId")
    payload: Payload = Field(default_factory=Payload)


PAYLOAD_MODELS: Dict[ActionType, Type[Payload]] = {
    ActionType.JOIN: JoinPayload,
    ActionType.CHAT: ChatPayload,
    ActionType.READY: ReadyPayload,
    ActionType.BET: BetPayload,
    ActionType.INSURANCE: InsurancePayload,
}


def parse_client_message(raw: Any) -> Optional[ClientMessage]:
    """Validate an inbound envelope; anything malformed comes back as None."""
    if not isinstance(raw, dict):
        return None
    try:
        msg_type = ActionType(raw.get("type"))
        model = PAYLOAD_MODELS.get(msg_type, Payload)
        payload = model.model_validate(raw.get("payload") or {})
        room_id = raw.get("roomId")
        return ClientMessage(
            type=msg_type,
            roomId=str(room_id) if room_id is not None else None,
            payload=payload,
        )
    except (ValueError, ValidationError):
        return None


class OutboundModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class CardView(OutboundModel):
    id: str
    suit: str
    rank: str


class DealerView(OutboundModel):
    cards: List[CardView]


class PlayerView(OutboundModel):
    id: str
    name: str
    stack: int
    bet: int
    insurance_bet: int = Field(alias="insuranceBet")
    ready: bool
    cards: List[CardView]
    status: str
    result: Optional[str] = None


class RoomState(OutboundModel):
    code: str
    phase: str
    turn_idx: int = Field(alias="turnIdx")
    max_players: int = Field(alias="maxPlayers")
    dealer: DealerView
    players: List[PlayerView]


class StateMessage(OutboundModel):
    type: str = "state"
    state: RoomState


class ErrorMessage(OutboundModel):
    type: str = "error"
    message: str


class ChatEntry(OutboundModel):
    id: str
    player_id: str = Field(alias="playerId")
    player_name: str = Field(alias="playerName")
    text: str
    timestamp: int


class ChatMessage(OutboundModel):
    type: str = "chat"
    message: ChatEntry
