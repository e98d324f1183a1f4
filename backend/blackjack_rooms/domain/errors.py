class BlackjackError(Exception):
    """Base class for table errors."""


class RoomFull(BlackjackError):
    def __init__(self, code: str, max_players: int) -> None:
        super().__init__(f"Room is full! ({max_players}/{max_players})")
        self.code = code
        self.max_players = max_players


class EmptyShoe(BlackjackError):
    """Raised when a card is drawn from an exhausted shoe."""
