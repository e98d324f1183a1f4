from enum import Enum

class Phase(str, Enum):
    LOBBY = "LOBBY"
    SHUFFLING = "SHUFFLING"
    DEALING = "DEALING"
    INSURANCE = "INSURANCE"
    PLAYER = "PLAYER"
    DEALER = "DEALER"
    RESULT = "RESULT"

class PlayerStatus(str, Enum):
    NONE = ""
    WAITING = "WAITING"
    INSURED = "INSURED"
    DONE = "DONE"
    BUST = "BUST"
    TIMEOUT = "TIMEOUT"
    BLACKJACK = "BLACKJACK"
    WIN = "WIN"
    PUSH = "PUSH"
    LOSE = "LOSE"

# A player with one of these statuses has finished acting for the round.
FINISHED_STATUSES = frozenset({PlayerStatus.DONE, PlayerStatus.BUST, PlayerStatus.TIMEOUT})

class RoundResult(str, Enum):
    WIN = "WIN"
    LOSE = "LOSE"
    PUSH = "PUSH"
    BLACKJACK = "BLACKJACK"

class ActionType(str, Enum):
    JOIN = "join"
    LEAVE = "leave"
    CHAT = "chat"
    READY = "ready"
    BET = "bet"
    CLEARBET = "clearbet"
    INSURANCE = "insurance"
    START = "start"
    HIT = "hit"
    STAND = "stand"
    DOUBLE = "double"
