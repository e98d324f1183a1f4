import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    port: int = int(os.getenv("BJ_PORT", "8080"))
    max_players: int = int(os.getenv("BJ_MAX_PLAYERS", "8"))
    initial_stack: int = int(os.getenv("BJ_INITIAL_STACK", "5000"))
    default_player_name: str = os.getenv("BJ_DEFAULT_PLAYER_NAME", "Player")
    chat_max_length: int = int(os.getenv("BJ_CHAT_MAX_LENGTH", "300"))

    # Shoe
    shoe_decks: int = int(os.getenv("BJ_SHOE_DECKS", "6"))
    reshuffle_threshold: int = int(os.getenv("BJ_RESHUFFLE_THRESHOLD", "52"))
    # Most cards one hand can take before it must stop or bust (A A A A 2 2 2 2 3 3 3 + one).
    cards_reserved_per_hand: int = int(os.getenv("BJ_CARDS_RESERVED_PER_HAND", "12"))

    # Pacing (seconds)
    shuffle_delay_seconds: float = float(os.getenv("BJ_SHUFFLE_DELAY_SECONDS", "2.0"))
    deal_interval_seconds: float = float(os.getenv("BJ_DEAL_INTERVAL_SECONDS", "0.45"))
    insurance_window_seconds: float = float(os.getenv("BJ_INSURANCE_WINDOW_SECONDS", "10"))
    turn_timeout_seconds: float = float(os.getenv("BJ_TURN_TIMEOUT_SECONDS", "20"))
    dealer_start_delay_seconds: float = float(os.getenv("BJ_DEALER_START_DELAY_SECONDS", "1.0"))
    dealer_draw_delay_seconds: float = float(os.getenv("BJ_DEALER_DRAW_DELAY_SECONDS", "0.8"))
    settle_delay_seconds: float = float(os.getenv("BJ_SETTLE_DELAY_SECONDS", "1.0"))
    result_display_seconds: float = float(os.getenv("BJ_RESULT_DISPLAY_SECONDS", "5"))


settings = Settings()
