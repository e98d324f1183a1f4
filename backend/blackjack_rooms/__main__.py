import uvicorn

from blackjack_rooms.config import settings


def main() -> None:
    uvicorn.run("blackjack_rooms.main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
