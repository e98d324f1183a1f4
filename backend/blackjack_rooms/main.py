import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from blackjack_rooms.api.ws.blackjack import router as blackjack_ws
from blackjack_rooms.api.http.health import router as health_router

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    from blackjack_rooms.config import settings
    from blackjack_rooms.services.table_service import RoomRegistry

    registry = RoomRegistry(settings)
    app.state.registry = registry
    logger.info("Blackjack room server ready (max %d players per room)", settings.max_players)
    try:
        yield
    finally:
        await registry.close()


app = FastAPI(title="Blackjack Rooms", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(blackjack_ws)
