import asyncio
import json
from typing import Any, Dict

import websockets


WS_URL = "ws://127.0.0.1:8080/ws/blackjack"
ROOM_ID = "demo"


async def send(ws, msg_type: str, **payload: Any) -> None:
    await ws.send(json.dumps({"type": msg_type, "roomId": ROOM_ID, "payload": payload}))


async def recv_state(ws) -> Dict[str, Any]:
    while True:
        msg = json.loads(await ws.recv())
        if msg.get("type") == "state":
            return msg["state"]


async def wait_for(ws, predicate) -> Dict[str, Any]:
    while True:
        state = await recv_state(ws)
        if predicate(state):
            return state


async def main() -> None:
    # Two players sit down, bet, and stand on whatever they are dealt.
    async with websockets.connect(WS_URL) as ws1, websockets.connect(WS_URL) as ws2:
        await send(ws1, "join", name="Alice")
        print("JOIN 1:", await recv_state(ws1))
        await send(ws2, "join", name="Bob")
        print("JOIN 2:", await recv_state(ws2))

        for ws in (ws1, ws2):
            await send(ws, "bet", value=100)
            await send(ws, "ready", ready=True)
        await send(ws1, "start")

        for idx, ws in enumerate((ws1, ws2)):
            state = await wait_for(
                ws, lambda s, i=idx: s["phase"] == "PLAYER" and s["turnIdx"] == i
            )
            print(f"TURN {idx}:", state["players"][idx]["cards"])
            await send(ws, "stand")

        result = await wait_for(ws1, lambda s: s["phase"] == "RESULT")
        print("DEALER:", result["dealer"]["cards"])
        for player in result["players"]:
            print(f"{player['name']}: {player['result']} (stack {player['stack']})")

        await send(ws1, "leave")
        await send(ws2, "leave")


if __name__ == "__main__":
    asyncio.run(main())
