from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
def health(request: Request) -> dict:
    registry = request.app.state.registry
    return {"status": "ok", "rooms": len(registry)}
