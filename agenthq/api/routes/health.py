from fastapi import APIRouter, Depends

from agenthq.core.realtime import RealtimeRegistry, get_registry


router = APIRouter(tags=["health"])


@router.get("/health")
def health(registry: RealtimeRegistry = Depends(get_registry)):
    return {"status": "ok", "sessions": registry.session_count()}
