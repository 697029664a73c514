# liveroom/domains/leaderboard/api.py
from fastapi import APIRouter, Depends

from liveroom.domains.auth.dependencies import require_room_operator
from liveroom.domains.leaderboard.service import leaderboard_service, ranking_payload

router = APIRouter()


@router.get("/{room_id}/leaderboard")
async def get_leaderboard(room_id: str):
    """Current ranking with deltas against the last published one"""
    return ranking_payload(room_id, await leaderboard_service.peek(room_id))


@router.post("/{room_id}/leaderboard/refresh")
async def refresh_leaderboard(room_id: str, principal=Depends(require_room_operator)):
    return ranking_payload(room_id, await leaderboard_service.refresh(room_id))
