# liveroom/domains/rooms/api.py
from typing import List

from fastapi import APIRouter, Depends, status

from liveroom.domains.auth.dependencies import require_room_operator
from liveroom.domains.rooms.schemas import JoinRequest, ParticipantOut, ResetRequest, RoomOut
from liveroom.domains.rooms.service import room_service

router = APIRouter()


@router.post("/join", response_model=ParticipantOut, status_code=status.HTTP_201_CREATED)
async def join_room(request: JoinRequest):
    """Join an active room by its short code"""
    return await room_service.join(request.code, request.name)


@router.get("/{room_id}", response_model=RoomOut)
async def get_room(room_id: str):
    return await room_service.get_room(room_id)


@router.get("/{room_id}/participants", response_model=List[ParticipantOut])
async def list_participants(room_id: str):
    return await room_service.list_participants(room_id)


@router.post("/{room_id}/reset")
async def reset_room(room_id: str, request: ResetRequest, principal=Depends(require_room_operator)):
    return await room_service.reset(room_id, request.mode)
