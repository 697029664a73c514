# liveroom/domains/votes/api.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from liveroom.domains.auth.dependencies import ensure_can_mutate, get_principal
from liveroom.domains.votes.schemas import Tally, VoteFailureOut, VoteOut, VoteRequest, VoteResult
from liveroom.domains.votes.service import vote_service
from liveroom.shared.exceptions import NotFoundError

router = APIRouter()


@router.post("/activations/{activation_id}/votes", response_model=VoteResult)
async def cast_vote(activation_id: str, request: VoteRequest):
    """Record one vote per participant; a resubmission returns the stored vote"""
    return await vote_service.cast_vote(
        activation_id,
        request.participant_id,
        option_id=request.option_id,
        option_text=request.option_text,
    )


@router.get("/activations/{activation_id}/tally", response_model=Tally)
async def get_tally(activation_id: str):
    return await vote_service.get_tally(activation_id)


@router.get("/activations/{activation_id}/votes/{participant_id}", response_model=VoteOut)
async def get_participant_vote(activation_id: str, participant_id: str):
    vote = await vote_service.get_participant_vote(activation_id, participant_id)
    if not vote:
        raise NotFoundError("No vote recorded")
    return vote


@router.get("/votes/failures", response_model=List[VoteFailureOut])
async def list_failures(
        room_id: Optional[str] = None,
        limit: int = Query(default=100, ge=1, le=500),
        principal=Depends(get_principal),
):
    """Queued and abandoned vote writes for operator inspection"""
    ensure_can_mutate(principal, room_id or "*")
    return await vote_service.list_failures(room_id, limit)
