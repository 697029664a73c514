# liveroom/domains/scoring/api.py
from fastapi import APIRouter

from liveroom.domains.scoring.schemas import AnswerRequest, AnswerResult
from liveroom.domains.scoring.service import scoring_service

router = APIRouter()


@router.post("/activations/{activation_id}/answers", response_model=AnswerResult)
async def submit_answer(activation_id: str, request: AnswerRequest):
    return await scoring_service.submit_answer(
        activation_id,
        request.participant_id,
        request.answer,
        time_taken_ms=request.time_taken_ms,
    )
