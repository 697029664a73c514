from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AnswerRequest(BaseModel):
    participant_id: str
    answer: str = Field(min_length=1)
    # client-measured; falls back to the activation timer when omitted
    time_taken_ms: Optional[int] = Field(default=None, ge=0)


class AnswerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    activation_id: str
    participant_id: str
    answer: str
    is_correct: bool
    points: int
    time_taken_ms: int
    created_at: Optional[datetime] = None


class AnswerResult(BaseModel):
    status: str  # recorded | duplicate
    answer: AnswerOut
    score: Optional[float] = None
