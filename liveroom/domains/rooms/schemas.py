from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ResetMode(str, Enum):
    SCORES = "scores"
    EVERYTHING = "everything"


class JoinRequest(BaseModel):
    code: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=64)


class ResetRequest(BaseModel):
    mode: ResetMode = ResetMode.SCORES


class ParticipantStats(BaseModel):
    total_points: float = 0.0
    correct_answers: int = 0
    total_answers: int = 0
    average_response_ms: float = 0.0


class ParticipantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    room_id: str
    name: str
    score: float
    stats: ParticipantStats


class RoomOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    code: str
    is_active: bool
    customer_id: Optional[str] = None
