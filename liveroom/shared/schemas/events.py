from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


def room_channel(room_id: str) -> str:
    return f"room:{room_id}"


def activation_channel(activation_id: str) -> str:
    return f"activation:{activation_id}"


class SessionChanged(BaseModel):
    event: Literal["session:changed"] = "session:changed"
    room_id: str
    current_activation_id: Optional[str] = None
    is_live: bool


class ActivationChanged(BaseModel):
    event: Literal["activation:changed"] = "activation:changed"
    room_id: str
    activation: Dict[str, Any]


class ActivationDeleted(BaseModel):
    event: Literal["activation:deleted"] = "activation:deleted"
    room_id: str
    activation_id: str


class PollTallyChanged(BaseModel):
    event: Literal["poll:tally"] = "poll:tally"
    room_id: str
    activation_id: str
    counts: Dict[str, int]
    counts_by_text: Dict[str, int] = Field(default_factory=dict)
    total: int


class VoteRetryExhausted(BaseModel):
    event: Literal["vote:retry_exhausted"] = "vote:retry_exhausted"
    room_id: str
    activation_id: str
    participant_id: str
    failure_id: str
    error: Optional[str] = None


class ParticipantJoined(BaseModel):
    event: Literal["participant:joined"] = "participant:joined"
    room_id: str
    participant_id: str
    name: str


class ParticipantScored(BaseModel):
    event: Literal["participant:scored"] = "participant:scored"
    room_id: str
    activation_id: str
    participant_id: str
    points: int
    score: float


class RoomReset(BaseModel):
    event: Literal["room:reset"] = "room:reset"
    room_id: str
    mode: str
    current_activation_id: Optional[str] = None
    is_live: bool


class LeaderboardUpdated(BaseModel):
    event: Literal["leaderboard:updated"] = "leaderboard:updated"
    room_id: str
    entries: List[Dict[str, Any]]
    leader_id: Optional[str] = None
    leader_changed: bool = False
