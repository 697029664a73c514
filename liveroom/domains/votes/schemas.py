from datetime import datetime
from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class VoteRequest(BaseModel):
    participant_id: str
    option_id: Optional[str] = None
    option_text: Optional[str] = None

    @model_validator(mode="after")
    def require_option(self):
        if not self.option_id and not (self.option_text or "").strip():
            raise ValueError("Either option_id or option_text is required")
        return self


class VoteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    activation_id: str
    participant_id: str
    option_id: Optional[str] = None
    option_text: Optional[str] = None
    created_at: Optional[datetime] = None


class Tally(BaseModel):
    activation_id: str
    counts: Dict[str, int] = Field(default_factory=dict)
    counts_by_text: Dict[str, int] = Field(default_factory=dict)
    total: int = 0


class VoteResult(BaseModel):
    # recorded: new vote stored; duplicate: existing vote returned; queued: write deferred
    status: Literal["recorded", "duplicate", "queued"]
    vote: Optional[VoteOut] = None
    tally: Optional[Tally] = None
    failure_id: Optional[str] = None


class VoteFailureOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    room_id: str
    activation_id: str
    participant_id: str
    option_id: Optional[str] = None
    option_text: Optional[str] = None
    error_message: Optional[str] = None
    retry_count: int
    created_at: Optional[datetime] = None
    last_retry: Optional[datetime] = None
    exhausted: bool = False


class RetrySummary(BaseModel):
    selected: int = 0
    recorded: int = 0
    discarded: int = 0
    failed: int = 0
    exhausted: int = 0
    skipped: int = 0
