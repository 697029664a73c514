from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from liveroom.domains.activations.logic import ActivationKind, PollState


class OptionIn(BaseModel):
    id: Optional[str] = None
    text: str
    media_type: str = "none"
    media_url: Optional[str] = None


class TemplateCreate(BaseModel):
    room_id: Optional[str] = None
    kind: ActivationKind
    title: Optional[str] = None
    description: Optional[str] = None
    question: Optional[str] = None
    options: List[OptionIn] = Field(default_factory=list)
    correct_answer: Optional[str] = None
    exact_answer: Optional[str] = None
    time_limit: int = Field(default=0, ge=0)
    media_type: str = "none"
    media_url: Optional[str] = None
    poll_display_type: Optional[str] = "bar"
    poll_result_format: Optional[str] = "both"
    option_colors: Optional[Dict[str, str]] = None
    show_answers: bool = True


class LaunchRequest(BaseModel):
    template_id: str


class TransitionRequest(BaseModel):
    to: PollState

    @field_validator("to")
    @classmethod
    def validate_target(cls, v):
        if v == PollState.PENDING:
            raise ValueError("Polls cannot be moved back to pending; launch a fresh activation")
        return v


class ActivationPublic(BaseModel):
    """What participants and displays see; the answer key stays with operators."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    room_id: Optional[str] = None
    parent_id: Optional[str] = None
    kind: str
    is_template: bool
    active: bool
    poll_state: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    question: Optional[str] = None
    options: List[Dict[str, Any]] = Field(default_factory=list)
    time_limit: int = 0
    timer_started_at: Optional[datetime] = None
    media_type: Optional[str] = None
    media_url: Optional[str] = None
    poll_display_type: Optional[str] = None
    poll_result_format: Optional[str] = None
    option_colors: Optional[Dict[str, Any]] = None
    show_answers: bool = True
    history: List[Dict[str, Any]] = Field(default_factory=list)
    last_activated: Optional[datetime] = None
    last_deactivated: Optional[datetime] = None


class ActivationOut(ActivationPublic):
    correct_answer: Optional[str] = None
    exact_answer: Optional[str] = None


def serialize_activation(activation, include_answers: bool = True) -> Dict[str, Any]:
    schema = ActivationOut if include_answers else ActivationPublic
    return schema.model_validate(activation).model_dump(mode="json")


def redact_answers(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in payload.items() if k not in ("correct_answer", "exact_answer")}
