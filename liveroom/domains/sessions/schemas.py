from typing import Any, Dict, Optional

from pydantic import BaseModel


class SessionState(BaseModel):
    room_id: str
    current_activation_id: Optional[str] = None
    is_live: bool = False


class RoomState(BaseModel):
    """Everything a client needs on initial load or after a reconnect."""

    session: SessionState
    activation: Optional[Dict[str, Any]] = None
    tally: Optional[Dict[str, Any]] = None


class ArmRequest(BaseModel):
    activation_id: str
    preserve_poll_state: bool = True
