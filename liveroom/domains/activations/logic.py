# liveroom/domains/activations/logic.py
"""Pure rules of the activation lifecycle: kinds, poll states, content checks."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from liveroom.shared.exceptions import ContentValidationError, InvalidTransitionError


class ActivationKind(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TEXT_ANSWER = "text_answer"
    POLL = "poll"
    SOCIAL_WALL = "social_wall"
    LEADERBOARD = "leaderboard"


class PollState(str, Enum):
    PENDING = "pending"
    VOTING = "voting"
    CLOSED = "closed"


class HistoryAction(str, Enum):
    ACTIVATED = "activated"
    DEACTIVATED = "deactivated"
    PENDING = "pending"
    VOTING = "voting"
    CLOSED = "closed"


# target -> the only state it may be entered from
POLL_PREDECESSORS: Dict[PollState, PollState] = {
    PollState.VOTING: PollState.PENDING,
    PollState.CLOSED: PollState.VOTING,
}

TIMED_KINDS = {ActivationKind.MULTIPLE_CHOICE, ActivationKind.TEXT_ANSWER}


def required_predecessor(target: PollState) -> PollState:
    """Return the state a poll must be in to move to `target`."""
    try:
        return POLL_PREDECESSORS[target]
    except KeyError:
        raise InvalidTransitionError(
            f"Polls cannot be moved back to '{target.value}'; launch a fresh activation instead"
        )


def resolve_failed_transition(current: Optional[str], target: PollState) -> bool:
    """
    Decide what a compare-and-swap miss means.

    Returns True when the poll already sits in the target state (duplicate click),
    raises InvalidTransitionError otherwise. A closed poll never accepts a transition.
    """
    if current == PollState.CLOSED.value:
        raise InvalidTransitionError("Poll is closed; launch a fresh activation to restart it")
    if current == target.value:
        return True
    raise InvalidTransitionError(f"Cannot move poll from '{current}' to '{target.value}'")


def validate_content(kind: str, options: List[dict], correct_answer: Optional[str],
                     exact_answer: Optional[str]):
    try:
        kind = ActivationKind(kind)
    except ValueError:
        raise ContentValidationError(f"Unknown activation kind '{kind}'")

    if kind in (ActivationKind.POLL, ActivationKind.MULTIPLE_CHOICE):
        texts = [o.get("text", "").strip() for o in options or [] if isinstance(o, dict)]
        if len([t for t in texts if t]) < 2:
            raise ContentValidationError(f"A {kind.value} activation needs at least two options")

    if kind == ActivationKind.MULTIPLE_CHOICE and not (correct_answer or "").strip():
        raise ContentValidationError("A multiple_choice activation needs a correct answer")

    if kind == ActivationKind.TEXT_ANSWER and not (exact_answer or "").strip():
        raise ContentValidationError("A text_answer activation needs an exact answer")


def normalize_options(options: List[dict]) -> List[dict]:
    """Give every option a stable id; legacy templates stored text only."""
    normalized = []
    for option in options or []:
        if not isinstance(option, dict):
            option = {"text": str(option)}
        item = dict(option)
        item["id"] = str(item.get("id") or uuid.uuid4())
        item.setdefault("media_type", "none")
        normalized.append(item)
    return normalized


def history_entry(action: HistoryAction, actor: Optional[str] = None) -> dict:
    return {
        "at": datetime.now(timezone.utc).isoformat(),
        "action": action.value,
        "actor": actor,
    }


def is_correct_answer(kind: str, correct_answer: Optional[str], exact_answer: Optional[str],
                      answer: str) -> bool:
    if kind == ActivationKind.MULTIPLE_CHOICE.value:
        return bool(correct_answer) and answer == correct_answer
    if kind == ActivationKind.TEXT_ANSWER.value:
        return bool(exact_answer) and answer.strip().lower() == exact_answer.strip().lower()
    return False
