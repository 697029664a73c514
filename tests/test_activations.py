import asyncio

import pytest
from pydantic import ValidationError
from sqlalchemy import func, select

from liveroom.core.database import get_db
from liveroom.domains.activations.logic import ActivationKind, PollState
from liveroom.domains.activations.models import Activation
from liveroom.domains.activations.repository import create_template
from liveroom.domains.activations.schemas import OptionIn, TemplateCreate, TransitionRequest
from liveroom.domains.activations.service import activation_service
from liveroom.domains.rooms.repository import create_room
from liveroom.domains.sessions.service import session_coordinator
from liveroom.shared.exceptions import (
    ContentValidationError,
    InvalidTransitionError,
    NotFoundError,
    RoomInactiveError,
)
from liveroom.shared.schemas.events import room_channel


async def active_count(room_id):
    async with get_db() as db:
        result = await db.execute(
            select(func.count(Activation.id)).filter(
                Activation.room_id == room_id,
                Activation.is_template == False,  # noqa: E712
                Activation.active == True,  # noqa: E712
            )
        )
        return result.scalar_one()


@pytest.mark.asyncio
async def test_launch_creates_session_pointing_at_live_copy(room, poll_template):
    assert (await session_coordinator.get(room.id)).current_activation_id is None

    live = await activation_service.launch(poll_template.id, room.id, actor="op-1")

    state = await session_coordinator.get(room.id)
    assert state.current_activation_id == live["id"]
    assert state.is_live is True
    assert live["id"] != poll_template.id
    assert live["parent_id"] == poll_template.id
    assert live["is_template"] is False
    assert live["active"] is True
    assert live["poll_state"] == PollState.PENDING.value
    assert [o["text"] for o in live["options"]] == ["Red", "Blue", "Green"]
    assert all(o["id"] for o in live["options"])
    assert live["history"][-1]["action"] == "activated"
    assert live["history"][-1]["actor"] == "op-1"


@pytest.mark.asyncio
async def test_launch_publishes_activation_then_session(room, poll_template, events):
    received = events(room_channel(room.id))

    live = await activation_service.launch(poll_template.id, room.id)

    assert [payload["event"] for _, payload in received] == ["activation:changed", "session:changed"]
    assert received[1][1]["current_activation_id"] == live["id"]


@pytest.mark.asyncio
async def test_launch_announces_the_released_activation(room, quiz_template, poll_template, events):
    quiz = await activation_service.launch(quiz_template.id, room.id)
    received = events(room_channel(room.id))

    poll = await activation_service.launch(poll_template.id, room.id)

    assert [p["event"] for _, p in received] == ["activation:changed", "activation:changed", "session:changed"]
    released, launched = received[0][1]["activation"], received[1][1]["activation"]
    assert (released["id"], released["active"]) == (quiz["id"], False)
    assert released["history"][-1]["action"] == "deactivated"
    assert "correct_answer" not in released
    assert launched["id"] == poll["id"]


@pytest.mark.asyncio
async def test_only_one_activation_is_live_per_room(room, poll_template, quiz_template):
    first = await activation_service.launch(poll_template.id, room.id)
    second = await activation_service.launch(quiz_template.id, room.id)
    third = await activation_service.launch(poll_template.id, room.id)

    assert await active_count(room.id) == 1
    assert (await session_coordinator.get(room.id)).current_activation_id == third["id"]
    first_now = await activation_service.get(first["id"])
    assert first_now["active"] is False
    assert first_now["last_deactivated"] is not None
    assert (await activation_service.get(second["id"]))["history"][-1]["action"] == "deactivated"


@pytest.mark.asyncio
async def test_concurrent_launches_leave_one_session_and_one_live(room, poll_template, quiz_template):
    results = await asyncio.gather(
        activation_service.launch(poll_template.id, room.id),
        activation_service.launch(quiz_template.id, room.id),
    )

    state = await session_coordinator.get(room.id)
    assert state.current_activation_id in {r["id"] for r in results}
    assert await active_count(room.id) == 1


@pytest.mark.asyncio
async def test_launch_rejects_invalid_content_before_any_write(room):
    template = await create_template(
        TemplateCreate(room_id=room.id, kind=ActivationKind.POLL, options=[OptionIn(text="Only one")])
    )

    with pytest.raises(ContentValidationError):
        await activation_service.launch(template.id, room.id)

    assert (await session_coordinator.get(room.id)).current_activation_id is None
    assert await activation_service.list_live(room.id) == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kind, extra",
    [
        (ActivationKind.MULTIPLE_CHOICE, {"options": [OptionIn(text="a"), OptionIn(text="b")]}),
        (ActivationKind.TEXT_ANSWER, {}),
    ],
)
async def test_questions_need_an_answer_key(room, kind, extra):
    template = await create_template(TemplateCreate(room_id=room.id, kind=kind, **extra))
    with pytest.raises(ContentValidationError):
        await activation_service.launch(template.id, room.id)


@pytest.mark.asyncio
async def test_launch_into_inactive_room(db, poll_template):
    closed = await create_room("Closed", "SHUT01", is_active=False)
    global_template = await create_template(
        TemplateCreate(kind=ActivationKind.POLL, options=[OptionIn(text="x"), OptionIn(text="y")])
    )
    with pytest.raises(RoomInactiveError):
        await activation_service.launch(global_template.id, closed.id)


@pytest.mark.asyncio
async def test_launch_requires_a_template(room, poll_template):
    live = await activation_service.launch(poll_template.id, room.id)
    with pytest.raises(NotFoundError):
        await activation_service.launch(live["id"], room.id)


@pytest.mark.asyncio
async def test_timed_question_starts_its_timer(room, quiz_template):
    live = await activation_service.launch(quiz_template.id, room.id)
    assert live["timer_started_at"] is not None
    assert live["correct_answer"] == "4"
    assert live["poll_state"] is None


@pytest.mark.asyncio
async def test_poll_lifecycle(room, poll_template, events):
    live = await activation_service.launch(poll_template.id, room.id)
    received = events(room_channel(room.id))

    voting = await activation_service.transition_poll(live["id"], PollState.VOTING, actor="op-1")
    closed = await activation_service.transition_poll(live["id"], PollState.CLOSED)

    assert voting["poll_state"] == "voting"
    assert closed["poll_state"] == "closed"
    assert [a["action"] for a in closed["history"]][-2:] == ["voting", "closed"]
    assert [p["activation"]["poll_state"] for _, p in received] == ["voting", "closed"]


@pytest.mark.asyncio
async def test_repeated_start_is_a_noop(room, poll_template, events):
    live = await activation_service.launch(poll_template.id, room.id)
    await activation_service.transition_poll(live["id"], PollState.VOTING)
    received = events(room_channel(room.id))

    again = await activation_service.transition_poll(live["id"], PollState.VOTING)

    assert again["poll_state"] == "voting"
    assert received == []


@pytest.mark.asyncio
async def test_concurrent_start_changes_state_once(room, poll_template, events):
    live = await activation_service.launch(poll_template.id, room.id)
    received = events(room_channel(room.id))

    results = await asyncio.gather(
        activation_service.transition_poll(live["id"], PollState.VOTING),
        activation_service.transition_poll(live["id"], PollState.VOTING),
    )

    assert [r["poll_state"] for r in results] == ["voting", "voting"]
    assert len(received) == 1
    history = (await activation_service.get(live["id"]))["history"]
    assert [h["action"] for h in history].count("voting") == 1


@pytest.mark.asyncio
async def test_pending_cannot_skip_to_closed(room, poll_template):
    live = await activation_service.launch(poll_template.id, room.id)
    with pytest.raises(InvalidTransitionError):
        await activation_service.transition_poll(live["id"], PollState.CLOSED)
    assert (await activation_service.get(live["id"]))["poll_state"] == "pending"


@pytest.mark.asyncio
@pytest.mark.parametrize("target", [PollState.VOTING, PollState.CLOSED, PollState.PENDING])
async def test_closed_poll_rejects_everything(room, poll_template, target):
    live = await activation_service.launch(poll_template.id, room.id)
    await activation_service.transition_poll(live["id"], PollState.VOTING)
    await activation_service.transition_poll(live["id"], PollState.CLOSED)

    with pytest.raises(InvalidTransitionError):
        await activation_service.transition_poll(live["id"], target)


def test_pending_is_not_a_requestable_target():
    with pytest.raises(ValidationError):
        TransitionRequest(to="pending")


@pytest.mark.asyncio
async def test_transition_on_non_poll(room, quiz_template):
    live = await activation_service.launch(quiz_template.id, room.id)
    with pytest.raises(InvalidTransitionError):
        await activation_service.transition_poll(live["id"], PollState.VOTING)


@pytest.mark.asyncio
async def test_deactivate_clears_current_session(room, poll_template, events):
    live = await activation_service.launch(poll_template.id, room.id)
    received = events(room_channel(room.id))

    result = await activation_service.deactivate(live["id"], actor="op-1")

    assert result["active"] is False
    state = await session_coordinator.get(room.id)
    assert state.current_activation_id is None
    assert state.is_live is True
    assert [p["event"] for _, p in received] == ["activation:changed", "session:changed"]

    received.clear()
    await activation_service.deactivate(live["id"])
    assert received == []


@pytest.mark.asyncio
async def test_delete_current_activation_clears_session(room, poll_template, events):
    live = await activation_service.launch(poll_template.id, room.id)
    received = events(room_channel(room.id))

    await activation_service.delete_activation(live["id"])

    state = await session_coordinator.get(room.id)
    assert state.current_activation_id is None
    assert state.is_live is True
    assert [p["event"] for _, p in received] == ["activation:deleted", "session:changed"]
    with pytest.raises(NotFoundError):
        await activation_service.get(live["id"])


@pytest.mark.asyncio
async def test_delete_stale_activation_keeps_session(room, poll_template, quiz_template):
    old = await activation_service.launch(poll_template.id, room.id)
    current = await activation_service.launch(quiz_template.id, room.id)

    await activation_service.delete_activation(old["id"])

    assert (await session_coordinator.get(room.id)).current_activation_id == current["id"]
