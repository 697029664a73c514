import pytest

from liveroom.domains.activations.logic import PollState
from liveroom.domains.activations.service import activation_service
from liveroom.domains.rooms.repository import create_room
from liveroom.domains.sessions.service import session_coordinator
from liveroom.domains.votes.service import vote_service
from liveroom.shared.exceptions import InvalidTransitionError, NotFoundError
from liveroom.shared.schemas.events import room_channel


@pytest.mark.asyncio
async def test_get_without_session(room):
    state = await session_coordinator.get(room.id)
    assert state.current_activation_id is None
    assert state.is_live is False


@pytest.mark.asyncio
async def test_rearm_resets_poll_unless_preserved(room, poll_template, quiz_template):
    poll = await activation_service.launch(poll_template.id, room.id)
    await activation_service.transition_poll(poll["id"], PollState.VOTING)
    await activation_service.launch(quiz_template.id, room.id)

    await session_coordinator.arm(room.id, poll["id"], preserve_poll_state=True)
    assert (await activation_service.get(poll["id"]))["poll_state"] == "voting"

    await session_coordinator.arm(room.id, poll["id"])
    resumed = await activation_service.get(poll["id"])
    assert resumed["poll_state"] == "pending"
    assert resumed["active"] is True


@pytest.mark.asyncio
async def test_arm_publishes_session_change(room, poll_template, quiz_template, events):
    poll = await activation_service.launch(poll_template.id, room.id)
    quiz = await activation_service.launch(quiz_template.id, room.id)
    received = events(room_channel(room.id))

    state = await session_coordinator.arm(room.id, poll["id"], preserve_poll_state=True)

    assert state.current_activation_id == poll["id"]
    assert [p["event"] for _, p in received] == ["activation:changed", "activation:changed", "session:changed"]
    released, armed = received[0][1]["activation"], received[1][1]["activation"]
    assert (released["id"], released["active"]) == (quiz["id"], False)
    assert (armed["id"], armed["active"]) == (poll["id"], True)
    assert received[2][1] == {
        "event": "session:changed",
        "room_id": room.id,
        "current_activation_id": poll["id"],
        "is_live": True,
    }


@pytest.mark.asyncio
async def test_rearm_announces_poll_reset(room, poll_template, quiz_template, events):
    poll = await activation_service.launch(poll_template.id, room.id)
    await activation_service.transition_poll(poll["id"], PollState.VOTING)
    quiz = await activation_service.launch(quiz_template.id, room.id)
    received = events(room_channel(room.id))

    await session_coordinator.arm(room.id, poll["id"])

    changed = {p["activation"]["id"]: p["activation"] for _, p in received if p["event"] == "activation:changed"}
    assert changed[poll["id"]]["poll_state"] == "pending"
    assert changed[poll["id"]]["active"] is True
    assert changed[quiz["id"]]["active"] is False
    # the released quiz is broadcast without its answer key
    assert "correct_answer" not in changed[quiz["id"]]
    assert received[-1][1]["event"] == "session:changed"


@pytest.mark.asyncio
async def test_arming_the_live_activation_only_touches_the_session(room, poll_template, events):
    poll = await activation_service.launch(poll_template.id, room.id)
    received = events(room_channel(room.id))

    await session_coordinator.arm(room.id, poll["id"], preserve_poll_state=True)

    assert [p["event"] for _, p in received] == ["session:changed"]


@pytest.mark.asyncio
async def test_arm_rejects_templates_and_foreign_activations(room, poll_template):
    with pytest.raises(InvalidTransitionError):
        await session_coordinator.arm(room.id, poll_template.id)

    other = await create_room("Other", "OTHER1")
    live = await activation_service.launch(poll_template.id, room.id)
    with pytest.raises(NotFoundError):
        await session_coordinator.arm(other.id, live["id"])


@pytest.mark.asyncio
async def test_clear_keeps_room_live(room, poll_template, events):
    await activation_service.launch(poll_template.id, room.id)
    received = events(room_channel(room.id))

    state = await session_coordinator.clear(room.id)

    assert state.current_activation_id is None
    assert state.is_live is True
    assert len(received) == 1


@pytest.mark.asyncio
async def test_clear_without_session_is_silent(room, events):
    received = events(room_channel(room.id))
    state = await session_coordinator.clear(room.id)
    assert state.is_live is False
    assert received == []


@pytest.mark.asyncio
async def test_room_state_includes_live_poll_and_tally(room, participants, poll_template):
    poll = await activation_service.launch(poll_template.id, room.id)
    await activation_service.transition_poll(poll["id"], PollState.VOTING)
    red = poll["options"][0]
    await vote_service.cast_vote(poll["id"], participants[0].id, option_id=red["id"])

    snapshot = await session_coordinator.get_room_state(room.id)

    assert snapshot.session.current_activation_id == poll["id"]
    assert snapshot.activation["poll_state"] == "voting"
    assert snapshot.tally["counts"][red["id"]] == 1
    assert snapshot.tally["total"] == 1


@pytest.mark.asyncio
async def test_room_state_when_idle(room):
    snapshot = await session_coordinator.get_room_state(room.id)
    assert snapshot.activation is None
    assert snapshot.tally is None
