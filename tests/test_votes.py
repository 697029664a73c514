import asyncio
import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from liveroom.core.database import get_db
from liveroom.domains.activations.logic import PollState
from liveroom.domains.activations.service import activation_service
from liveroom.domains.rooms.repository import create_participant, create_room
from liveroom.domains.votes import repository
from liveroom.domains.votes.models import Vote, VoteWriteFailure
from liveroom.domains.votes.service import vote_service
from liveroom.shared.exceptions import (
    ContentValidationError,
    NotFoundError,
    TransientWriteError,
    VotingWindowError,
)
from liveroom.shared.schemas.events import activation_channel


async def vote_rows(activation_id):
    async with get_db() as db:
        result = await db.execute(select(func.count(Vote.id)).filter(Vote.activation_id == activation_id))
        return result.scalar_one()


async def failures():
    async with get_db() as db:
        result = await db.execute(select(VoteWriteFailure))
        return list(result.scalars().all())


@pytest.fixture
def open_poll(room, poll_template):
    async def _open(state=PollState.VOTING):
        poll = await activation_service.launch(poll_template.id, room.id)
        if state in (PollState.VOTING, PollState.CLOSED):
            poll = await activation_service.transition_poll(poll["id"], PollState.VOTING)
        if state == PollState.CLOSED:
            poll = await activation_service.transition_poll(poll["id"], PollState.CLOSED)
        return poll

    return _open


@pytest.mark.asyncio
async def test_vote_is_recorded_and_tallied(participants, open_poll, events):
    poll = await open_poll()
    received = events(activation_channel(poll["id"]))
    blue = poll["options"][1]

    result = await vote_service.cast_vote(poll["id"], participants[0].id, option_id=blue["id"])

    assert result.status == "recorded"
    assert result.vote.option_id == blue["id"]
    assert result.vote.option_text == "Blue"
    assert result.tally.counts[blue["id"]] == 1
    assert result.tally.counts_by_text["Blue"] == 1
    assert result.tally.total == 1
    assert len(received) == 1
    assert received[0][1]["event"] == "poll:tally"
    assert received[0][1]["total"] == 1


@pytest.mark.asyncio
async def test_vote_by_option_text(participants, open_poll):
    poll = await open_poll()
    result = await vote_service.cast_vote(poll["id"], participants[0].id, option_text="Green")
    assert result.vote.option_id == poll["options"][2]["id"]


@pytest.mark.asyncio
async def test_second_vote_returns_the_first(participants, open_poll, events):
    poll = await open_poll()
    red, blue = poll["options"][0], poll["options"][1]
    await vote_service.cast_vote(poll["id"], participants[0].id, option_id=red["id"])
    received = events(activation_channel(poll["id"]))

    again = await vote_service.cast_vote(poll["id"], participants[0].id, option_id=blue["id"])

    assert again.status == "duplicate"
    assert again.vote.option_id == red["id"]
    assert again.tally.counts[blue["id"]] == 0
    assert await vote_rows(poll["id"]) == 1
    assert received == []


@pytest.mark.asyncio
async def test_concurrent_duplicates_store_one_row(participants, open_poll):
    poll = await open_poll()
    options = poll["options"]

    results = await asyncio.gather(
        *(vote_service.cast_vote(poll["id"], participants[0].id, option_id=o["id"]) for o in options)
    )

    assert sorted(r.status for r in results) == ["duplicate", "duplicate", "recorded"]
    assert await vote_rows(poll["id"]) == 1


@pytest.mark.asyncio
async def test_vote_while_pending_is_rejected(participants, open_poll):
    poll = await open_poll(PollState.PENDING)

    with pytest.raises(VotingWindowError):
        await vote_service.cast_vote(poll["id"], participants[0].id, option_id=poll["options"][0]["id"])

    assert await vote_rows(poll["id"]) == 0


@pytest.mark.asyncio
async def test_vote_after_close_is_rejected(participants, open_poll):
    poll = await open_poll(PollState.CLOSED)
    with pytest.raises(VotingWindowError):
        await vote_service.cast_vote(poll["id"], participants[0].id, option_id=poll["options"][0]["id"])


@pytest.mark.asyncio
async def test_vote_refused_before_poll_opened_reports_window(participants, open_poll, monkeypatch):
    # the insert was refused while pending and the poll opened before the rejection was explained
    poll = await open_poll(PollState.VOTING)

    async def refused(*args, **kwargs):
        return 0

    monkeypatch.setattr(repository, "insert_vote", refused)

    with pytest.raises(VotingWindowError):
        await vote_service.cast_vote(poll["id"], participants[0].id, option_id=poll["options"][0]["id"])


@pytest.mark.asyncio
async def test_vote_from_another_room_is_not_found(room, participants, open_poll):
    other = await create_room("Other", "OTHER1")
    stranger = await create_participant(other.id, "Dan")
    poll = await open_poll()

    with pytest.raises(NotFoundError):
        await vote_service.cast_vote(poll["id"], stranger.id, option_id=poll["options"][0]["id"])
    assert await vote_rows(poll["id"]) == 0


@pytest.mark.asyncio
async def test_unknown_option_and_participant(participants, open_poll):
    poll = await open_poll()
    with pytest.raises(ContentValidationError):
        await vote_service.cast_vote(poll["id"], participants[0].id, option_id="nope")
    with pytest.raises(NotFoundError):
        await vote_service.cast_vote(poll["id"], "ghost", option_id=poll["options"][0]["id"])
    with pytest.raises(NotFoundError):
        await vote_service.cast_vote("missing", participants[0].id, option_id="x")


@pytest.mark.asyncio
async def test_tally_matches_legacy_rows_by_text(participants, open_poll):
    poll = await open_poll()
    await vote_service.cast_vote(poll["id"], participants[0].id, option_id=poll["options"][0]["id"])
    async with get_db() as db:
        db.add(Vote(id=str(uuid.uuid4()), activation_id=poll["id"], participant_id=participants[1].id,
                    option_id=None, option_text="Red"))
        db.add(Vote(id=str(uuid.uuid4()), activation_id=poll["id"], participant_id=participants[2].id,
                    option_id=None, option_text="Purple"))
        await db.commit()

    tally = await vote_service.get_tally(poll["id"])

    assert tally.counts[poll["options"][0]["id"]] == 2
    assert tally.counts_by_text["Red"] == 2
    assert tally.counts_by_text["Purple"] == 1
    assert tally.total == 3


@pytest.mark.asyncio
async def test_transient_failure_is_queued(participants, open_poll, monkeypatch):
    poll = await open_poll()

    async def unavailable(*args, **kwargs):
        raise OperationalError("INSERT", {}, ConnectionError("database unreachable"))

    monkeypatch.setattr(repository, "insert_vote", unavailable)

    result = await vote_service.cast_vote(poll["id"], participants[0].id, option_id=poll["options"][0]["id"])

    assert result.status == "queued"
    queued = await failures()
    assert len(queued) == 1
    assert queued[0].id == result.failure_id
    assert queued[0].retry_count == 0
    assert queued[0].option_text == "Red"
    assert "unreachable" in queued[0].error_message


@pytest.mark.asyncio
async def test_capture_failure_escalates(participants, open_poll, monkeypatch):
    poll = await open_poll()

    async def unavailable(*args, **kwargs):
        raise OperationalError("INSERT", {}, ConnectionError("down"))

    monkeypatch.setattr(repository, "insert_vote", unavailable)
    monkeypatch.setattr(repository, "capture_failure", unavailable)

    with pytest.raises(TransientWriteError):
        await vote_service.cast_vote(poll["id"], participants[0].id, option_id=poll["options"][0]["id"])


@pytest.mark.asyncio
async def test_get_participant_vote(participants, open_poll):
    poll = await open_poll()
    assert await vote_service.get_participant_vote(poll["id"], participants[0].id) is None
    await vote_service.cast_vote(poll["id"], participants[0].id, option_id=poll["options"][0]["id"])
    vote = await vote_service.get_participant_vote(poll["id"], participants[0].id)
    assert vote.option_text == "Red"
