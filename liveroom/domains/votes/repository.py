# liveroom/domains/votes/repository.py
"""
Vote ledger persistence.

Votes are written with a single INSERT ... SELECT that only yields a row while the poll
is open and the participant belongs to the poll's room, guarded by ON CONFLICT on
(activation_id, participant_id). No read-then-write sequence decides whether a vote is
accepted.
"""
import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import DateTime, String, and_, delete, func, literal, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from liveroom.core.database import get_db, upsert_insert
from liveroom.domains.activations.logic import ActivationKind, PollState
from liveroom.domains.activations.models import Activation
from liveroom.domains.rooms.models import Participant
from liveroom.domains.votes.models import Vote, VoteWriteFailure
from liveroom.domains.votes.schemas import Tally
from liveroom.shared.utils.logger import get_logger

logger = get_logger(__name__)

_VOTE_COLUMNS = ["id", "activation_id", "participant_id", "option_id", "option_text", "created_at"]


async def get_activation(db: AsyncSession, activation_id: str) -> Optional[Activation]:
    result = await db.execute(
        select(Activation)
        .filter(Activation.id == activation_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_vote(db: AsyncSession, activation_id: str, participant_id: str) -> Optional[Vote]:
    result = await db.execute(
        select(Vote).filter(
            and_(Vote.activation_id == activation_id, Vote.participant_id == participant_id)
        )
    )
    return result.scalar_one_or_none()


async def insert_vote(
        db: AsyncSession,
        activation_id: str,
        participant_id: str,
        option_id: Optional[str],
        option_text: Optional[str],
        accepted_states: Iterable[PollState] = (PollState.VOTING,),
) -> int:
    """Returns 1 when a new vote row was written, 0 otherwise."""
    source = (
        select(
            literal(str(uuid.uuid4()), String),
            Activation.id,
            Participant.id,
            literal(option_id, String),
            literal(option_text, String),
            literal(datetime.now(timezone.utc), DateTime(timezone=True)),
        )
        .select_from(Activation)
        .join(Participant, Participant.room_id == Activation.room_id)
        .where(
            and_(
                Activation.id == activation_id,
                Activation.kind == ActivationKind.POLL.value,
                Activation.is_template == False,  # noqa: E712
                Activation.poll_state.in_([s.value for s in accepted_states]),
                Participant.id == participant_id,
            )
        )
    )
    stmt = (
        upsert_insert(db, Vote)
        .from_select(_VOTE_COLUMNS, source, include_defaults=False)
        .on_conflict_do_nothing(index_elements=[Vote.activation_id, Vote.participant_id])
    )
    result = await db.execute(stmt)
    return result.rowcount


async def participant_in_room(db: AsyncSession, participant_id: str, room_id: str) -> bool:
    result = await db.execute(
        select(Participant.id).filter(and_(Participant.id == participant_id, Participant.room_id == room_id))
    )
    return result.scalar_one_or_none() is not None


async def compute_tally(db: AsyncSession, activation: Activation) -> Tally:
    """Group the stored votes; legacy rows without an option id are matched by text."""
    options = activation.options or []
    by_id = {o["id"]: o.get("text", "") for o in options if o.get("id")}
    id_by_text = {o.get("text", "").strip(): o["id"] for o in options if o.get("id")}

    result = await db.execute(
        select(Vote.option_id, Vote.option_text, func.count(Vote.id))
        .filter(Vote.activation_id == activation.id)
        .group_by(Vote.option_id, Vote.option_text)
    )

    counts = {option_id: 0 for option_id in by_id}
    counts_by_text = {text: 0 for text in by_id.values()}
    total = 0
    for option_id, option_text, count in result.all():
        total += count
        resolved = option_id if option_id in by_id else id_by_text.get((option_text or "").strip())
        if resolved:
            counts[resolved] = counts.get(resolved, 0) + count
            label = by_id[resolved]
        else:
            label = option_text or option_id or ""
        counts_by_text[label] = counts_by_text.get(label, 0) + count

    return Tally(activation_id=activation.id, counts=counts, counts_by_text=counts_by_text, total=total)


# write failures

async def capture_failure(
        room_id: str,
        activation_id: str,
        participant_id: str,
        option_id: Optional[str],
        option_text: Optional[str],
        error_message: str,
) -> VoteWriteFailure:
    async with get_db() as db:
        failure = VoteWriteFailure(
            id=str(uuid.uuid4()),
            room_id=room_id,
            activation_id=activation_id,
            participant_id=participant_id,
            option_id=option_id,
            option_text=option_text,
            error_message=error_message,
            retry_count=0,
        )
        db.add(failure)
        await db.commit()
        return failure


async def select_retryable(max_attempts: int, batch_size: int) -> List[VoteWriteFailure]:
    async with get_db() as db:
        result = await db.execute(
            select(VoteWriteFailure)
            .filter(VoteWriteFailure.retry_count < max_attempts)
            .order_by(VoteWriteFailure.last_retry, VoteWriteFailure.created_at)
            .limit(batch_size)
        )
        return list(result.scalars().all())


async def claim_failure(failure_id: str, observed_retry_count: int) -> bool:
    """Compare-and-swap on retry_count so two sweeps never replay the same record."""
    async with get_db() as db:
        result = await db.execute(
            update(VoteWriteFailure)
            .where(
                and_(
                    VoteWriteFailure.id == failure_id,
                    VoteWriteFailure.retry_count == observed_retry_count,
                )
            )
            .values(
                retry_count=VoteWriteFailure.retry_count + 1,
                last_retry=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount == 1


async def delete_failure(db: AsyncSession, failure_id: str):
    await db.execute(
        delete(VoteWriteFailure)
        .where(VoteWriteFailure.id == failure_id)
        .execution_options(synchronize_session=False)
    )


async def record_retry_error(failure_id: str, error_message: str):
    async with get_db() as db:
        await db.execute(
            update(VoteWriteFailure)
            .where(VoteWriteFailure.id == failure_id)
            .values(error_message=error_message)
            .execution_options(synchronize_session=False)
        )
        await db.commit()


async def list_failures(
        room_id: Optional[str] = None,
        limit: int = 100,
) -> List[VoteWriteFailure]:
    async with get_db() as db:
        query = select(VoteWriteFailure).order_by(VoteWriteFailure.created_at.desc()).limit(limit)
        if room_id:
            query = query.filter(VoteWriteFailure.room_id == room_id)
        result = await db.execute(query)
        return list(result.scalars().all())
