# liveroom/domains/rooms/repository.py
import uuid
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from liveroom.core.database import get_db
from liveroom.domains.rooms.models import Participant, Room
from liveroom.shared.exceptions import NotFoundError, RoomInactiveError
from liveroom.shared.utils.logger import get_logger

logger = get_logger(__name__)


async def get_room(db: AsyncSession, room_id: str) -> Optional[Room]:
    result = await db.execute(select(Room).filter(Room.id == room_id))
    return result.scalar_one_or_none()


async def get_room_by_code(db: AsyncSession, code: str) -> Optional[Room]:
    result = await db.execute(select(Room).filter(Room.code == code.strip().upper()))
    return result.scalar_one_or_none()


async def require_active_room(db: AsyncSession, room_id: str) -> Room:
    room = await get_room(db, room_id)
    if not room:
        raise NotFoundError(f"Room {room_id} not found")
    if not room.is_active:
        raise RoomInactiveError(f"Room {room_id} is not active")
    return room


async def create_participant(room_id: str, name: str) -> Participant:
    async with get_db() as db:
        await require_active_room(db, room_id)
        participant = Participant(
            id=str(uuid.uuid4()),
            room_id=room_id,
            name=name.strip(),
            score=0.0,
            total_points=0.0,
            correct_answers=0,
            total_answers=0,
            average_response_ms=0.0,
        )
        db.add(participant)
        await db.commit()
        logger.info(f"Participant {participant.id} joined room {room_id}")
        return participant


async def get_participant(participant_id: str) -> Optional[Participant]:
    async with get_db() as db:
        result = await db.execute(select(Participant).filter(Participant.id == participant_id))
        return result.scalar_one_or_none()


async def list_participants(room_id: str) -> List[Participant]:
    """Participants in join order; ranking relies on this order for ties."""
    async with get_db() as db:
        result = await db.execute(
            select(Participant)
            .filter(Participant.room_id == room_id)
            .order_by(Participant.created_at, Participant.id)
        )
        return list(result.scalars().all())


async def zero_scores(db: AsyncSession, room_id: str) -> int:
    result = await db.execute(
        update(Participant)
        .where(Participant.room_id == room_id)
        .values(
            score=0.0,
            total_points=0.0,
            correct_answers=0,
            total_answers=0,
            average_response_ms=0.0,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def delete_participants(db: AsyncSession, room_id: str) -> int:
    result = await db.execute(
        delete(Participant)
        .where(Participant.room_id == room_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def apply_answer_score(
        db: AsyncSession,
        participant_id: str,
        points: float,
        is_correct: bool,
        time_taken_ms: int,
) -> Optional[Participant]:
    """Single UPDATE so concurrent scoring events never lose an increment."""
    await db.execute(
        update(Participant)
        .where(Participant.id == participant_id)
        .values(
            score=Participant.score + points,
            total_points=Participant.total_points + points,
            correct_answers=Participant.correct_answers + (1 if is_correct else 0),
            average_response_ms=(
                (Participant.average_response_ms * Participant.total_answers + time_taken_ms)
                / (Participant.total_answers + 1)
            ),
            total_answers=Participant.total_answers + 1,
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(
        select(Participant)
        .filter(Participant.id == participant_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def create_room(name: str, code: str, customer_id: Optional[str] = None,
                      is_active: bool = True) -> Room:
    """Used by seeding scripts; rooms are otherwise managed outside this service."""
    async with get_db() as db:
        room = Room(
            id=str(uuid.uuid4()),
            customer_id=customer_id,
            name=name,
            code=code.strip().upper(),
            is_active=is_active,
        )
        db.add(room)
        await db.commit()
        return room
