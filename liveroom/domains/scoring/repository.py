# liveroom/domains/scoring/repository.py
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from liveroom.core.database import upsert_insert
from liveroom.domains.scoring.models import Answer


async def insert_answer(
        db: AsyncSession,
        activation_id: str,
        participant_id: str,
        answer: str,
        is_correct: bool,
        points: int,
        time_taken_ms: int,
) -> int:
    stmt = (
        upsert_insert(db, Answer)
        .values(
            id=str(uuid.uuid4()),
            activation_id=activation_id,
            participant_id=participant_id,
            answer=answer,
            is_correct=is_correct,
            points=points,
            time_taken_ms=time_taken_ms,
            created_at=datetime.now(timezone.utc),
        )
        .on_conflict_do_nothing(index_elements=[Answer.activation_id, Answer.participant_id])
    )
    result = await db.execute(stmt)
    return result.rowcount


async def get_answer(db: AsyncSession, activation_id: str, participant_id: str) -> Optional[Answer]:
    result = await db.execute(
        select(Answer).filter(
            and_(Answer.activation_id == activation_id, Answer.participant_id == participant_id)
        )
    )
    return result.scalar_one_or_none()
