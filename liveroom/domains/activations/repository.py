# liveroom/domains/activations/repository.py
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from liveroom.core.database import get_db
from liveroom.domains.activations.logic import (
    TIMED_KINDS,
    ActivationKind,
    HistoryAction,
    PollState,
    history_entry,
    normalize_options,
)
from liveroom.domains.activations.models import Activation
from liveroom.domains.activations.schemas import TemplateCreate

# content copied verbatim from a template into its live copy
CONTENT_FIELDS = (
    "kind",
    "title",
    "description",
    "question",
    "correct_answer",
    "exact_answer",
    "time_limit",
    "media_type",
    "media_url",
    "poll_display_type",
    "poll_result_format",
    "option_colors",
    "show_answers",
)


async def get_activation(db: AsyncSession, activation_id: str) -> Optional[Activation]:
    result = await db.execute(
        select(Activation)
        .filter(Activation.id == activation_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def create_template(data: TemplateCreate) -> Activation:
    async with get_db() as db:
        template = Activation(
            id=str(uuid.uuid4()),
            room_id=data.room_id,
            kind=data.kind.value,
            is_template=True,
            active=False,
            poll_state=None,
            title=data.title,
            description=data.description,
            question=data.question,
            options=normalize_options([o.model_dump() for o in data.options]),
            correct_answer=data.correct_answer,
            exact_answer=data.exact_answer,
            time_limit=data.time_limit,
            media_type=data.media_type,
            media_url=data.media_url,
            poll_display_type=data.poll_display_type,
            poll_result_format=data.poll_result_format,
            option_colors=data.option_colors,
            show_answers=data.show_answers,
            history=[],
        )
        db.add(template)
        await db.commit()
        return template


def build_live_copy(template: Activation, room_id: str) -> Activation:
    live = Activation(
        id=str(uuid.uuid4()),
        room_id=room_id,
        parent_id=template.id,
        is_template=False,
        active=False,
        options=normalize_options(template.options),
        history=[],
    )
    for field in CONTENT_FIELDS:
        setattr(live, field, getattr(template, field))

    if live.kind == ActivationKind.POLL.value:
        live.poll_state = PollState.PENDING.value
    if ActivationKind(live.kind) in TIMED_KINDS and (live.time_limit or 0) > 0:
        live.timer_started_at = datetime.now(timezone.utc)
    return live


async def compare_and_set_poll_state(
        db: AsyncSession,
        activation_id: str,
        expected: PollState,
        target: PollState,
) -> int:
    result = await db.execute(
        update(Activation)
        .where(
            and_(
                Activation.id == activation_id,
                Activation.kind == ActivationKind.POLL.value,
                Activation.is_template == False,  # noqa: E712
                Activation.poll_state == expected.value,
            )
        )
        .values(poll_state=target.value, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def append_history(db: AsyncSession, activation_id: str, action: HistoryAction,
                         actor: Optional[str] = None) -> Activation:
    activation = await get_activation(db, activation_id)
    activation.history = [*(activation.history or []), history_entry(action, actor)]
    await db.flush()
    return activation


async def release_activation(db: AsyncSession, activation_id: str) -> int:
    """Disarm only if currently armed."""
    result = await db.execute(
        update(Activation)
        .where(and_(Activation.id == activation_id, Activation.active == True))  # noqa: E712
        .values(active=False, last_deactivated=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def delete_activation_row(db: AsyncSession, activation_id: str) -> int:
    result = await db.execute(
        delete(Activation)
        .where(Activation.id == activation_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def list_templates(room_id: Optional[str] = None) -> List[Activation]:
    async with get_db() as db:
        query = select(Activation).filter(Activation.is_template == True)  # noqa: E712
        if room_id:
            query = query.filter(or_(Activation.room_id == room_id, Activation.room_id.is_(None)))
        result = await db.execute(query.order_by(Activation.created_at))
        return list(result.scalars().all())


async def list_live(room_id: str) -> List[Activation]:
    async with get_db() as db:
        result = await db.execute(
            select(Activation)
            .filter(and_(Activation.room_id == room_id, Activation.is_template == False))  # noqa: E712
            .order_by(Activation.created_at)
        )
        return list(result.scalars().all())
