# liveroom/domains/sessions/repository.py
"""
Game session persistence.

The session row doubles as the per-room serialization point: every write path that
changes which activation is live starts with the ON CONFLICT upsert below, which
row-locks the session until the surrounding transaction commits.
"""
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from liveroom.core.database import upsert_insert
from liveroom.domains.activations.logic import ActivationKind, HistoryAction, PollState, history_entry
from liveroom.domains.activations.models import Activation
from liveroom.domains.sessions.models import GameSession
from liveroom.shared.utils.logger import get_logger

logger = get_logger(__name__)


async def get_session(db: AsyncSession, room_id: str) -> Optional[GameSession]:
    result = await db.execute(
        select(GameSession)
        .filter(GameSession.room_id == room_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def upsert_session(db: AsyncSession, room_id: str, activation_id: Optional[str]) -> None:
    """Point the room's session at `activation_id`, creating the row on first use."""
    now = datetime.now(timezone.utc)
    stmt = upsert_insert(db, GameSession).values(
        id=str(uuid.uuid4()),
        room_id=room_id,
        current_activation_id=activation_id,
        is_live=True,
        created_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[GameSession.room_id],
        set_={
            "current_activation_id": activation_id,
            "is_live": True,
            "updated_at": now,
        },
    )
    await db.execute(stmt)


async def _deactivate_others(
        db: AsyncSession, room_id: str, keep_id: str, actor: Optional[str]
) -> List[Activation]:
    result = await db.execute(
        select(Activation).filter(
            and_(
                Activation.room_id == room_id,
                Activation.is_template == False,  # noqa: E712
                Activation.active == True,  # noqa: E712
                Activation.id != keep_id,
            )
        )
    )
    now = datetime.now(timezone.utc)
    released = list(result.scalars().all())
    for other in released:
        other.active = False
        other.last_deactivated = now
        other.history = [*(other.history or []), history_entry(HistoryAction.DEACTIVATED, actor)]
        logger.info(f"Deactivated activation {other.id} in room {room_id}")
    # the partial unique index needs the old row released before the new one is armed
    await db.flush()
    return released


async def arm_in_session(
        db: AsyncSession,
        room_id: str,
        activation: Activation,
        reset_poll_state: bool = True,
        actor: Optional[str] = None,
) -> Tuple[GameSession, List[Activation]]:
    """
    Make `activation` the room's live activation inside the caller's transaction.

    Returns the session and every activation whose state changed, released rows
    first. The caller commits and publishes.
    """
    await upsert_session(db, room_id, activation.id)
    changed = await _deactivate_others(db, room_id, activation.id, actor)

    history = list(activation.history or [])
    if not activation.active:
        activation.active = True
        activation.last_activated = datetime.now(timezone.utc)
        history.append(history_entry(HistoryAction.ACTIVATED, actor))

    if (
            reset_poll_state
            and activation.kind == ActivationKind.POLL.value
            and activation.poll_state != PollState.PENDING.value
    ):
        activation.poll_state = PollState.PENDING.value
        history.append(history_entry(HistoryAction.PENDING, actor))

    if len(history) != len(activation.history or []):
        activation.history = history
        changed.append(activation)
    await db.flush()
    return await get_session(db, room_id), changed


async def clear_session(db: AsyncSession, room_id: str) -> int:
    """Drop the current activation; the row and is_live stay as they are."""
    result = await db.execute(
        update(GameSession)
        .where(GameSession.room_id == room_id)
        .values(current_activation_id=None, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def clear_session_if_current(db: AsyncSession, room_id: str, activation_id: str) -> int:
    """Clear only while the session still points at `activation_id`."""
    result = await db.execute(
        update(GameSession)
        .where(
            and_(
                GameSession.room_id == room_id,
                GameSession.current_activation_id == activation_id,
            )
        )
        .values(current_activation_id=None, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
