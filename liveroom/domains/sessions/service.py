# liveroom/domains/sessions/service.py
"""
Game Session Coordinator.

One session row per room points at the live activation. Arming and clearing are single
transactions. After commit, arming publishes one `activation:changed` per activation whose
state it changed, then one `session:changed`.
"""
from typing import Optional

from sqlalchemy import select

from liveroom.core.database import get_db
from liveroom.core.notifications import notifier
from liveroom.domains.activations.models import Activation
from liveroom.domains.activations.schemas import redact_answers, serialize_activation
from liveroom.domains.activations.logic import ActivationKind
from liveroom.domains.rooms.repository import require_active_room
from liveroom.domains.sessions import repository
from liveroom.domains.sessions.schemas import RoomState, SessionState
from liveroom.domains.votes import repository as vote_repository
from liveroom.shared.exceptions import InvalidTransitionError, NotFoundError
from liveroom.shared.schemas.events import ActivationChanged, SessionChanged, room_channel
from liveroom.shared.utils.logger import get_logger

logger = get_logger(__name__)


def _state(room_id: str, game_session) -> SessionState:
    if game_session is None:
        return SessionState(room_id=room_id)
    return SessionState(
        room_id=room_id,
        current_activation_id=game_session.current_activation_id,
        is_live=game_session.is_live,
    )


async def publish_session(state: SessionState):
    await notifier.publish(
        room_channel(state.room_id),
        SessionChanged(
            room_id=state.room_id,
            current_activation_id=state.current_activation_id,
            is_live=state.is_live,
        ),
    )


async def publish_activation(room_id: str, payload: dict):
    """Broadcast an activation change; room channels never carry the answer key."""
    await notifier.publish(
        room_channel(room_id),
        ActivationChanged(room_id=room_id, activation=redact_answers(payload)),
    )


class SessionCoordinator:
    async def arm(
            self,
            room_id: str,
            activation_id: str,
            preserve_poll_state: bool = False,
            actor: Optional[str] = None,
    ) -> SessionState:
        """Point the room at an existing live activation."""
        async with get_db() as db:
            await require_active_room(db, room_id)
            result = await db.execute(select(Activation).filter(Activation.id == activation_id))
            activation = result.scalar_one_or_none()
            if not activation or activation.room_id != room_id:
                raise NotFoundError(f"Activation {activation_id} not found in room {room_id}")
            if activation.is_template:
                raise InvalidTransitionError("Templates are never live; launch the template instead")

            game_session, changed = await repository.arm_in_session(
                db, room_id, activation, reset_poll_state=not preserve_poll_state, actor=actor
            )
            await db.commit()
            state = _state(room_id, game_session)
            payloads = [serialize_activation(a) for a in changed]

        logger.info(f"Room {room_id} armed with activation {activation_id}")
        for payload in payloads:
            await publish_activation(room_id, payload)
        await publish_session(state)
        return state

    async def clear(self, room_id: str) -> SessionState:
        async with get_db() as db:
            cleared = await repository.clear_session(db, room_id)
            await db.commit()
            state = _state(room_id, await repository.get_session(db, room_id))

        if cleared:
            logger.info(f"Session cleared for room {room_id}")
            await publish_session(state)
        return state

    async def get(self, room_id: str) -> SessionState:
        async with get_db() as db:
            return _state(room_id, await repository.get_session(db, room_id))

    async def get_room_state(self, room_id: str) -> RoomState:
        """Snapshot used on initial load and after a reconnect."""
        async with get_db() as db:
            game_session = await repository.get_session(db, room_id)
            state = _state(room_id, game_session)
            if not state.current_activation_id:
                return RoomState(session=state)

            result = await db.execute(
                select(Activation).filter(Activation.id == state.current_activation_id)
            )
            activation = result.scalar_one_or_none()
            if activation is None:
                return RoomState(session=state)

            tally = None
            if activation.kind == ActivationKind.POLL.value:
                tally = (await vote_repository.compute_tally(db, activation)).model_dump()
            return RoomState(
                session=state,
                activation=serialize_activation(activation, include_answers=False),
                tally=tally,
            )


session_coordinator = SessionCoordinator()
