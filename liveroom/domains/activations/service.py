# liveroom/domains/activations/service.py
"""
Activation State Machine.

Launching a template is one transaction: the live copy is inserted and the room's
session repointed at it before anything is committed or published.
"""
from typing import List, Optional

from liveroom.core.database import get_db
from liveroom.core.notifications import notifier
from liveroom.domains.activations import repository
from liveroom.domains.activations.logic import (
    ActivationKind,
    HistoryAction,
    PollState,
    required_predecessor,
    resolve_failed_transition,
    validate_content,
)
from liveroom.domains.activations.schemas import TemplateCreate, serialize_activation
from liveroom.domains.rooms.repository import require_active_room
from liveroom.domains.sessions import repository as session_repository
from liveroom.domains.sessions.schemas import SessionState
from liveroom.domains.sessions.service import publish_activation, publish_session
from liveroom.shared.exceptions import InvalidTransitionError, NotFoundError
from liveroom.shared.schemas.events import ActivationDeleted, room_channel
from liveroom.shared.utils.logger import get_logger

logger = get_logger(__name__)


class ActivationService:
    async def create_template(self, data: TemplateCreate) -> dict:
        template = await repository.create_template(data)
        logger.info(f"Template {template.id} ({template.kind}) created")
        return serialize_activation(template)

    async def get(self, activation_id: str) -> dict:
        async with get_db() as db:
            activation = await repository.get_activation(db, activation_id)
            if not activation:
                raise NotFoundError(f"Activation {activation_id} not found")
            return serialize_activation(activation)

    async def list_templates(self, room_id: Optional[str] = None, include_answers: bool = True) -> List[dict]:
        return [serialize_activation(a, include_answers) for a in await repository.list_templates(room_id)]

    async def list_live(self, room_id: str, include_answers: bool = True) -> List[dict]:
        return [serialize_activation(a, include_answers) for a in await repository.list_live(room_id)]

    async def launch(self, template_id: str, room_id: str, actor: Optional[str] = None) -> dict:
        async with get_db() as db:
            template = await repository.get_activation(db, template_id)
            if not template or not template.is_template:
                raise NotFoundError(f"Template {template_id} not found")
            if template.room_id and template.room_id != room_id:
                raise NotFoundError(f"Template {template_id} does not belong to room {room_id}")

            validate_content(template.kind, template.options, template.correct_answer, template.exact_answer)
            await require_active_room(db, room_id)

            live = repository.build_live_copy(template, room_id)
            db.add(live)
            await db.flush()

            game_session, changed = await session_repository.arm_in_session(db, room_id, live, actor=actor)
            await db.commit()

            # the fresh copy is always activated here, so it is the last changed row
            payloads = [serialize_activation(a) for a in changed]
            payload = payloads[-1]
            state = SessionState(
                room_id=room_id,
                current_activation_id=game_session.current_activation_id,
                is_live=game_session.is_live,
            )

        logger.info(f"Launched template {template_id} into room {room_id} as {live.id}")
        for changed_payload in payloads:
            await publish_activation(room_id, changed_payload)
        await publish_session(state)
        return payload

    async def transition_poll(self, activation_id: str, to: PollState, actor: Optional[str] = None) -> dict:
        """Compare-and-swap on poll_state; a repeated request for the current state is a no-op."""
        expected = required_predecessor(to)

        async with get_db() as db:
            changed = await repository.compare_and_set_poll_state(db, activation_id, expected, to)
            if changed:
                activation = await repository.append_history(db, activation_id, HistoryAction(to.value), actor)
                await db.commit()
                payload = serialize_activation(activation)
            else:
                activation = await repository.get_activation(db, activation_id)
                if not activation or activation.is_template:
                    raise NotFoundError(f"Poll {activation_id} not found")
                if activation.kind != ActivationKind.POLL.value:
                    raise InvalidTransitionError("Only polls have a voting state")
                resolve_failed_transition(activation.poll_state, to)
                return serialize_activation(activation)

        logger.info(f"Poll {activation_id} moved {expected.value} -> {to.value}")
        await publish_activation(activation.room_id, payload)
        return payload

    async def deactivate(self, activation_id: str, actor: Optional[str] = None) -> dict:
        async with get_db() as db:
            activation = await repository.get_activation(db, activation_id)
            if not activation or activation.is_template:
                raise NotFoundError(f"Activation {activation_id} not found")
            room_id = activation.room_id

            released = await repository.release_activation(db, activation_id)
            if not released:
                return serialize_activation(activation)

            activation = await repository.append_history(db, activation_id, HistoryAction.DEACTIVATED, actor)
            cleared = await session_repository.clear_session_if_current(db, room_id, activation_id)
            await db.commit()
            payload = serialize_activation(activation)
            game_session = await session_repository.get_session(db, room_id) if cleared else None

        logger.info(f"Activation {activation_id} deactivated in room {room_id}")
        await publish_activation(room_id, payload)
        if game_session is not None:
            await publish_session(
                SessionState(room_id=room_id, current_activation_id=None, is_live=game_session.is_live)
            )
        return payload

    async def delete_activation(self, activation_id: str) -> None:
        async with get_db() as db:
            activation = await repository.get_activation(db, activation_id)
            if not activation:
                raise NotFoundError(f"Activation {activation_id} not found")
            room_id = activation.room_id
            is_template = activation.is_template

            cleared = 0
            if not is_template and room_id:
                cleared = await session_repository.clear_session_if_current(db, room_id, activation_id)
            await repository.delete_activation_row(db, activation_id)
            await db.commit()
            game_session = await session_repository.get_session(db, room_id) if cleared else None

        logger.info(f"Activation {activation_id} deleted")
        if is_template or not room_id:
            return
        await notifier.publish(
            room_channel(room_id), ActivationDeleted(room_id=room_id, activation_id=activation_id)
        )
        if game_session is not None:
            await publish_session(
                SessionState(room_id=room_id, current_activation_id=None, is_live=game_session.is_live)
            )


activation_service = ActivationService()
