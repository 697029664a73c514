# liveroom/domains/rooms/service.py
from typing import List

from liveroom.core.database import get_db
from liveroom.core.notifications import notifier
from liveroom.domains.leaderboard.service import leaderboard_service
from liveroom.domains.rooms import repository
from liveroom.domains.rooms.schemas import ParticipantOut, ResetMode, RoomOut
from liveroom.domains.sessions import repository as session_repository
from liveroom.shared.exceptions import NotFoundError
from liveroom.shared.schemas.events import ParticipantJoined, RoomReset, room_channel
from liveroom.shared.utils.logger import get_logger

logger = get_logger(__name__)


class RoomService:
    async def get_room(self, room_id: str) -> RoomOut:
        async with get_db() as db:
            room = await repository.get_room(db, room_id)
            if not room:
                raise NotFoundError(f"Room {room_id} not found")
            return RoomOut.model_validate(room)

    async def join(self, code: str, name: str) -> ParticipantOut:
        async with get_db() as db:
            room = await repository.get_room_by_code(db, code)
            if not room:
                raise NotFoundError(f"No room with code {code}")
            room_id = room.id

        participant = await repository.create_participant(room_id, name)
        await notifier.publish(
            room_channel(room_id),
            ParticipantJoined(room_id=room_id, participant_id=participant.id, name=participant.name),
        )
        return ParticipantOut.model_validate(participant)

    async def list_participants(self, room_id: str) -> List[ParticipantOut]:
        return [ParticipantOut.model_validate(p) for p in await repository.list_participants(room_id)]

    async def reset(self, room_id: str, mode: ResetMode) -> dict:
        """Zero or delete participants and clear the live activation in one transaction."""
        async with get_db() as db:
            if not await repository.get_room(db, room_id):
                raise NotFoundError(f"Room {room_id} not found")

            if mode == ResetMode.EVERYTHING:
                affected = await repository.delete_participants(db, room_id)
            else:
                affected = await repository.zero_scores(db, room_id)
            await session_repository.clear_session(db, room_id)
            await db.commit()

            game_session = await session_repository.get_session(db, room_id)
            is_live = game_session.is_live if game_session else False

        logger.info(f"Room {room_id} reset ({mode.value}), {affected} participants affected")
        try:
            await leaderboard_service.reset(room_id)
        except Exception as e:
            logger.error(f"Could not clear leaderboard snapshot for room {room_id}: {e}")

        await notifier.publish(
            room_channel(room_id),
            RoomReset(room_id=room_id, mode=mode.value, current_activation_id=None, is_live=is_live),
        )
        return {"room_id": room_id, "mode": mode.value, "participants_affected": affected}


room_service = RoomService()
