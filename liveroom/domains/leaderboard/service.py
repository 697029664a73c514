# liveroom/domains/leaderboard/service.py
import json
from liveroom.core.config import settings
from liveroom.core.notifications import notifier
from liveroom.core.redis import RedisManager
from liveroom.domains.leaderboard.logic import Ranking, RankingEngine
from liveroom.domains.rooms.repository import list_participants
from liveroom.shared.schemas.events import LeaderboardUpdated, room_channel
from liveroom.shared.utils.logger import get_logger

logger = get_logger(__name__)


class LeaderboardService:
    """Ranks a room's participants against the last published ranking kept in Redis."""

    key_prefix = "leaderboard"

    def _key(self, room_id: str) -> str:
        return f"{self.key_prefix}:{room_id}"

    async def _load_engine(self, room_id: str) -> RankingEngine:
        raw = await RedisManager.get_client().get(self._key(room_id))
        if not raw:
            return RankingEngine()
        try:
            snapshot = json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding unreadable leaderboard snapshot for room {room_id}")
            return RankingEngine()
        return RankingEngine(snapshot.get("ranks"), snapshot.get("leader"))

    async def _save_engine(self, room_id: str, engine: RankingEngine):
        snapshot = {"ranks": engine.previous_ranks, "leader": engine.previous_leader}
        await RedisManager.get_client().set(
            self._key(room_id),
            json.dumps(snapshot),
            ex=settings.LEADERBOARD_SNAPSHOT_TTL_SECONDS,
        )

    async def peek(self, room_id: str) -> Ranking:
        """Rank without advancing the stored snapshot."""
        engine = await self._load_engine(room_id)
        return engine.rank(await list_participants(room_id))

    async def refresh(self, room_id: str, publish: bool = True) -> Ranking:
        engine = await self._load_engine(room_id)
        ranking = engine.rank(await list_participants(room_id))
        await self._save_engine(room_id, engine)

        if ranking.leader_changed:
            logger.info(f"New leader in room {room_id}: {ranking.leader.participant_id}")
        if publish:
            await notifier.publish(
                room_channel(room_id),
                LeaderboardUpdated(**ranking_payload(room_id, ranking)),
            )
        return ranking

    async def reset(self, room_id: str):
        await RedisManager.get_client().delete(self._key(room_id))


leaderboard_service = LeaderboardService()


def ranking_payload(room_id: str, ranking: Ranking) -> dict:
    return {
        "room_id": room_id,
        "entries": [e.to_dict() for e in ranking.entries],
        "leader_id": ranking.leader.participant_id if ranking.leader else None,
        "leader_changed": ranking.leader_changed,
    }
