# liveroom/domains/scoring/service.py
from datetime import datetime, timezone
from typing import Optional

from liveroom.core.database import get_db
from liveroom.core.notifications import notifier
from liveroom.domains.activations.logic import TIMED_KINDS, ActivationKind, is_correct_answer
from liveroom.domains.activations.repository import get_activation
from liveroom.domains.leaderboard.service import leaderboard_service
from liveroom.domains.rooms.repository import apply_answer_score
from liveroom.domains.rooms.models import Participant
from liveroom.domains.scoring import repository
from liveroom.domains.scoring.logic import points_for
from liveroom.domains.scoring.schemas import AnswerOut, AnswerResult
from liveroom.shared.exceptions import ContentValidationError, NotFoundError, VotingWindowError
from liveroom.shared.schemas.events import ParticipantScored, room_channel
from liveroom.shared.utils.logger import get_logger

logger = get_logger(__name__)


def _elapsed_ms(started_at: Optional[datetime]) -> int:
    if not started_at:
        return 0
    if started_at.tzinfo is None:
        started_at = started_at.replace(tzinfo=timezone.utc)
    return max(int((datetime.now(timezone.utc) - started_at).total_seconds() * 1000), 0)


class ScoringService:
    async def submit_answer(
            self,
            activation_id: str,
            participant_id: str,
            answer: str,
            time_taken_ms: Optional[int] = None,
    ) -> AnswerResult:
        async with get_db() as db:
            activation = await get_activation(db, activation_id)
            if not activation or activation.is_template:
                raise NotFoundError(f"Activation {activation_id} not found")
            if ActivationKind(activation.kind) not in TIMED_KINDS:
                raise ContentValidationError("Answers are only accepted for questions")
            if not activation.active:
                raise VotingWindowError("This question is not live")

            participant = await db.get(Participant, participant_id)
            if not participant or participant.room_id != activation.room_id:
                raise NotFoundError(f"Participant {participant_id} not found in this room")

            if time_taken_ms is None:
                time_taken_ms = _elapsed_ms(activation.timer_started_at)
            correct = is_correct_answer(
                activation.kind, activation.correct_answer, activation.exact_answer, answer
            )
            points = points_for(correct, time_taken_ms)

            inserted = await repository.insert_answer(
                db, activation_id, participant_id, answer, correct, points, time_taken_ms
            )
            if not inserted:
                existing = await repository.get_answer(db, activation_id, participant_id)
                logger.info(f"Duplicate answer from {participant_id} on {activation_id}")
                return AnswerResult(status="duplicate", answer=AnswerOut.model_validate(existing))

            participant = await apply_answer_score(db, participant_id, points, correct, time_taken_ms)
            await db.commit()
            stored = await repository.get_answer(db, activation_id, participant_id)
            room_id = activation.room_id

        logger.info(f"Participant {participant_id} scored {points} on {activation_id}")
        await notifier.publish(
            room_channel(room_id),
            ParticipantScored(
                room_id=room_id,
                activation_id=activation_id,
                participant_id=participant_id,
                points=points,
                score=participant.score,
            ),
        )
        try:
            await leaderboard_service.refresh(room_id)
        except Exception as e:
            logger.error(f"Leaderboard refresh failed for room {room_id}: {e}")
        return AnswerResult(status="recorded", answer=AnswerOut.model_validate(stored), score=participant.score)


scoring_service = ScoringService()
