# liveroom/domains/votes/service.py
import asyncio
from typing import List, Optional, Tuple

from sqlalchemy.exc import InterfaceError, OperationalError

from liveroom.core.config import settings
from liveroom.core.database import get_db
from liveroom.core.notifications import notifier
from liveroom.domains.activations.logic import ActivationKind, PollState
from liveroom.domains.votes import repository
from liveroom.domains.votes.schemas import (
    RetrySummary,
    Tally,
    VoteFailureOut,
    VoteOut,
    VoteResult,
)
from liveroom.shared.exceptions import (
    ContentValidationError,
    NotFoundError,
    TransientWriteError,
    VotingWindowError,
)
from liveroom.shared.schemas.events import (
    PollTallyChanged,
    VoteRetryExhausted,
    activation_channel,
    room_channel,
)
from liveroom.shared.utils.logger import get_logger

logger = get_logger(__name__)

TRANSIENT_ERRORS = (OperationalError, InterfaceError, ConnectionError, asyncio.TimeoutError)

REPLAY_STATES = (PollState.VOTING, PollState.CLOSED)


def resolve_option(options: list, option_id: Optional[str], option_text: Optional[str]) -> Tuple[str, str]:
    """Map the submitted choice onto one of the poll's options."""
    for option in options or []:
        if option_id and option.get("id") == option_id:
            return option["id"], option.get("text", "")
    if not option_id and option_text:
        wanted = option_text.strip()
        for option in options or []:
            if option.get("text", "").strip() == wanted:
                return option["id"], option.get("text", "")
    raise ContentValidationError("Selected option is not part of this poll")


class VoteService:
    async def cast_vote(
            self,
            activation_id: str,
            participant_id: str,
            option_id: Optional[str] = None,
            option_text: Optional[str] = None,
    ) -> VoteResult:
        async with get_db() as db:
            activation = await repository.get_activation(db, activation_id)
            if not activation or activation.is_template:
                raise NotFoundError(f"Poll {activation_id} not found")
            if activation.kind != ActivationKind.POLL.value:
                raise ContentValidationError("Votes are only accepted for polls")
            room_id = activation.room_id
            option_id, option_text = resolve_option(activation.options, option_id, option_text)

        try:
            return await self._write_vote(room_id, activation_id, participant_id, option_id, option_text)
        except TRANSIENT_ERRORS as e:
            logger.warning(f"Vote write for poll {activation_id} failed, queueing for retry: {e}")
            return await self._queue_vote(room_id, activation_id, participant_id, option_id, option_text, e)

    async def _write_vote(self, room_id, activation_id, participant_id, option_id, option_text) -> VoteResult:
        async with get_db() as db:
            inserted = await repository.insert_vote(db, activation_id, participant_id, option_id, option_text)
            if inserted:
                await db.commit()
                vote = await repository.get_vote(db, activation_id, participant_id)
                activation = await repository.get_activation(db, activation_id)
                tally = await repository.compute_tally(db, activation)
            else:
                existing = await repository.get_vote(db, activation_id, participant_id)
                if existing:
                    logger.info(f"Duplicate vote from {participant_id} on poll {activation_id}")
                    return VoteResult(
                        status="duplicate",
                        vote=VoteOut.model_validate(existing),
                        tally=await repository.compute_tally(
                            db, await repository.get_activation(db, activation_id)
                        ),
                    )
                await self._explain_rejection(db, activation_id, participant_id, room_id)

        logger.info(f"Vote recorded: poll={activation_id} participant={participant_id} option={option_id}")
        await self.publish_tally(room_id, tally)
        return VoteResult(status="recorded", vote=VoteOut.model_validate(vote), tally=tally)

    async def _explain_rejection(self, db, activation_id, participant_id, room_id):
        activation = await repository.get_activation(db, activation_id)
        if activation is None:
            raise NotFoundError(f"Poll {activation_id} not found")
        if not await repository.participant_in_room(db, participant_id, room_id):
            raise NotFoundError(f"Participant {participant_id} is not in room {room_id}")
        # the poll may have opened after the insert was refused
        raise VotingWindowError(f"Poll was not accepting votes (now {activation.poll_state})")

    async def _queue_vote(self, room_id, activation_id, participant_id, option_id, option_text, error) -> VoteResult:
        try:
            failure = await repository.capture_failure(
                room_id, activation_id, participant_id, option_id, option_text, str(error)
            )
        except Exception as e:
            logger.error(f"Could not queue failed vote for poll {activation_id}: {e}")
            raise TransientWriteError("Vote could not be stored, please try again")
        return VoteResult(status="queued", failure_id=failure.id)

    async def get_tally(self, activation_id: str) -> Tally:
        async with get_db() as db:
            activation = await repository.get_activation(db, activation_id)
            if not activation:
                raise NotFoundError(f"Poll {activation_id} not found")
            return await repository.compute_tally(db, activation)

    async def get_participant_vote(self, activation_id: str, participant_id: str) -> Optional[VoteOut]:
        async with get_db() as db:
            vote = await repository.get_vote(db, activation_id, participant_id)
            return VoteOut.model_validate(vote) if vote else None

    async def publish_tally(self, room_id: str, tally: Tally):
        await notifier.publish(
            activation_channel(tally.activation_id),
            PollTallyChanged(
                room_id=room_id,
                activation_id=tally.activation_id,
                counts=tally.counts,
                counts_by_text=tally.counts_by_text,
                total=tally.total,
            ),
        )

    async def retry_failed_votes(self) -> RetrySummary:
        """One sweep over queued vote writes. Safe to run concurrently with itself."""
        max_attempts = settings.VOTE_RETRY_MAX_ATTEMPTS
        candidates = await repository.select_retryable(max_attempts, settings.VOTE_RETRY_BATCH_SIZE)
        summary = RetrySummary(selected=len(candidates))

        for failure in candidates:
            if not await repository.claim_failure(failure.id, failure.retry_count):
                summary.skipped += 1
                continue
            attempt = failure.retry_count + 1
            try:
                outcome = await self._replay(failure)
            except Exception as e:
                outcome = None
                error = str(e)
            else:
                error = "Poll is not accepting votes" if outcome == "refused" else None

            if outcome in ("recorded", "duplicate"):
                summary.recorded += 1
            elif outcome == "discarded":
                summary.discarded += 1
            else:
                summary.failed += 1
                await repository.record_retry_error(failure.id, error)
                if attempt >= max_attempts:
                    summary.exhausted += 1
                    logger.warning(
                        f"Vote write {failure.id} for poll {failure.activation_id} abandoned "
                        f"after {attempt} retries: {error}"
                    )
                    await notifier.publish(
                        room_channel(failure.room_id),
                        VoteRetryExhausted(
                            room_id=failure.room_id,
                            activation_id=failure.activation_id,
                            participant_id=failure.participant_id,
                            failure_id=failure.id,
                            error=error,
                        ),
                    )
                else:
                    logger.info(f"Vote write {failure.id} retry {attempt} failed: {error}")

        if summary.selected:
            logger.info(f"Vote retry sweep finished: {summary.model_dump()}")
        return summary

    async def _replay(self, failure) -> str:
        async with get_db() as db:
            activation = await repository.get_activation(db, failure.activation_id)
            if activation is None or not await repository.participant_in_room(
                db, failure.participant_id, failure.room_id
            ):
                await repository.delete_failure(db, failure.id)
                await db.commit()
                logger.info(f"Discarded vote write {failure.id}; poll or participant no longer exists")
                return "discarded"

            inserted = await repository.insert_vote(
                db,
                failure.activation_id,
                failure.participant_id,
                failure.option_id,
                failure.option_text,
                accepted_states=REPLAY_STATES,
            )
            if not inserted:
                if not await repository.get_vote(db, failure.activation_id, failure.participant_id):
                    return "refused"
                outcome = "duplicate"
            else:
                outcome = "recorded"
            await repository.delete_failure(db, failure.id)
            await db.commit()
            tally = await repository.compute_tally(db, activation)

        logger.info(f"Replayed vote write {failure.id} ({outcome})")
        if outcome == "recorded":
            await self.publish_tally(failure.room_id, tally)
        return outcome

    async def list_failures(self, room_id: Optional[str] = None, limit: int = 100) -> List[VoteFailureOut]:
        failures = await repository.list_failures(room_id, limit)
        max_attempts = settings.VOTE_RETRY_MAX_ATTEMPTS
        return [
            VoteFailureOut.model_validate(f).model_copy(update={"exhausted": f.retry_count >= max_attempts})
            for f in failures
        ]


vote_service = VoteService()
