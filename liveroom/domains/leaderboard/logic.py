# liveroom/domains/leaderboard/logic.py
"""Leaderboard ranking: positional ranks, rank deltas and leader-change detection."""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional


@dataclass
class RankedParticipant:
    participant_id: str
    name: str
    score: float
    rank: int
    # previous_rank - rank; positive means moved up, None on first appearance
    delta: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "participant_id": self.participant_id,
            "name": self.name,
            "score": self.score,
            "rank": self.rank,
            "delta": self.delta,
        }


@dataclass
class Ranking:
    entries: List[RankedParticipant] = field(default_factory=list)
    leader_changed: bool = False

    @property
    def leader(self) -> Optional[RankedParticipant]:
        return self.entries[0] if self.entries else None


class RankingEngine:
    """
    Keeps the previous ranking between calls.

    Ties keep input order and still get sequential ranks. A leader change fires only
    when the top identity changes and the new leader's score is strictly greater than
    the previous leader's score.
    """

    def __init__(self, previous_ranks: Optional[Dict[str, int]] = None,
                 previous_leader: Optional[dict] = None):
        self.previous_ranks: Dict[str, int] = dict(previous_ranks or {})
        # {"participant_id": ..., "score": ...}
        self.previous_leader: Optional[dict] = previous_leader

    def rank(self, participants: Iterable) -> Ranking:
        items = [self._as_tuple(p) for p in participants]
        # sorted() is stable, so equal scores keep their input order
        ordered = sorted(items, key=lambda item: item[2], reverse=True)

        entries = []
        for position, (participant_id, name, score) in enumerate(ordered, start=1):
            previous = self.previous_ranks.get(participant_id)
            entries.append(
                RankedParticipant(
                    participant_id=participant_id,
                    name=name,
                    score=score,
                    rank=position,
                    delta=None if previous is None else previous - position,
                )
            )

        ranking = Ranking(entries=entries, leader_changed=self._leader_changed(entries))
        self.previous_ranks = {e.participant_id: e.rank for e in entries}
        if entries:
            self.previous_leader = {"participant_id": entries[0].participant_id, "score": entries[0].score}
        else:
            self.previous_leader = None
        return ranking

    def _leader_changed(self, entries: List[RankedParticipant]) -> bool:
        if not entries or not self.previous_leader:
            return False
        top = entries[0]
        return (
            top.participant_id != self.previous_leader["participant_id"]
            and top.score > self.previous_leader["score"]
        )

    @staticmethod
    def _as_tuple(participant):
        if isinstance(participant, dict):
            return str(participant["id"]), participant.get("name", ""), float(participant.get("score") or 0)
        return str(participant.id), participant.name, float(participant.score or 0)
