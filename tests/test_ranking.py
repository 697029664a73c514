from liveroom.domains.leaderboard.logic import RankingEngine


def people(*pairs):
    return [{"id": pid, "name": pid.upper(), "score": score} for pid, score in pairs]


def test_ties_get_sequential_ranks_in_input_order():
    ranking = RankingEngine().rank(people(("a", 50), ("b", 50), ("c", 30)))

    assert [e.participant_id for e in ranking.entries] == ["a", "b", "c"]
    assert [e.rank for e in ranking.entries] == [1, 2, 3]


def test_tie_order_follows_input_not_id():
    ranking = RankingEngine().rank(people(("z", 10), ("a", 10)))
    assert [e.participant_id for e in ranking.entries] == ["z", "a"]


def test_first_ranking_has_no_deltas():
    ranking = RankingEngine().rank(people(("a", 5), ("b", 1)))
    assert all(e.delta is None for e in ranking.entries)
    assert ranking.leader_changed is False


def test_rank_is_idempotent_on_unchanged_input():
    engine = RankingEngine()
    board = people(("a", 30), ("b", 20), ("c", 10))
    first = engine.rank(board)
    second = engine.rank(board)

    assert [(e.participant_id, e.rank) for e in first.entries] == [
        (e.participant_id, e.rank) for e in second.entries
    ]
    assert [e.delta for e in second.entries] == [0, 0, 0]
    assert second.leader_changed is False


def test_delta_is_previous_minus_current():
    engine = RankingEngine()
    engine.rank(people(("a", 30), ("b", 20), ("c", 10)))
    ranking = engine.rank(people(("a", 30), ("b", 20), ("c", 40)))

    deltas = {e.participant_id: e.delta for e in ranking.entries}
    assert deltas == {"c": 2, "a": -1, "b": -1}


def test_new_participant_has_no_delta():
    engine = RankingEngine()
    engine.rank(people(("a", 30)))
    ranking = engine.rank(people(("a", 30), ("n", 40)))

    deltas = {e.participant_id: e.delta for e in ranking.entries}
    assert deltas == {"n": None, "a": -1}


def test_leader_change_requires_strictly_higher_score():
    engine = RankingEngine()
    engine.rank(people(("a", 100), ("b", 90), ("c", 80)))

    overtaken = engine.rank(people(("a", 100), ("b", 110), ("c", 80)))
    assert overtaken.leader.participant_id == "b"
    assert overtaken.leader_changed is True

    tied = engine.rank(people(("a", 100), ("b", 110), ("c", 110)))
    assert tied.leader.participant_id == "b"
    assert tied.leader_changed is False


def test_tie_at_top_with_new_identity_does_not_fire():
    engine = RankingEngine()
    engine.rank(people(("a", 100), ("b", 90)))
    # b listed first and tied with the old leader's score
    ranking = engine.rank(people(("b", 100), ("a", 100)))

    assert ranking.leader.participant_id == "b"
    assert ranking.leader_changed is False


def test_engine_restores_from_snapshot():
    engine = RankingEngine(previous_ranks={"a": 2, "b": 1}, previous_leader={"participant_id": "b", "score": 10})
    ranking = engine.rank(people(("a", 20), ("b", 10)))

    assert ranking.entries[0].delta == 1
    assert ranking.leader_changed is True


def test_empty_room():
    engine = RankingEngine()
    ranking = engine.rank([])
    assert ranking.entries == []
    assert ranking.leader is None
    assert engine.previous_leader is None
