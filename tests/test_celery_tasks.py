from liveroom.domains.votes.schemas import RetrySummary
from liveroom.domains.votes.service import vote_service
from liveroom.tasks import vote_retry


def test_retry_task_returns_summary(monkeypatch):
    released = []

    async def fake_retry():
        return RetrySummary(selected=2, recorded=1, discarded=1)

    async def fake_release():
        released.append(True)

    monkeypatch.setattr(vote_service, "retry_failed_votes", fake_retry)
    monkeypatch.setattr(vote_retry, "_release_connections", fake_release)

    result = vote_retry.retry_failed_votes_task()
    assert result["selected"] == 2
    assert result["recorded"] == 1
    assert result["discarded"] == 1
    assert released == [True]


def test_retry_task_no_event_loop_crash(monkeypatch):
    released = []

    async def boom():
        raise RuntimeError("database unavailable")

    async def fake_release():
        released.append(True)

    monkeypatch.setattr(vote_service, "retry_failed_votes", boom)
    monkeypatch.setattr(vote_retry, "_release_connections", fake_release)

    result = vote_retry.retry_failed_votes_task()
    assert result == {"error": "database unavailable"}
    # connections are released even when the sweep fails
    assert released == [True]


def test_retry_is_scheduled():
    from liveroom.core.celery import celery_app

    entry = celery_app.conf.beat_schedule["retry-failed-votes"]
    assert entry["task"] == "liveroom.tasks.vote_retry.retry_failed_votes_task"
