"""Tests for the follow-up job queue."""

from __future__ import annotations

import pytest
from sqlalchemy import select

from karbon_mirror.config import settings
from karbon_mirror.models import FollowupJob, WorkItem
from karbon_mirror.services.followup_svc import (
    REFRESH_CLIENT_WORK,
    enqueue_followup,
    run_pending_followups,
)


async def _job_state(db):
    db.expire_all()
    return (
        await db.execute(
            select(FollowupJob.status, FollowupJob.attempts, FollowupJob.last_error, FollowupJob.result_json)
        )
    ).one()


@pytest.mark.asyncio
async def test_enqueue_dedupes_pending_jobs(db):
    first = await enqueue_followup(db, job_type=REFRESH_CLIENT_WORK, resource_key="C1")
    second = await enqueue_followup(db, job_type=REFRESH_CLIENT_WORK, resource_key="C1")
    other = await enqueue_followup(db, job_type=REFRESH_CLIENT_WORK, resource_key="C2")

    assert first.id == second.id
    assert other.id != first.id
    assert first.max_attempts == 3


@pytest.mark.asyncio
async def test_refresh_pulls_client_work_items(db, karbon_api, karbon):
    karbon_api.add(
        "GET", "/WorkItems",
        {"value": [{"WorkItemKey": "W1", "Title": "Bookkeeping", "ClientKey": "C1"}]},
    )
    await enqueue_followup(db, job_type=REFRESH_CLIENT_WORK, resource_key="C1")

    stats = await run_pending_followups(db, karbon)

    assert stats.processed == 1
    assert stats.succeeded == 1
    params = karbon_api.calls_to("/WorkItems")[0]["params"]
    assert "ClientKey eq 'C1'" in params["$filter"]
    status, attempts, last_error, result = await _job_state(db)
    assert status == "succeeded"
    assert attempts == 1
    assert last_error is None
    assert result == {"fetched": 1, "synced": 1, "created": 1}
    assert (await db.execute(select(WorkItem.title))).scalar_one() == "Bookkeeping"


@pytest.mark.asyncio
async def test_refresh_escapes_quotes_in_keys(db, karbon_api, karbon):
    karbon_api.add("GET", "/WorkItems", {"value": []})
    await enqueue_followup(db, job_type=REFRESH_CLIENT_WORK, resource_key="O'Neil")

    await run_pending_followups(db, karbon)

    params = karbon_api.calls_to("/WorkItems")[0]["params"]
    assert "ClientKey eq 'O''Neil'" in params["$filter"]


@pytest.mark.asyncio
async def test_failed_job_retries_until_max_attempts(db, karbon_api, karbon, monkeypatch):
    monkeypatch.setattr(settings, "followup_max_attempts", 2)
    karbon_api.add("GET", "/WorkItems", {"Message": "Service unavailable"}, status=503)
    await enqueue_followup(db, job_type=REFRESH_CLIENT_WORK, resource_key="C1")

    first = await run_pending_followups(db, karbon)
    assert first.retrying == 1
    status, attempts, last_error, _ = await _job_state(db)
    assert (status, attempts, last_error) == ("pending", 1, "Service unavailable")

    second = await run_pending_followups(db, karbon)
    assert second.failed == 1
    status, attempts, _, _ = await _job_state(db)
    assert (status, attempts) == ("failed", 2)

    third = await run_pending_followups(db, karbon)
    assert third.processed == 0


@pytest.mark.asyncio
async def test_unknown_job_type_fails_immediately(db, karbon):
    await enqueue_followup(db, job_type="rebuild_universe", resource_key="X")

    stats = await run_pending_followups(db, karbon)

    assert stats.failed == 1
    status, attempts, last_error, _ = await _job_state(db)
    assert status == "failed"
    assert attempts == 1
    assert "Unknown job type" in last_error
