"""Tests for the sync orchestrator, watermarks and the lease reaper."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from karbon_mirror.models import ClientGroup, Contact, SyncRun, WorkItem
from karbon_mirror.sync import mappers
from karbon_mirror.sync.field_mapper import utcnow
from karbon_mirror.sync.registry import UnknownEntityKind, get_kind
from karbon_mirror.sync.sync_engine import reap_stale_runs, run_sync
from karbon_mirror.sync.upsert import upsert_records
from karbon_mirror.sync.watermark import resolve_watermark, watermark_filter


def _contacts(start: int, count: int, modified: str = "2024-05-01T10:00:00Z") -> list[dict]:
    return [
        {
            "ContactKey": f"C{i:04d}",
            "FirstName": "Client",
            "LastName": str(i),
            "LastModifiedDateTime": modified,
        }
        for i in range(start, start + count)
    ]


async def _count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


async def _runs(db) -> list[SyncRun]:
    db.expire_all()
    return list((await db.execute(select(SyncRun).order_by(SyncRun.started_at))).scalars().all())


@pytest.mark.asyncio
async def test_full_sync_of_230_contacts(db, karbon_api, karbon):
    karbon_api.add_pages("/Contacts", [_contacts(0, 100), _contacts(100, 100), _contacts(200, 30)])

    summary = await run_sync(db, karbon, entities=["contacts"], incremental=False, manual=True)

    result = summary.results["contacts"]
    assert result.fetched == 230
    assert result.synced == 230
    assert result.created == 230
    assert result.pages == 3
    assert summary.status == "completed"
    assert await _count(db, Contact) == 230

    body = summary.to_response()
    assert body["success"] is True
    assert body["syncType"] == "full"
    assert body["summary"] == {
        "totalSynced": 230,
        "totalCreated": 230,
        "totalErrors": 0,
        "entitiesSynced": 1,
    }
    assert "errors" not in body

    (run,) = await _runs(db)
    assert run.status == "completed"
    assert run.is_manual is True
    assert run.records_fetched == 230
    assert run.records_created == 230
    assert run.completed_at is not None
    assert run.lease_expires_at is None


@pytest.mark.asyncio
async def test_second_run_is_idempotent(db, karbon_api, karbon):
    karbon_api.add_pages("/Contacts", [_contacts(0, 100), _contacts(100, 100), _contacts(200, 30)])

    await run_sync(db, karbon, entities=["contacts"], incremental=False)
    again = await run_sync(db, karbon, entities=["contacts"], incremental=False)

    assert again.results["contacts"].synced == 230
    assert again.results["contacts"].created == 0
    assert await _count(db, Contact) == 230


@pytest.mark.asyncio
async def test_incremental_run_filters_on_watermark(db, karbon_api, karbon):
    karbon_api.add("GET", "/Contacts", {"value": _contacts(0, 3, "2024-05-01T10:00:00.75Z")})
    await run_sync(db, karbon, entities=["contacts"])
    first_params = karbon_api.calls_to("/Contacts")[0]["params"]
    assert "$filter" not in first_params

    summary = await run_sync(db, karbon, entities=["contacts"])

    second_params = karbon_api.calls_to("/Contacts")[-1]["params"]
    assert second_params["$filter"] == "LastModifiedDateTime gt 2024-05-01T10:00:00Z"
    assert second_params["$expand"] == "BusinessCards,AccountingDetail"
    assert summary.results["contacts"].incremental is True
    assert summary.sync_type == "incremental"


@pytest.mark.asyncio
async def test_non_incremental_kinds_always_fetch_everything(db, karbon_api, karbon):
    karbon_api.add(
        "GET", "/Users",
        {"value": [{"UserKey": "U1", "FullName": "Pat", "LastModifiedDateTime": "2024-05-01T00:00:00Z"}]},
    )
    await run_sync(db, karbon, entities=["users"])
    await run_sync(db, karbon, entities=["users"])

    for call in karbon_api.calls_to("/Users"):
        assert not (call["params"] or {}).get("$filter")


@pytest.mark.asyncio
async def test_watermark_resolution(db):
    kind = get_kind("contacts")
    assert await resolve_watermark(db, kind) is None

    records = [mappers.map_contact(c) for c in _contacts(0, 1, "2024-03-01T00:00:00Z")]
    records += [mappers.map_contact(c) for c in _contacts(1, 1, "2024-04-02T08:30:00Z")]
    await upsert_records(db, kind, records)

    watermark = await resolve_watermark(db, kind)
    assert watermark == datetime(2024, 4, 2, 8, 30, tzinfo=timezone.utc)
    assert watermark_filter(watermark) == "LastModifiedDateTime gt 2024-04-02T08:30:00Z"


@pytest.mark.asyncio
async def test_failing_kind_does_not_stop_the_run(db, karbon_api, karbon):
    karbon_api.add("GET", "/Contacts", {"value": _contacts(0, 5)})
    karbon_api.add("GET", "/WorkItems", {"Message": "Internal error"}, status=500)
    karbon_api.add("GET", "/Invoices", {"value": [{"InvoiceKey": "I1", "TotalAmount": 10}]})

    summary = await run_sync(
        db, karbon, entities=["contacts", "work-items", "invoices"], incremental=False
    )

    assert summary.status == "completed_with_errors"
    assert summary.results["contacts"].synced == 5
    assert summary.results["invoices"].synced == 1
    assert summary.results["work-items"].error == "Internal error"
    assert summary.errors == ["work-items: Internal error"]

    body = summary.to_response()
    assert body["success"] is False
    assert body["summary"]["totalErrors"] == 1

    (run,) = await _runs(db)
    assert run.status == "completed_with_errors"
    assert run.error_details == [{"entity": "work-items", "error": "Internal error"}]


@pytest.mark.asyncio
async def test_notes_are_reported_as_skipped(db, karbon_api, karbon):
    summary = await run_sync(db, karbon, entities=["notes"])

    assert summary.status == "completed"
    assert "no list endpoint" in summary.results["notes"].skipped
    assert karbon_api.calls == []


@pytest.mark.asyncio
async def test_unknown_kind_rejected_before_run_row(db, karbon):
    with pytest.raises(UnknownEntityKind):
        await run_sync(db, karbon, entities=["contacts", "widgets"])
    assert await _runs(db) == []


@pytest.mark.asyncio
async def test_work_items_link_to_client_groups(db, karbon_api, karbon):
    karbon_api.add("GET", "/ClientGroups", {"value": [{"ClientGroupKey": "G1", "FullName": "Smith Family"}]})
    karbon_api.add(
        "GET", "/WorkItems",
        {"value": [
            {"WorkItemKey": "W1", "Title": "Return", "RelatedClientGroupKey": "G1"},
            {"WorkItemKey": "W2", "Title": "Orphan", "RelatedClientGroupKey": "G404"},
        ]},
    )

    summary = await run_sync(db, karbon, entities=["work-items", "client-groups"], incremental=False)

    assert list(summary.results) == ["client-groups", "work-items"]
    assert summary.results["work-items"].linked == 1
    group_id = (await db.execute(select(ClientGroup.id))).scalar_one()
    links = dict(
        (await db.execute(select(WorkItem.karbon_work_item_key, WorkItem.client_group_id))).all()
    )
    assert links == {"W1": group_id, "W2": None}


@pytest.mark.asyncio
async def test_reaper_fails_runs_with_expired_lease(db):
    now = utcnow()
    expired = SyncRun(
        sync_type="full", status="running", started_at=now - timedelta(hours=3),
        lease_expires_at=now - timedelta(hours=1),
    )
    live = SyncRun(
        sync_type="full", status="running", started_at=now,
        lease_expires_at=now + timedelta(hours=2),
    )
    db.add_all([expired, live])
    await db.commit()
    expired_id, live_id = expired.id, live.id

    assert await reap_stale_runs(db, now=now) == 1

    statuses = dict((await db.execute(select(SyncRun.id, SyncRun.status))).all())
    assert statuses[expired_id] == "failed"
    assert statuses[live_id] == "running"
    details = (
        await db.execute(select(SyncRun.error_details).where(SyncRun.id == expired_id))
    ).scalar_one()
    assert "lease expired" in details[-1]["error"]


@pytest.mark.asyncio
async def test_run_sync_reaps_abandoned_runs_first(db, karbon_api, karbon):
    now = utcnow()
    db.add(
        SyncRun(
            sync_type="incremental", status="running", started_at=now - timedelta(days=1),
            lease_expires_at=now - timedelta(hours=20),
        )
    )
    await db.commit()

    await run_sync(db, karbon, entities=["users"])

    statuses = sorted(run.status for run in await _runs(db))
    assert statuses == ["completed", "failed"]


@pytest.mark.asyncio
async def test_run_reaped_mid_flight_stays_failed(engine, db, karbon_api, karbon):
    karbon_api.add("GET", "/Users", {"value": [{"UserKey": "U1", "FullName": "Pat"}]})
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    reaped: list[int] = []

    async def reap_then_answer(method, url, params=None, json=None):
        # Another worker decides the lease is gone while this run is fetching.
        async with session_factory() as other:
            reaped.append(await reap_stale_runs(other, now=utcnow() + timedelta(days=1)))
        return await karbon_api.request(method, url, params=params, json=json)

    karbon._client.request.side_effect = reap_then_answer

    summary = await run_sync(db, karbon, entities=["users", "contacts"], incremental=False)

    assert reaped == [1]
    assert summary.status == "failed"
    assert "Run lease expired before completion" in summary.errors
    assert summary.to_response()["success"] is False
    # Work done before the reap is kept; later kinds are not attempted.
    assert summary.results["users"].synced == 1
    assert "contacts" not in summary.results
    assert karbon_api.calls_to("/Contacts") == []

    (run,) = await _runs(db)
    assert run.status == "failed"
    assert run.error_details[-1]["error"] == "Run lease expired before completion"


@pytest.mark.asyncio
async def test_lease_is_renewed_between_kinds(db, karbon_api, karbon):
    karbon_api.add("GET", "/Contacts", {"value": _contacts(0, 1)})
    leases: list = []

    async def record_lease(method, url, params=None, json=None):
        leases.append((await db.execute(select(SyncRun.lease_expires_at))).scalar_one())
        return await karbon_api.request(method, url, params=params, json=json)

    karbon._client.request.side_effect = record_lease

    await run_sync(db, karbon, entities=["users", "contacts"], incremental=False)

    assert len(leases) == 2
    assert leases[1] > leases[0]
