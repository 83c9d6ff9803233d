"""Tests for health, sync trigger and sync history routes."""

from __future__ import annotations

from datetime import timedelta

import pytest
from httpx import AsyncClient

from karbon_mirror.models import SyncRun
from karbon_mirror.services.audit_svc import health_status
from karbon_mirror.sync.field_mapper import utcnow
from karbon_mirror.sync.registry import SYNC_ORDER


@pytest.mark.asyncio
async def test_health_endpoint(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy", "service": "karbon-mirror"}


@pytest.mark.asyncio
async def test_ready_endpoint(client: AsyncClient):
    resp = await client.get("/ready")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ready"


def test_health_status_thresholds():
    assert health_status(0) == "healthy"
    assert health_status(2) == "warning"
    assert health_status(3) == "critical"


@pytest.mark.asyncio
async def test_sync_health_on_empty_mirror_is_critical(client: AsyncClient):
    resp = await client.get("/karbon/sync-health")

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "critical"
    assert data["staleEntities"] == list(SYNC_ORDER)
    assert data["entities"]["contacts"] == {
        "record_count": 0,
        "last_sync": None,
        "last_modified": None,
        "stale": True,
    }
    assert data["recentSyncs"] == []


@pytest.mark.asyncio
async def test_sync_requires_credentials(client: AsyncClient):
    resp = await client.post("/karbon/sync")
    assert resp.status_code == 503
    assert resp.json()["detail"] == "Karbon API credentials not configured"


@pytest.mark.asyncio
async def test_sync_rejects_unknown_entities(client: AsyncClient, credentials):
    resp = await client.get("/karbon/sync", params={"entities": "contacts,widgets"})
    assert resp.status_code == 400
    assert "widgets" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_sync_trigger_runs_and_reports(client: AsyncClient, karbon_api, credentials):
    karbon_api.add(
        "GET", "/Contacts",
        {"value": [
            {"ContactKey": "C1", "FirstName": "Ada", "LastModifiedDateTime": "2024-05-01T00:00:00Z"},
            {"ContactKey": "C2", "FirstName": "Grace", "LastModifiedDateTime": "2024-05-02T00:00:00Z"},
        ]},
    )

    resp = await client.post(
        "/karbon/sync", params={"entities": "contacts", "incremental": "false", "manual": "true"}
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["syncType"] == "full"
    assert data["status"] == "completed"
    assert data["summary"]["totalSynced"] == 2
    assert data["summary"]["totalCreated"] == 2
    assert data["results"]["contacts"]["fetched"] == 2
    assert data["duration"].endswith("s")

    runs = (await client.get("/karbon/sync/runs")).json()["runs"]
    assert len(runs) == 1
    assert runs[0]["status"] == "completed"
    assert runs[0]["isManual"] is True
    assert runs[0]["recordsFetched"] == 2

    health = (await client.get("/karbon/sync-health")).json()
    assert health["entities"]["contacts"]["record_count"] == 2
    assert health["entities"]["contacts"]["stale"] is False
    assert "contacts" not in health["staleEntities"]
    assert len(health["recentSyncs"]) == 1


@pytest.mark.asyncio
async def test_reap_endpoint(client: AsyncClient, db):
    now = utcnow()
    db.add(
        SyncRun(
            sync_type="full", status="running", started_at=now - timedelta(hours=5),
            lease_expires_at=now - timedelta(hours=1),
        )
    )
    await db.commit()

    resp = await client.post("/karbon/sync/reap")

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "reaped": 1}
    runs = (await client.get("/karbon/sync/runs")).json()["runs"]
    assert runs[0]["status"] == "failed"


@pytest.mark.asyncio
async def test_followup_run_endpoint(client: AsyncClient):
    resp = await client.post("/karbon/sync/followups/run")
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "processed": 0, "succeeded": 0, "failed": 0, "retrying": 0}
