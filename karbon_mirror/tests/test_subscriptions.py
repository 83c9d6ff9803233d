"""Tests for webhook subscription management."""

from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from karbon_mirror.models import WebhookSubscription
from karbon_mirror.services.subscription_svc import SubscriptionError, build_subscription_payload


def test_payload_requires_https_and_known_type():
    with pytest.raises(SubscriptionError, match="https"):
        build_subscription_payload("Contact", "http://example.com/hook")
    with pytest.raises(SubscriptionError, match="Invalid webhookType"):
        build_subscription_payload("Widget", "https://example.com/hook")
    with pytest.raises(SubscriptionError):
        build_subscription_payload("", "https://example.com/hook")


def test_payload_shapes():
    assert build_subscription_payload("Contact", "https://example.com/hook") == {
        "TargetUrl": "https://example.com/hook"
    }
    assert build_subscription_payload("Invoice", "https://example.com/hook", "sk") == {
        "TargetUrl": "https://example.com/hook",
        "WebhookType": "Invoice",
        "SigningKey": "sk",
    }


@pytest.mark.asyncio
async def test_create_records_subscription_locally(client: AsyncClient, db, karbon_api):
    karbon_api.add("POST", "/WebhookSubscriptions/Work", {"WebhookSubscriptionPermaKey": "SUB1"})

    resp = await client.post(
        "/karbon/webhooks/subscriptions",
        json={"webhookType": "WorkItem", "targetUrl": "https://mirror.example.com/webhooks/karbon/work-items",
              "signingKey": "sk"},
    )

    assert resp.status_code == 200
    assert resp.json()["subscription"] == {"WebhookSubscriptionPermaKey": "SUB1"}
    sent = karbon_api.calls_to("/WebhookSubscriptions/Work", method="POST")[0]["json"]
    assert sent == {"TargetUrl": "https://mirror.example.com/webhooks/karbon/work-items", "SigningKey": "sk"}
    row = (
        await db.execute(
            select(WebhookSubscription.karbon_subscription_id, WebhookSubscription.signing_key_configured)
        )
    ).one()
    assert row == ("SUB1", True)


@pytest.mark.asyncio
async def test_create_rejects_invalid_request_without_calling_karbon(client: AsyncClient, karbon_api):
    resp = await client.post(
        "/karbon/webhooks/subscriptions",
        json={"webhookType": "Contact", "targetUrl": "http://insecure.example.com"},
    )
    assert resp.status_code == 400
    assert karbon_api.calls == []


@pytest.mark.asyncio
async def test_create_surfaces_upstream_errors(client: AsyncClient, karbon_api):
    karbon_api.add("POST", "/WebhookSubscriptions", {"Message": "Duplicate target"}, status=409)

    resp = await client.post(
        "/karbon/webhooks/subscriptions",
        json={"webhookType": "Contact", "targetUrl": "https://mirror.example.com/webhooks/karbon"},
    )

    assert resp.status_code == 409
    assert "Duplicate target" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_delete_removes_upstream_and_local(client: AsyncClient, db, karbon_api):
    karbon_api.add("POST", "/WebhookSubscriptions", {"PermaKey": "SUB2"})
    karbon_api.add("DELETE", "/WebhookSubscriptions/SUB2", None, status=204)
    await client.post(
        "/karbon/webhooks/subscriptions",
        json={"webhookType": "Organization", "targetUrl": "https://mirror.example.com/webhooks/karbon"},
    )

    resp = await client.delete(
        "/karbon/webhooks/subscriptions", params={"subscriptionId": "SUB2", "webhookType": "Organization"}
    )

    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert (await db.execute(select(WebhookSubscription.id))).first() is None


@pytest.mark.asyncio
async def test_delete_requires_id(client: AsyncClient):
    resp = await client.delete("/karbon/webhooks/subscriptions")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_list_merges_endpoints_and_collects_errors(client: AsyncClient, karbon_api):
    karbon_api.add(
        "GET", "/WebhookSubscriptions",
        {"value": [{"PermaKey": "A", "TargetUrl": "https://a"}, {"PermaKey": "B", "WebhookType": "Invoice"}]},
    )
    karbon_api.add("GET", "/WebhookSubscriptions/Work", [{"PermaKey": "C"}])
    karbon_api.add("GET", "/WebhookSubscriptions/ContentItem", {"Message": "Boom"}, status=500)

    resp = await client.get("/karbon/webhooks/subscriptions")

    assert resp.status_code == 200
    data = resp.json()
    types = {s["PermaKey"]: s["subscriptionType"] for s in data["subscriptions"]}
    assert types == {"A": "Contact", "B": "Invoice", "C": "WorkItem"}
    assert data["errors"] == ["/WebhookSubscriptions/ContentItem: Boom"]
    assert data["local"] == []
    assert len(karbon_api.calls_to("/WebhookSubscriptions")) == 1


@pytest.mark.asyncio
async def test_delete_of_subscription_gone_upstream_still_cleans_local(client: AsyncClient, db, karbon_api):
    karbon_api.add("POST", "/WebhookSubscriptions/Work", {"PermaKey": "SUB3"})
    await client.post(
        "/karbon/webhooks/subscriptions",
        json={"webhookType": "WorkItem", "targetUrl": "https://mirror.example.com/webhooks/karbon/work-items"},
    )
    # No DELETE route registered: the fake API answers 404.

    resp = await client.delete(
        "/karbon/webhooks/subscriptions", params={"subscriptionId": "SUB3", "webhookType": "WorkItem"}
    )

    assert resp.status_code == 200
    assert karbon_api.calls_to("/WebhookSubscriptions/Work/SUB3", method="DELETE")
    assert (await db.execute(select(WebhookSubscription.id))).first() is None
