"""Webhook subscription management against the Karbon API."""

from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..api.client import KarbonClient, KarbonError, KarbonNotFound
from ..models.subscription import WebhookSubscription

logger = logging.getLogger(__name__)

# Webhook type -> subscription endpoint. Several types share one endpoint.
WEBHOOK_ENDPOINTS: dict[str, str] = {
    "Contact": "/WebhookSubscriptions",
    "Organization": "/WebhookSubscriptions",
    "Invoice": "/WebhookSubscriptions",
    "WorkItem": "/WebhookSubscriptions/Work",
    "ContentItem": "/WebhookSubscriptions/ContentItem",
}


class SubscriptionError(ValueError):
    """Invalid subscription request; nothing was sent upstream."""


async def list_subscriptions(client: KarbonClient) -> dict:
    """Upstream subscriptions across every endpoint; one failing endpoint does not hide the rest."""
    subscriptions: list[dict] = []
    errors: list[str] = []
    seen: set[str] = set()
    for webhook_type, endpoint in WEBHOOK_ENDPOINTS.items():
        if endpoint in seen:
            continue
        seen.add(endpoint)
        try:
            page = await client.fetch_page(endpoint)
        except KarbonNotFound:
            continue
        except KarbonError as e:
            logger.error("Failed to list %s subscriptions: %s", webhook_type, e.message)
            errors.append(f"{endpoint}: {e.message}")
            continue
        for item in page.items:
            subscriptions.append({**item, "subscriptionType": item.get("WebhookType") or webhook_type})
    return {"subscriptions": subscriptions, "errors": errors}


async def list_local_subscriptions(db: AsyncSession) -> list[WebhookSubscription]:
    stmt = select(WebhookSubscription).order_by(WebhookSubscription.created_at.desc())
    return list((await db.execute(stmt)).scalars().all())


def build_subscription_payload(webhook_type: str, target_url: str, signing_key: str | None = None) -> dict:
    if not webhook_type or not target_url:
        raise SubscriptionError("webhookType and targetUrl are required")
    if not target_url.startswith("https://"):
        raise SubscriptionError("targetUrl must use https://")
    if webhook_type not in WEBHOOK_ENDPOINTS:
        raise SubscriptionError(
            f"Invalid webhookType: {webhook_type}. Valid types: {', '.join(WEBHOOK_ENDPOINTS)}"
        )

    payload: dict = {"TargetUrl": target_url}
    if webhook_type == "Invoice":
        payload["WebhookType"] = "Invoice"
    if signing_key:
        payload["SigningKey"] = signing_key
    return payload


async def create_subscription(
    db: AsyncSession,
    client: KarbonClient,
    *,
    webhook_type: str,
    target_url: str,
    signing_key: str | None = None,
) -> tuple[dict, WebhookSubscription]:
    payload = build_subscription_payload(webhook_type, target_url, signing_key)
    logger.info("Creating %s webhook subscription to %s", webhook_type, target_url)
    created = await client.post(WEBHOOK_ENDPOINTS[webhook_type], payload)
    created = created if isinstance(created, dict) else {}

    record = WebhookSubscription(
        karbon_subscription_id=created.get("WebhookSubscriptionPermaKey") or created.get("PermaKey"),
        webhook_type=webhook_type,
        target_url=target_url,
        signing_key_configured=bool(signing_key),
    )
    db.add(record)
    await db.commit()
    await db.refresh(record)
    return created, record


async def delete_subscription(
    db: AsyncSession,
    client: KarbonClient,
    *,
    subscription_id: str,
    webhook_type: str = "Contact",
) -> int:
    """Remove upstream, then forget it locally. Returns local rows removed."""
    if not subscription_id:
        raise SubscriptionError("subscriptionId is required")
    endpoint = WEBHOOK_ENDPOINTS.get(webhook_type, "/WebhookSubscriptions")
    try:
        await client.delete(f"{endpoint}/{subscription_id}")
    except KarbonNotFound:
        logger.info("Subscription %s already gone upstream; removing local record", subscription_id)

    result = await db.execute(
        delete(WebhookSubscription).where(WebhookSubscription.karbon_subscription_id == subscription_id)
    )
    await db.commit()
    return result.rowcount or 0
