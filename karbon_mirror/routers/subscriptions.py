"""Karbon webhook subscription management routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..api.client import ClientFactory, KarbonConfigError, KarbonError, get_client_factory
from ..database import get_db
from ..services import subscription_svc
from ..services.subscription_svc import SubscriptionError

router = APIRouter(prefix="/karbon/webhooks", tags=["subscriptions"])


class SubscriptionCreate(BaseModel):
    webhookType: str
    targetUrl: str
    signingKey: str | None = None


def _open_client(client_factory: ClientFactory):
    try:
        return client_factory()
    except KarbonConfigError as e:
        raise HTTPException(status_code=503, detail=e.message)


@router.get("/subscriptions")
async def list_subscriptions(
    db: AsyncSession = Depends(get_db),
    client_factory: ClientFactory = Depends(get_client_factory),
):
    async with _open_client(client_factory) as client:
        upstream = await subscription_svc.list_subscriptions(client)
    local = await subscription_svc.list_local_subscriptions(db)
    upstream["local"] = [
        {
            "id": str(row.id),
            "karbonSubscriptionId": row.karbon_subscription_id,
            "webhookType": row.webhook_type,
            "targetUrl": row.target_url,
            "signingKeyConfigured": row.signing_key_configured,
        }
        for row in local
    ]
    return upstream


@router.post("/subscriptions")
async def create_subscription(
    data: SubscriptionCreate,
    db: AsyncSession = Depends(get_db),
    client_factory: ClientFactory = Depends(get_client_factory),
):
    try:
        subscription_svc.build_subscription_payload(data.webhookType, data.targetUrl, data.signingKey)
    except SubscriptionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    async with _open_client(client_factory) as client:
        try:
            created, _ = await subscription_svc.create_subscription(
                db,
                client,
                webhook_type=data.webhookType,
                target_url=data.targetUrl,
                signing_key=data.signingKey,
            )
        except KarbonError as e:
            raise HTTPException(
                status_code=e.status_code or 502,
                detail=f"Failed to create subscription: {e.message}",
            )
    return {
        "success": True,
        "subscription": created,
        "message": f"{data.webhookType} webhook subscription created successfully",
    }


@router.delete("/subscriptions")
async def delete_subscription(
    subscriptionId: str | None = None,
    webhookType: str = "Contact",
    db: AsyncSession = Depends(get_db),
    client_factory: ClientFactory = Depends(get_client_factory),
):
    if not subscriptionId:
        raise HTTPException(status_code=400, detail="subscriptionId is required")

    async with _open_client(client_factory) as client:
        try:
            await subscription_svc.delete_subscription(
                db, client, subscription_id=subscriptionId, webhook_type=webhookType
            )
        except KarbonError as e:
            raise HTTPException(
                status_code=e.status_code or 502,
                detail=f"Failed to delete subscription: {e.message}",
            )
    return {"success": True, "message": "Webhook subscription deleted successfully"}
