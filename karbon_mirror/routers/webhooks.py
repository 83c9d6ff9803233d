"""Webhook routes for Karbon callbacks."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..api.client import ClientFactory, get_client_factory
from ..database import get_db
from ..security.webhooks import extract_signature
from ..services import audit_svc
from ..services.webhook_svc import WebhookRejected, ingest_webhook
from ..sync.field_mapper import utcnow

router = APIRouter(tags=["webhooks"])

# Resource-specific endpoints and what they accept.
RESOURCE_ROUTES: dict[str, str] = {
    "contacts": "Contact.Updated events",
    "organizations": "Organization.Updated events",
    "work-items": "WorkItem.Created, WorkItem.Updated, WorkItem.StatusChanged and WorkItem.Deleted events",
    "notes": "Note.Created and Note.Updated events (notes have no list endpoint)",
    "invoices": "Invoice.StatusChanged events",
}


async def _ingest(
    request: Request,
    db: AsyncSession,
    client_factory: ClientFactory,
    resource_hint: str | None = None,
) -> dict:
    body = await request.body()
    try:
        result = await ingest_webhook(
            db,
            body=body,
            signature=extract_signature(request.headers),
            client_factory=client_factory,
            resource_hint=resource_hint,
        )
    except WebhookRejected as e:
        raise HTTPException(status_code=e.status_code, detail=e.reason)
    return result.to_response()


@router.post("/webhooks/karbon")
async def karbon_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    client_factory: ClientFactory = Depends(get_client_factory),
):
    return await _ingest(request, db, client_factory)


@router.get("/webhooks/karbon")
async def karbon_webhook_ping():
    return {
        "status": "active",
        "webhook": "karbon",
        "description": "Accepts any Karbon webhook event; the resource is taken from EventType",
        "timestamp": utcnow().isoformat(),
    }


@router.post("/webhooks/karbon/{resource}")
async def karbon_resource_webhook(
    resource: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    client_factory: ClientFactory = Depends(get_client_factory),
):
    if resource not in RESOURCE_ROUTES:
        raise HTTPException(status_code=404, detail=f"No webhook endpoint for {resource}")
    return await _ingest(request, db, client_factory, resource_hint=resource)


@router.get("/webhooks/karbon/{resource}")
async def karbon_resource_webhook_ping(resource: str):
    if resource not in RESOURCE_ROUTES:
        raise HTTPException(status_code=404, detail=f"No webhook endpoint for {resource}")
    return {
        "status": "active",
        "webhook": f"karbon-{resource}",
        "description": f"Receives Karbon {RESOURCE_ROUTES[resource]}",
        "timestamp": utcnow().isoformat(),
    }


@router.get("/karbon/webhooks/events")
async def webhook_events(
    resource_type: str | None = None,
    outcome: str | None = None,
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    events = await audit_svc.list_webhook_events(
        db, resource_type=resource_type, outcome=outcome, limit=limit
    )
    return {"events": [audit_svc.webhook_event_to_dict(event) for event in events]}
