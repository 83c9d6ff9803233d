"""Webhook ingestion - verify, fetch the authoritative record, upsert, audit."""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..api.client import ClientFactory, KarbonConfigError, KarbonError
from ..config import settings
from ..schemas.webhook import WebhookResult
from ..security.webhooks import verify_karbon_signature
from ..sync.field_mapper import text, utcnow
from ..sync.links import resolve_parent_links
from ..sync.registry import EntityKind, UnknownEntityKind, get_kind, kind_for_resource
from ..sync.upsert import soft_delete, upsert_records
from . import audit_svc
from .followup_svc import REFRESH_CLIENT_WORK, enqueue_followup

logger = logging.getLogger(__name__)

# Kinds whose updates can change the client shown on related work items.
_FOLLOWUP_KINDS = {"contacts", "organizations"}


class WebhookRejected(Exception):
    """Delivery refused; the audit row has already been written."""

    def __init__(self, status_code: int, reason: str):
        self.status_code = status_code
        self.reason = reason
        super().__init__(reason)


def _camel(field_name: str) -> str:
    return field_name[:1].lower() + field_name[1:]


class _Delivery:
    """Per-request audit context so every exit path writes the same row shape."""

    def __init__(self, db: AsyncSession, body: bytes, resource_hint: str | None):
        self.db = db
        self.raw = body.decode("utf-8", errors="replace")
        self.received_at: datetime = utcnow()
        self.started = time.monotonic()
        self.resource_type = resource_hint or "Unknown"
        self.event_type: str | None = None
        self.resource_key: str | None = None
        self.subscription_key: str | None = None
        self.signature_valid: bool | None = None

    @property
    def duration_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)

    async def _record(self, **kwargs) -> None:
        await audit_svc.record_webhook_event(
            self.db,
            resource_type=self.resource_type,
            event_type=self.event_type,
            resource_key=self.resource_key,
            subscription_key=self.subscription_key,
            raw_payload=self.raw,
            received_at=self.received_at,
            signature_valid=self.signature_valid,
            duration_ms=self.duration_ms,
            **kwargs,
        )

    async def reject(self, status_code: int, reason: str) -> WebhookRejected:
        await self.db.rollback()
        await self._record(outcome="failed", reason=reason, status_code=status_code)
        logger.warning(
            "Karbon webhook failed: %s",
            reason,
            extra={
                "webhook_resource": self.resource_type,
                "webhook_event": self.event_type,
                "resource_key": self.resource_key,
                "status_code": status_code,
            },
        )
        return WebhookRejected(status_code, reason)

    async def accept(self, action: str, key_field: str | None = None) -> WebhookResult:
        duration = self.duration_ms
        await self._record(outcome="processed", action=action, status_code=200)
        logger.info(
            "Karbon webhook processed",
            extra={
                "webhook_resource": self.resource_type,
                "webhook_event": self.event_type,
                "resource_key": self.resource_key,
                "action": action,
                "duration_ms": duration,
            },
        )
        return WebhookResult(
            event_type=self.event_type or "",
            resource_type=self.resource_type,
            resource_key=self.resource_key,
            action=action,
            processed_at=utcnow(),
            duration_ms=duration,
            key_field=key_field,
        )


def _resolve_kind(event_type: str, resource_hint: str | None) -> EntityKind | None:
    if resource_hint:
        try:
            return get_kind(resource_hint)
        except UnknownEntityKind:
            return None
    return kind_for_resource(event_type.split(".", 1)[0])


async def ingest_webhook(
    db: AsyncSession,
    *,
    body: bytes,
    signature: str | None,
    client_factory: ClientFactory,
    resource_hint: str | None = None,
) -> WebhookResult:
    """Process one Karbon webhook delivery.

    Raises WebhookRejected (401/400/500) after recording the failure. Events
    for resources we do not mirror are acknowledged with action ``ignored``.
    """
    delivery = _Delivery(db, body, resource_hint)
    logger.info(
        "Karbon webhook received",
        extra={
            "webhook_resource": delivery.resource_type,
            "has_signature": bool(signature),
            "body_length": len(body),
        },
    )

    if settings.webhook_verification_enabled:
        delivery.signature_valid = verify_karbon_signature(body, signature, settings.webhook_secret)
        if not delivery.signature_valid:
            raise await delivery.reject(401, "Invalid webhook signature")
    else:
        logger.warning("KARBON_WEBHOOK_SECRET not set; skipping signature verification")

    try:
        payload = json.loads(delivery.raw)
    except ValueError:
        payload = None
    if (
        not isinstance(payload, dict)
        or not isinstance(payload.get("EventType"), str)
        or not payload["EventType"].strip()
        or not isinstance(payload.get("Data"), dict)
    ):
        raise await delivery.reject(400, "Invalid webhook payload")

    event_type = payload["EventType"].strip()
    data: dict = payload["Data"]
    delivery.event_type = event_type
    delivery.subscription_key = text(payload.get("SubscriptionKey"))

    kind = _resolve_kind(event_type, resource_hint)
    if kind is None or not kind.fetchable:
        delivery.resource_type = kind.resource if kind else event_type.split(".", 1)[0]
        return await delivery.accept("ignored")

    delivery.resource_type = kind.resource
    key_field = kind.webhook_key or kind.key_column
    key = text(data.get(key_field))
    if not key:
        raise await delivery.reject(400, f"Missing {key_field} in webhook data")
    delivery.resource_key = key
    camel_key = _camel(key_field)

    if event_type.endswith(".Deleted"):
        try:
            found = await soft_delete(db, kind, key)
            return await delivery.accept("soft_deleted" if found else "not_found", camel_key)
        except SQLAlchemyError as e:
            raise await delivery.reject(500, f"Failed to delete {kind.resource}: {e.__class__.__name__}")

    try:
        async with client_factory() as client:
            entity = await client.get_entity(kind.entity_url(key), expand=kind.entity_expand)
    except KarbonConfigError as e:
        raise await delivery.reject(500, e.message)
    except KarbonError as e:
        raise await delivery.reject(500, f"Failed to fetch {kind.resource} details: {e.message}")

    entity = dict(entity)
    if not entity.get(key_field):
        entity[key_field] = key
    for context_key in kind.context_keys:
        if not entity.get(context_key) and data.get(context_key):
            entity[context_key] = data[context_key]

    records, map_errors = kind.map_records([entity])
    if map_errors or not records:
        raise await delivery.reject(500, f"Failed to map {kind.resource}")
    written = await upsert_records(db, kind, records)
    if written.errors:
        raise await delivery.reject(500, f"Failed to sync {kind.resource}")

    try:
        keys = [record[kind.key_column] for record in records]
        await resolve_parent_links(db, kind, keys)
    except SQLAlchemyError:
        await db.rollback()
        logger.warning("Parent link resolution failed for %s %s", kind.name, key, exc_info=True)

    try:
        if kind.name in _FOLLOWUP_KINDS and settings.webhook_followups_enabled:
            await enqueue_followup(
                db,
                job_type=REFRESH_CLIENT_WORK,
                resource_key=key,
                payload={"eventType": event_type, "resource": kind.resource},
            )
        return await delivery.accept("upserted", camel_key)
    except SQLAlchemyError as e:
        raise await delivery.reject(
            500, f"Failed to finish {kind.resource} webhook: {e.__class__.__name__}"
        )
