"""Webhook event model - one row per inbound delivery, whatever the outcome."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin


class WebhookEvent(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "webhook_event"

    resource_type: Mapped[str] = mapped_column(String(50), index=True)
    event_type: Mapped[str | None] = mapped_column(String(100), default=None, index=True)
    resource_key: Mapped[str | None] = mapped_column(String(100), default=None, index=True)
    subscription_key: Mapped[str | None] = mapped_column(String(100), default=None)
    raw_payload: Mapped[str | None] = mapped_column(Text, default=None)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

    outcome: Mapped[str] = mapped_column(String(20), index=True)  # processed, failed
    action: Mapped[str | None] = mapped_column(String(50), default=None)  # upserted, soft_deleted, ignored
    reason: Mapped[str | None] = mapped_column(Text, default=None)
    status_code: Mapped[int] = mapped_column(Integer, default=200)
    signature_valid: Mapped[bool | None] = mapped_column(Boolean, default=None)
    duration_ms: Mapped[int | None] = mapped_column(Integer, default=None)

    def __repr__(self) -> str:
        return f"<WebhookEvent {self.event_type} {self.outcome}>"
