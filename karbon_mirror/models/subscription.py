"""Webhook subscription model - local record of subscriptions created upstream."""

from __future__ import annotations

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin


class WebhookSubscription(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "karbon_webhook_subscription"

    karbon_subscription_id: Mapped[str | None] = mapped_column(String(100), default=None, index=True)
    webhook_type: Mapped[str] = mapped_column(String(50))
    target_url: Mapped[str] = mapped_column(String(500))
    signing_key_configured: Mapped[bool] = mapped_column(Boolean, default=False)

    def __repr__(self) -> str:
        return f"<WebhookSubscription {self.webhook_type} {self.target_url}>"
