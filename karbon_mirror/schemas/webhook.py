"""Webhook result schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class WebhookResult(BaseModel):
    event_type: str
    resource_type: str
    resource_key: str | None = None
    action: str
    processed_at: datetime
    duration_ms: int = 0
    key_field: str | None = None  # camelCase echo of the key, e.g. noteKey

    def to_response(self) -> dict:
        body = {
            "success": True,
            "eventType": self.event_type,
            "resourceType": self.resource_type,
            "resourceKey": self.resource_key,
            "action": self.action,
            "processedAt": self.processed_at.isoformat(),
            "durationMs": self.duration_ms,
        }
        if self.key_field:
            body[self.key_field] = self.resource_key
        return body
