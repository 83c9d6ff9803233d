"""Sync result schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel


class UpsertResult(BaseModel):
    synced: int = 0
    created: int = 0
    errors: int = 0
    batches: int = 0
    error_details: list[str] = []


class EntityResult(BaseModel):
    entity: str
    fetched: int = 0
    synced: int = 0
    created: int = 0
    errors: int = 0
    pages: int = 0
    incremental: bool = False
    watermark: datetime | None = None
    linked: int = 0
    warning: str | None = None
    skipped: str | None = None
    error: str | None = None
    error_details: list[str] = []

    @property
    def failed(self) -> bool:
        return bool(self.error or self.errors)

    def summary_message(self) -> str:
        if self.error:
            return self.error
        head = f"{self.errors} record(s) failed"
        return f"{head}: {self.error_details[0]}" if self.error_details else head


class SyncRunSummary(BaseModel):
    run_id: uuid.UUID
    sync_type: str
    status: str
    is_manual: bool = False
    started_at: datetime
    completed_at: datetime
    results: dict[str, EntityResult] = {}
    errors: list[str] = []

    @property
    def total_synced(self) -> int:
        return sum(r.synced for r in self.results.values())

    @property
    def total_created(self) -> int:
        return sum(r.created for r in self.results.values())

    @property
    def total_errors(self) -> int:
        return sum(r.errors for r in self.results.values()) + sum(
            1 for r in self.results.values() if r.error
        )

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()

    def to_response(self) -> dict:
        """JSON body returned by the trigger endpoint."""
        body = {
            "success": not self.errors,
            "runId": str(self.run_id),
            "syncType": self.sync_type,
            "status": self.status,
            "duration": f"{self.duration_seconds:.2f}s",
            "summary": {
                "totalSynced": self.total_synced,
                "totalCreated": self.total_created,
                "totalErrors": self.total_errors,
                "entitiesSynced": len(self.results),
            },
            "results": {
                name: result.model_dump(mode="json", exclude_none=True)
                for name, result in self.results.items()
            },
            "timestamp": self.completed_at.isoformat(),
        }
        if self.errors:
            body["errors"] = self.errors
        return body
