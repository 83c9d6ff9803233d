"""Sync run model - append-only audit row per orchestrator run."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin

SYNC_STATUS_RUNNING = "running"
SYNC_STATUS_COMPLETED = "completed"
SYNC_STATUS_COMPLETED_WITH_ERRORS = "completed_with_errors"
# Only written by the lease reaper for runs abandoned mid-flight.
SYNC_STATUS_FAILED = "failed"


class SyncRun(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "sync_log"

    sync_type: Mapped[str] = mapped_column(String(20))  # full, incremental
    sync_direction: Mapped[str] = mapped_column(String(20), default="inbound")
    status: Mapped[str] = mapped_column(String(30), default=SYNC_STATUS_RUNNING, index=True)
    is_manual: Mapped[bool] = mapped_column(Boolean, default=False)
    entities: Mapped[list | None] = mapped_column(JSON, default=None)

    records_fetched: Mapped[int] = mapped_column(Integer, default=0)
    records_created: Mapped[int] = mapped_column(Integer, default=0)
    records_failed: Mapped[int] = mapped_column(Integer, default=0)

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    lease_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None, index=True
    )

    results: Mapped[dict | None] = mapped_column(JSON, default=None)
    error_details: Mapped[list | None] = mapped_column(JSON, default=None)

    def __repr__(self) -> str:
        return f"<SyncRun {self.sync_type} {self.status}>"
