"""Follow-up job model - downstream refreshes requested by webhook handlers."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin


class FollowupJob(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "followup_job"
    __table_args__ = (
        Index("ix_followup_job_type_key_status", "job_type", "resource_key", "status"),
    )

    job_type: Mapped[str] = mapped_column(String(50), index=True)  # refresh_client_work
    resource_key: Mapped[str] = mapped_column(String(100))
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, default=3)
    last_error: Mapped[str | None] = mapped_column(Text, default=None)
    payload_json: Mapped[dict | None] = mapped_column(JSON, default=None)
    result_json: Mapped[dict | None] = mapped_column(JSON, default=None)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    def __repr__(self) -> str:
        return f"<FollowupJob {self.job_type} {self.resource_key} {self.status}>"
