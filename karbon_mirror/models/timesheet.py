"""Timesheet entry model - one row per time entry inside a Karbon timesheet."""

from __future__ import annotations

import datetime as dt
import uuid

from sqlalchemy import Boolean, Date, Float, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin, KarbonSyncMixin


class TimesheetEntry(UUIDMixin, TimestampMixin, KarbonSyncMixin, Base):
    __tablename__ = "timesheet_entry"

    karbon_timesheet_key: Mapped[str] = mapped_column(String(200), unique=True, index=True)
    date: Mapped[dt.date | None] = mapped_column(Date, default=None, index=True)
    minutes: Mapped[int] = mapped_column(Integer, default=0)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    is_billable: Mapped[bool] = mapped_column(Boolean, default=True)
    billing_status: Mapped[str | None] = mapped_column(String(50), default=None)
    hourly_rate: Mapped[float | None] = mapped_column(Float, default=None)
    billed_amount: Mapped[float | None] = mapped_column(Float, default=None)
    user_key: Mapped[str | None] = mapped_column(String(100), default=None, index=True)
    user_name: Mapped[str | None] = mapped_column(String(200), default=None)
    karbon_work_item_key: Mapped[str | None] = mapped_column(String(100), default=None, index=True)
    work_item_title: Mapped[str | None] = mapped_column(String(500), default=None)
    client_key: Mapped[str | None] = mapped_column(String(100), default=None)
    client_name: Mapped[str | None] = mapped_column(String(300), default=None)
    task_key: Mapped[str | None] = mapped_column(String(100), default=None)
    role_name: Mapped[str | None] = mapped_column(String(100), default=None)
    task_type_name: Mapped[str | None] = mapped_column(String(200), default=None)
    timesheet_status: Mapped[str | None] = mapped_column(String(50), default=None)

    work_item_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("work_item.id", ondelete="SET NULL"), default=None, index=True
    )
    team_member_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("team_member.id", ondelete="SET NULL"), default=None, index=True
    )

    def __repr__(self) -> str:
        return f"<TimesheetEntry {self.karbon_timesheet_key} {self.minutes}m>"
