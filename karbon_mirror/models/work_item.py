"""Work item model - jobs tracked in Karbon (returns, bookkeeping, ...)."""

from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy import JSON, Boolean, Date, Float, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin, KarbonSyncMixin


class WorkItem(UUIDMixin, TimestampMixin, KarbonSyncMixin, Base):
    __tablename__ = "work_item"

    karbon_work_item_key: Mapped[str] = mapped_column(String(100), unique=True, index=True)

    # Client references (contact or organization key, depending on client_type)
    karbon_client_key: Mapped[str | None] = mapped_column(String(100), default=None, index=True)
    client_type: Mapped[str | None] = mapped_column(String(50), default=None)
    client_name: Mapped[str | None] = mapped_column(String(300), default=None)
    client_owner_key: Mapped[str | None] = mapped_column(String(100), default=None)
    client_owner_name: Mapped[str | None] = mapped_column(String(200), default=None)
    client_group_key: Mapped[str | None] = mapped_column(String(100), default=None)
    client_group_name: Mapped[str | None] = mapped_column(String(300), default=None)
    client_group_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("client_group.id", ondelete="SET NULL"), default=None, index=True
    )
    assignee_key: Mapped[str | None] = mapped_column(String(100), default=None)
    assignee_name: Mapped[str | None] = mapped_column(String(200), default=None)
    client_manager_key: Mapped[str | None] = mapped_column(String(100), default=None)
    client_manager_name: Mapped[str | None] = mapped_column(String(200), default=None)
    client_partner_key: Mapped[str | None] = mapped_column(String(100), default=None)
    client_partner_name: Mapped[str | None] = mapped_column(String(200), default=None)

    title: Mapped[str | None] = mapped_column(String(500), default=None)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    work_type: Mapped[str | None] = mapped_column(String(200), default=None)
    workflow_status: Mapped[str | None] = mapped_column(String(200), default=None)
    status: Mapped[str | None] = mapped_column(String(100), default=None, index=True)
    status_code: Mapped[str | None] = mapped_column(String(100), default=None)
    primary_status: Mapped[str | None] = mapped_column(String(100), default=None)
    secondary_status: Mapped[str | None] = mapped_column(String(100), default=None)
    work_status_key: Mapped[str | None] = mapped_column(String(100), default=None)
    user_defined_identifier: Mapped[str | None] = mapped_column(String(100), default=None)

    start_date: Mapped[date | None] = mapped_column(Date, default=None)
    due_date: Mapped[date | None] = mapped_column(Date, default=None)
    completed_date: Mapped[date | None] = mapped_column(Date, default=None)
    year_end: Mapped[date | None] = mapped_column(Date, default=None)
    tax_year: Mapped[int | None] = mapped_column(Integer, default=None, index=True)
    period_start: Mapped[date | None] = mapped_column(Date, default=None)
    period_end: Mapped[date | None] = mapped_column(Date, default=None)
    internal_due_date: Mapped[date | None] = mapped_column(Date, default=None)
    regulatory_deadline: Mapped[date | None] = mapped_column(Date, default=None)
    client_deadline: Mapped[date | None] = mapped_column(Date, default=None)
    extension_date: Mapped[date | None] = mapped_column(Date, default=None)

    work_template_key: Mapped[str | None] = mapped_column(String(100), default=None)
    work_template_name: Mapped[str | None] = mapped_column(String(300), default=None)

    fee_type: Mapped[str | None] = mapped_column(String(50), default=None)
    estimated_fee: Mapped[float | None] = mapped_column(Float, default=None)
    fixed_fee_amount: Mapped[float | None] = mapped_column(Float, default=None)
    hourly_rate: Mapped[float | None] = mapped_column(Float, default=None)
    estimated_minutes: Mapped[int | None] = mapped_column(Integer, default=None)
    actual_minutes: Mapped[int | None] = mapped_column(Integer, default=None)
    billable_minutes: Mapped[int | None] = mapped_column(Integer, default=None)
    budget_minutes: Mapped[int | None] = mapped_column(Integer, default=None)
    budget_hours: Mapped[float | None] = mapped_column(Float, default=None)
    budget_amount: Mapped[float | None] = mapped_column(Float, default=None)
    actual_hours: Mapped[float | None] = mapped_column(Float, default=None)
    actual_amount: Mapped[float | None] = mapped_column(Float, default=None)
    actual_fee: Mapped[float | None] = mapped_column(Float, default=None)

    todo_count: Mapped[int] = mapped_column(Integer, default=0)
    completed_todo_count: Mapped[int] = mapped_column(Integer, default=0)
    has_blocking_todos: Mapped[bool] = mapped_column(Boolean, default=False)
    priority: Mapped[str | None] = mapped_column(String(50), default=None)
    tags: Mapped[list | None] = mapped_column(JSON, default=None)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False)
    is_billable: Mapped[bool] = mapped_column(Boolean, default=True)
    is_internal: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[str | None] = mapped_column(Text, default=None)
    custom_fields: Mapped[dict | None] = mapped_column(JSON, default=None)
    related_work_keys: Mapped[list | None] = mapped_column(JSON, default=None)

    def __repr__(self) -> str:
        return f"<WorkItem {self.title or self.karbon_work_item_key}>"
