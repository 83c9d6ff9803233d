"""Invoice model."""

from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy import JSON, Date, Float, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin, KarbonSyncMixin


class Invoice(UUIDMixin, TimestampMixin, KarbonSyncMixin, Base):
    __tablename__ = "invoice"

    karbon_invoice_key: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    invoice_number: Mapped[str | None] = mapped_column(String(100), default=None)
    invoice_date: Mapped[date | None] = mapped_column(Date, default=None)
    due_date: Mapped[date | None] = mapped_column(Date, default=None)
    status: Mapped[str | None] = mapped_column(String(50), default=None, index=True)
    total_amount: Mapped[float] = mapped_column(Float, default=0)
    tax_amount: Mapped[float] = mapped_column(Float, default=0)
    subtotal: Mapped[float] = mapped_column(Float, default=0)
    amount_paid: Mapped[float] = mapped_column(Float, default=0)
    amount_due: Mapped[float] = mapped_column(Float, default=0)
    currency: Mapped[str] = mapped_column(String(10), default="USD")
    client_name: Mapped[str | None] = mapped_column(String(300), default=None)
    client_key: Mapped[str | None] = mapped_column(String(100), default=None)
    karbon_work_item_key: Mapped[str | None] = mapped_column(String(100), default=None, index=True)
    work_item_title: Mapped[str | None] = mapped_column(String(500), default=None)
    line_items: Mapped[list | None] = mapped_column(JSON, default=None)
    payment_date: Mapped[date | None] = mapped_column(Date, default=None)
    payment_method: Mapped[str | None] = mapped_column(String(50), default=None)
    notes: Mapped[str | None] = mapped_column(Text, default=None)

    work_item_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("work_item.id", ondelete="SET NULL"), default=None, index=True
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number or self.karbon_invoice_key}>"
