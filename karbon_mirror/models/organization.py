"""Organization model - business clients mirrored from Karbon."""

from __future__ import annotations

from sqlalchemy import JSON, Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin, KarbonSyncMixin


class Organization(UUIDMixin, TimestampMixin, KarbonSyncMixin, Base):
    __tablename__ = "organization"

    karbon_organization_key: Mapped[str] = mapped_column(String(100), unique=True, index=True)

    name: Mapped[str] = mapped_column(String(300), index=True)
    full_name: Mapped[str | None] = mapped_column(String(300), default=None)
    legal_name: Mapped[str | None] = mapped_column(String(300), default=None)
    trading_name: Mapped[str | None] = mapped_column(String(300), default=None)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    entity_type: Mapped[str | None] = mapped_column(String(100), default=None)
    contact_type: Mapped[str | None] = mapped_column(String(50), default=None)
    restriction_level: Mapped[str | None] = mapped_column(String(50), default=None)
    user_defined_identifier: Mapped[str | None] = mapped_column(String(100), default=None)
    industry: Mapped[str | None] = mapped_column(String(200), default=None)
    line_of_business: Mapped[str | None] = mapped_column(String(200), default=None)

    primary_email: Mapped[str | None] = mapped_column(String(255), default=None)
    phone: Mapped[str | None] = mapped_column(String(50), default=None)
    website: Mapped[str | None] = mapped_column(String(500), default=None)
    address_line1: Mapped[str | None] = mapped_column(String(255), default=None)
    address_line2: Mapped[str | None] = mapped_column(String(255), default=None)
    city: Mapped[str | None] = mapped_column(String(100), default=None)
    state: Mapped[str | None] = mapped_column(String(100), default=None)
    zip_code: Mapped[str | None] = mapped_column(String(20), default=None)
    country: Mapped[str | None] = mapped_column(String(100), default=None)
    linkedin_url: Mapped[str | None] = mapped_column(String(500), default=None)
    twitter_handle: Mapped[str | None] = mapped_column(String(200), default=None)
    facebook_url: Mapped[str | None] = mapped_column(String(500), default=None)

    ein: Mapped[str | None] = mapped_column(String(50), default=None)
    gst_number: Mapped[str | None] = mapped_column(String(50), default=None)
    gst_registered: Mapped[bool] = mapped_column(Boolean, default=False)
    business_number: Mapped[str | None] = mapped_column(String(50), default=None)
    tax_number: Mapped[str | None] = mapped_column(String(50), default=None)
    fiscal_year_end_month: Mapped[int | None] = mapped_column(Integer, default=None)
    fiscal_year_end_day: Mapped[int | None] = mapped_column(Integer, default=None)
    base_currency: Mapped[str | None] = mapped_column(String(10), default=None)
    tax_country_code: Mapped[str | None] = mapped_column(String(10), default=None)
    pays_tax: Mapped[bool | None] = mapped_column(Boolean, default=None)
    is_vat_registered: Mapped[bool | None] = mapped_column(Boolean, default=None)

    client_owner_key: Mapped[str | None] = mapped_column(String(100), default=None)
    client_manager_key: Mapped[str | None] = mapped_column(String(100), default=None)
    client_partner_key: Mapped[str | None] = mapped_column(String(100), default=None)
    parent_organization_key: Mapped[str | None] = mapped_column(String(100), default=None)

    business_cards: Mapped[list | None] = mapped_column(JSON, default=None)
    assigned_team_members: Mapped[list | None] = mapped_column(JSON, default=None)
    custom_fields: Mapped[dict | None] = mapped_column(JSON, default=None)

    def __repr__(self) -> str:
        return f"<Organization {self.name}>"
