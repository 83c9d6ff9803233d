"""Contact model - individual clients mirrored from Karbon."""

from __future__ import annotations

from datetime import date

from sqlalchemy import JSON, Boolean, Date, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin, KarbonSyncMixin


class Contact(UUIDMixin, TimestampMixin, KarbonSyncMixin, Base):
    __tablename__ = "contact"

    karbon_contact_key: Mapped[str] = mapped_column(String(100), unique=True, index=True)

    first_name: Mapped[str | None] = mapped_column(String(100), default=None)
    last_name: Mapped[str | None] = mapped_column(String(100), default=None)
    middle_name: Mapped[str | None] = mapped_column(String(100), default=None)
    preferred_name: Mapped[str | None] = mapped_column(String(100), default=None)
    salutation: Mapped[str | None] = mapped_column(String(50), default=None)
    prefix: Mapped[str | None] = mapped_column(String(50), default=None)
    suffix: Mapped[str | None] = mapped_column(String(50), default=None)
    full_name: Mapped[str | None] = mapped_column(String(300), default=None, index=True)
    contact_type: Mapped[str | None] = mapped_column(String(50), default=None)
    entity_type: Mapped[str | None] = mapped_column(String(50), default=None)
    status: Mapped[str | None] = mapped_column(String(50), default=None)
    restriction_level: Mapped[str | None] = mapped_column(String(50), default=None)
    is_prospect: Mapped[bool] = mapped_column(Boolean, default=False)
    avatar_url: Mapped[str | None] = mapped_column(String(500), default=None)

    primary_email: Mapped[str | None] = mapped_column(String(255), default=None, index=True)
    secondary_email: Mapped[str | None] = mapped_column(String(255), default=None)
    phone_primary: Mapped[str | None] = mapped_column(String(50), default=None)
    phone_mobile: Mapped[str | None] = mapped_column(String(50), default=None)
    phone_work: Mapped[str | None] = mapped_column(String(50), default=None)
    phone_fax: Mapped[str | None] = mapped_column(String(50), default=None)

    address_line1: Mapped[str | None] = mapped_column(String(255), default=None)
    address_line2: Mapped[str | None] = mapped_column(String(255), default=None)
    city: Mapped[str | None] = mapped_column(String(100), default=None)
    state: Mapped[str | None] = mapped_column(String(100), default=None)
    zip_code: Mapped[str | None] = mapped_column(String(20), default=None)
    country: Mapped[str | None] = mapped_column(String(100), default=None)
    mailing_address_line1: Mapped[str | None] = mapped_column(String(255), default=None)
    mailing_address_line2: Mapped[str | None] = mapped_column(String(255), default=None)
    mailing_city: Mapped[str | None] = mapped_column(String(100), default=None)
    mailing_state: Mapped[str | None] = mapped_column(String(100), default=None)
    mailing_zip_code: Mapped[str | None] = mapped_column(String(20), default=None)
    mailing_country: Mapped[str | None] = mapped_column(String(100), default=None)

    date_of_birth: Mapped[date | None] = mapped_column(Date, default=None)
    ein: Mapped[str | None] = mapped_column(String(50), default=None)
    ssn_last_four: Mapped[str | None] = mapped_column(String(4), default=None)
    occupation: Mapped[str | None] = mapped_column(String(200), default=None)
    employer: Mapped[str | None] = mapped_column(String(200), default=None)
    source: Mapped[str | None] = mapped_column(String(100), default=None)
    referred_by: Mapped[str | None] = mapped_column(String(200), default=None)
    linkedin_url: Mapped[str | None] = mapped_column(String(500), default=None)
    twitter_handle: Mapped[str | None] = mapped_column(String(200), default=None)
    facebook_url: Mapped[str | None] = mapped_column(String(500), default=None)
    website: Mapped[str | None] = mapped_column(String(500), default=None)

    client_owner_key: Mapped[str | None] = mapped_column(String(100), default=None)
    client_manager_key: Mapped[str | None] = mapped_column(String(100), default=None)
    client_partner_key: Mapped[str | None] = mapped_column(String(100), default=None)
    user_defined_identifier: Mapped[str | None] = mapped_column(String(100), default=None)

    registration_numbers: Mapped[dict | None] = mapped_column(JSON, default=None)
    business_cards: Mapped[list | None] = mapped_column(JSON, default=None)
    accounting_detail: Mapped[dict | None] = mapped_column(JSON, default=None)
    assigned_team_members: Mapped[list | None] = mapped_column(JSON, default=None)
    tags: Mapped[list | None] = mapped_column(JSON, default=None)
    custom_fields: Mapped[dict | None] = mapped_column(JSON, default=None)
    notes: Mapped[str | None] = mapped_column(Text, default=None)

    def __repr__(self) -> str:
        return f"<Contact {self.full_name or self.karbon_contact_key}>"
