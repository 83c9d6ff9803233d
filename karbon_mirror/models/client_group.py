"""Client group model - households and related-entity groupings."""

from __future__ import annotations

from sqlalchemy import JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin, KarbonSyncMixin


class ClientGroup(UUIDMixin, TimestampMixin, KarbonSyncMixin, Base):
    __tablename__ = "client_group"

    karbon_client_group_key: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(300))
    description: Mapped[str | None] = mapped_column(Text, default=None)
    group_type: Mapped[str | None] = mapped_column(String(50), default=None)
    contact_type: Mapped[str | None] = mapped_column(String(50), default=None)
    primary_contact_key: Mapped[str | None] = mapped_column(String(100), default=None)
    primary_contact_name: Mapped[str | None] = mapped_column(String(300), default=None)
    client_owner_key: Mapped[str | None] = mapped_column(String(100), default=None)
    client_owner_name: Mapped[str | None] = mapped_column(String(200), default=None)
    client_manager_key: Mapped[str | None] = mapped_column(String(100), default=None)
    client_manager_name: Mapped[str | None] = mapped_column(String(200), default=None)
    members: Mapped[list | None] = mapped_column(JSON, default=None)
    restriction_level: Mapped[str | None] = mapped_column(String(50), default=None)
    user_defined_identifier: Mapped[str | None] = mapped_column(String(100), default=None)

    def __repr__(self) -> str:
        return f"<ClientGroup {self.name}>"
